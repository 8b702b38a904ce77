"""Input models passed from request handlers into the data-access core."""

from .requests import (
    AuditLogCreate,
    CartItemCreate,
    CategoryCreate,
    CategoryUpdate,
    DiscountCodeCreate,
    DiscountCodeUpdate,
    ImageCreate,
    ImageUpdate,
    NotificationCreate,
    OrderCreate,
    OrderLineCreate,
    OrderUpdate,
    ProductCreate,
    ProductUpdate,
    VariantCreate,
    VariantUpdate,
)

__all__ = [
    'ProductCreate',
    'ProductUpdate',
    'VariantCreate',
    'VariantUpdate',
    'ImageCreate',
    'ImageUpdate',
    'CategoryCreate',
    'CategoryUpdate',
    'OrderCreate',
    'OrderLineCreate',
    'OrderUpdate',
    'CartItemCreate',
    'DiscountCodeCreate',
    'DiscountCodeUpdate',
    'NotificationCreate',
    'AuditLogCreate',
]
