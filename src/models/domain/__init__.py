"""Domain models for the shop catalog."""

from .audit import AuditLog
from .cart import Cart, CartItem
from .category import Category
from .discount import DiscountCode
from .enums import (
    DiscountType,
    FulfillmentStatus,
    NotificationType,
    OrderStatus,
    PaymentStatus,
    ProductStatus,
)
from .notification import Notification
from .order import Order, OrderItem
from .product import Product, ProductCategoryLink, ProductImage, ProductVariant

__all__ = [
    "ProductStatus",
    "OrderStatus",
    "PaymentStatus",
    "FulfillmentStatus",
    "DiscountType",
    "NotificationType",
    "Product",
    "ProductVariant",
    "ProductImage",
    "ProductCategoryLink",
    "Category",
    "Order",
    "OrderItem",
    "Cart",
    "CartItem",
    "DiscountCode",
    "Notification",
    "AuditLog",
]
