"""Validated input models passed to repositories by request handlers.

Create models carry everything a caller supplies; ids, timestamps and keys
are filled in by the repositories. Update models are partial: only fields
explicitly set by the caller are applied, and an explicit None clears an
optional field.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from ..domain.enums import (
    DiscountType,
    FulfillmentStatus,
    NotificationType,
    OrderStatus,
    PaymentStatus,
    ProductStatus,
)

SLUG_PATTERN = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"


class ProductCreate(BaseModel):
    """Input for creating a product."""

    slug: str = Field(..., min_length=1, max_length=255, pattern=SLUG_PATTERN)
    title: str = Field(..., min_length=1, max_length=255)
    short_description: Optional[str] = None
    long_description: Optional[str] = None
    base_price: Decimal = Field(..., ge=0)
    currency: str = Field(default="EUR", min_length=3, max_length=3)
    sku: Optional[str] = None
    gtin: Optional[str] = None
    status: ProductStatus = ProductStatus.DRAFT
    character_id: Optional[int] = None
    character_value: Optional[str] = None
    etsy_link: Optional[str] = None


class ProductUpdate(BaseModel):
    """Partial update of a product."""

    slug: Optional[str] = Field(None, min_length=1, max_length=255, pattern=SLUG_PATTERN)
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    short_description: Optional[str] = None
    long_description: Optional[str] = None
    base_price: Optional[Decimal] = Field(None, ge=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    sku: Optional[str] = None
    gtin: Optional[str] = None
    status: Optional[ProductStatus] = None
    character_id: Optional[int] = None
    character_value: Optional[str] = None
    etsy_link: Optional[str] = None


class VariantCreate(BaseModel):
    """Input for creating a product variant."""

    product_id: int
    sku: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    attributes: Optional[Dict[str, Any]] = None
    price_adjustment: Decimal = Decimal("0")
    stock: int = Field(default=0, ge=0)


class VariantUpdate(BaseModel):
    """Partial update of a variant. Stock changes go through the stock operations."""

    sku: Optional[str] = Field(None, min_length=1)
    name: Optional[str] = Field(None, min_length=1)
    attributes: Optional[Dict[str, Any]] = None
    price_adjustment: Optional[Decimal] = None


class ImageCreate(BaseModel):
    """Input for attaching an image; appended last when no position is given."""

    product_id: int
    url: str = Field(..., min_length=1)
    alt_text: Optional[str] = None
    position: Optional[int] = Field(None, ge=0)


class ImageUpdate(BaseModel):
    """Partial update of an image. A new position moves the row."""

    url: Optional[str] = Field(None, min_length=1)
    alt_text: Optional[str] = None
    position: Optional[int] = Field(None, ge=0)


class CategoryCreate(BaseModel):
    """Input for creating a category."""

    name: str = Field(..., min_length=1, max_length=255)
    slug: str = Field(..., min_length=1, max_length=255, pattern=SLUG_PATTERN)
    description: Optional[str] = None
    parent_id: Optional[int] = None


class CategoryUpdate(BaseModel):
    """Partial update of a category."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    slug: Optional[str] = Field(None, min_length=1, max_length=255, pattern=SLUG_PATTERN)
    description: Optional[str] = None
    parent_id: Optional[int] = None


class OrderLineCreate(BaseModel):
    """One requested order line. Prices are captured as given."""

    product_id: int
    variant_id: Optional[int] = None
    product_name: str = Field(..., min_length=1)
    variant_name: Optional[str] = None
    sku: Optional[str] = None
    quantity: int = Field(..., gt=0)
    unit_price: Decimal = Field(..., ge=0)

    @property
    def total_price(self) -> Decimal:
        return self.unit_price * self.quantity


class OrderCreate(BaseModel):
    """Input for creating an order with its lines.

    Totals are computed by the pricing collaborator and stored as given.
    """

    user_id: Optional[int] = None
    customer_email: str = Field(..., min_length=3, pattern=r"^[^@\s]+@[^@\s]+$")
    customer_name: str = Field(..., min_length=1)
    subtotal: Decimal = Field(..., ge=0)
    tax: Decimal = Field(default=Decimal("0"), ge=0)
    discount: Decimal = Field(default=Decimal("0"), ge=0)
    total: Decimal = Field(..., ge=0)
    currency: str = "EUR"
    payment_method: Optional[str] = None
    payment_intent_id: Optional[str] = None
    shipping_address: Optional[Dict[str, Any]] = None
    billing_address: Optional[Dict[str, Any]] = None
    notes: Optional[str] = None
    items: List[OrderLineCreate] = Field(..., min_length=1)


class OrderUpdate(BaseModel):
    """Partial update of an order header."""

    status: Optional[OrderStatus] = None
    payment_status: Optional[PaymentStatus] = None
    payment_intent_id: Optional[str] = None
    payment_method: Optional[str] = None
    fulfillment_status: Optional[FulfillmentStatus] = None
    shipping_address: Optional[Dict[str, Any]] = None
    billing_address: Optional[Dict[str, Any]] = None
    notes: Optional[str] = None


class CartItemCreate(BaseModel):
    """Input for adding a line to a cart."""

    product_id: int
    variant_id: Optional[int] = None
    quantity: int = Field(..., gt=0)
    price_at_time: Decimal = Field(..., ge=0)


class DiscountCodeCreate(BaseModel):
    """Input for creating a discount code."""

    code: str = Field(..., min_length=1, max_length=64)
    type: DiscountType
    value: Decimal = Field(..., ge=0)
    min_order_value: Optional[Decimal] = Field(None, ge=0)
    max_uses: Optional[int] = Field(None, ge=1)
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    is_active: bool = True


class DiscountCodeUpdate(BaseModel):
    """Partial update of a discount code."""

    code: Optional[str] = Field(None, min_length=1, max_length=64)
    type: Optional[DiscountType] = None
    value: Optional[Decimal] = Field(None, ge=0)
    min_order_value: Optional[Decimal] = Field(None, ge=0)
    max_uses: Optional[int] = Field(None, ge=1)
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    is_active: Optional[bool] = None


class NotificationCreate(BaseModel):
    """Input for creating a notification."""

    type: NotificationType
    title: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    metadata: Optional[Dict[str, Any]] = None


class AuditLogCreate(BaseModel):
    """Input for recording an audited action."""

    action: str = Field(..., min_length=1)
    resource_type: str = Field(..., min_length=1)
    resource_id: Optional[Union[int, str]] = None
    user_id: Optional[int] = None
    changes: Optional[Dict[str, Any]] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
