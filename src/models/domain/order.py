"""Order aggregate: order header and order lines."""

import re
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from .enums import FulfillmentStatus, OrderStatus, PaymentStatus

ORDER_NUMBER_PATTERN = re.compile(r"^ORD-\d{8}-\d{4,}$")


class OrderItem(BaseModel):
    """One line of an order. Prices are captured at order time."""

    order_id: int = Field(..., description="Parent order")
    line_number: int = Field(..., ge=1, description="1-based position within the order")
    product_id: int
    variant_id: Optional[int] = None
    product_name: str
    variant_name: Optional[str] = None
    sku: Optional[str] = None
    quantity: int = Field(..., gt=0)
    unit_price: Decimal = Field(..., ge=0)
    total_price: Decimal = Field(..., ge=0)
    created_at: datetime


class Order(BaseModel):
    """A customer order.

    Attributes:
        id: Auto-increment order identifier
        order_number: Human-facing number, ORD-YYYYMMDD-XXXX
        status: Order lifecycle status
        items: Lines, populated only when explicitly fetched
    """

    id: int = Field(..., description="Auto-increment order identifier")
    order_number: str = Field(..., description="Human-facing order number")
    user_id: Optional[int] = None
    customer_email: str = Field(..., min_length=3)
    customer_name: str = Field(..., min_length=1)
    subtotal: Decimal = Field(..., ge=0)
    tax: Decimal = Field(default=Decimal("0"), ge=0)
    discount: Decimal = Field(default=Decimal("0"), ge=0)
    total: Decimal = Field(..., ge=0)
    currency: str = "EUR"
    status: OrderStatus = OrderStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_intent_id: Optional[str] = None
    payment_method: Optional[str] = None
    fulfillment_status: FulfillmentStatus = FulfillmentStatus.UNFULFILLED
    shipping_address: Optional[Dict[str, Any]] = None
    billing_address: Optional[Dict[str, Any]] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    deleted_at: Optional[datetime] = None
    items: List[OrderItem] = Field(default_factory=list, exclude=True)

    @field_validator("order_number")
    @classmethod
    def _check_order_number(cls, value: str) -> str:
        if not ORDER_NUMBER_PATTERN.match(value):
            raise ValueError(f"Malformed order number: {value}")
        return value

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None
