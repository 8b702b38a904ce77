"""Shopping cart domain models."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field


class CartItem(BaseModel):
    """A line in a cart."""

    id: int
    session_id: str
    product_id: int
    variant_id: Optional[int] = None
    quantity: int = Field(..., gt=0)
    price_at_time: Decimal = Field(..., ge=0)
    created_at: datetime
    updated_at: datetime
    ttl: Optional[int] = Field(None, description="Expiry, epoch seconds")


class Cart(BaseModel):
    """A session-scoped cart. Expires through TTL when left idle."""

    session_id: str = Field(..., min_length=1)
    user_id: Optional[int] = None
    discount_code: Optional[str] = None
    discount_amount: Decimal = Field(default=Decimal("0"), ge=0)
    created_at: datetime
    updated_at: datetime
    ttl: Optional[int] = Field(None, description="Expiry, epoch seconds")
    items: List[CartItem] = Field(default_factory=list, exclude=True)
