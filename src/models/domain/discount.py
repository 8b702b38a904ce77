"""Discount code domain model."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from ...utils.timestamps import as_utc
from .enums import DiscountType


class DiscountCode(BaseModel):
    """A redeemable discount code. Codes are matched case-insensitively."""

    id: int
    code: str = Field(..., min_length=1)
    type: DiscountType
    value: Decimal = Field(..., ge=0)
    min_order_value: Optional[Decimal] = None
    max_uses: Optional[int] = Field(None, ge=1)
    times_used: int = Field(default=0, ge=0)
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    is_active: bool = True
    created_at: datetime
    updated_at: datetime
    deleted_at: Optional[datetime] = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def is_valid_at(self, moment: datetime) -> bool:
        """Check activity, validity window and usage cap at the given moment.

        Naive datetimes are taken to be UTC.
        """
        if not self.is_active or self.is_deleted:
            return False
        moment = as_utc(moment)
        if self.valid_from and moment < as_utc(self.valid_from):
            return False
        if self.valid_until and moment > as_utc(self.valid_until):
            return False
        if self.max_uses is not None and self.times_used >= self.max_uses:
            return False
        return True
