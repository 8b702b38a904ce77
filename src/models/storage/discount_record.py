"""Discount code storage mapping."""

from typing import Dict, Tuple

from ..domain.discount import DiscountCode
from ...utils.timestamps import to_iso
from .base_record import BaseRecord
from .keys import METADATA, OPEN_END_DATE, EntityPrefix, EntityType, Index, index_key, primary_key


class DiscountCodeRecord(BaseRecord[DiscountCode]):
    """Discount code row.

    GSI1: case-insensitive code lookup. GSI2: codes by active flag, ordered by
    expiry (open-ended codes sort last).
    """

    entity_type = EntityType.DISCOUNT_CODE
    model = DiscountCode

    @staticmethod
    def code_partition(code: str) -> str:
        return f"DISCOUNT_CODE#{code.strip().upper()}"

    @staticmethod
    def active_partition(is_active: bool) -> str:
        return f"DISCOUNT_ACTIVE#{'true' if is_active else 'false'}"

    @classmethod
    def key(cls, entity: DiscountCode) -> Tuple[str, str]:
        return primary_key(EntityPrefix.DISCOUNT, entity.id)

    @classmethod
    def index_attributes(cls, entity: DiscountCode) -> Dict[str, str]:
        valid_until = to_iso(entity.valid_until) if entity.valid_until else OPEN_END_DATE
        return {
            **index_key(Index.GSI1, cls.code_partition(entity.code), METADATA),
            **index_key(Index.GSI2, cls.active_partition(entity.is_active), valid_until),
        }
