"""Storage mappings for carts and cart lines."""

from typing import Dict, Tuple

from ..domain.cart import Cart, CartItem
from ...utils.timestamps import to_iso
from .base_record import BaseRecord
from .keys import ChildTag, EntityPrefix, EntityType, Index, child_key, index_key, pad, primary_key


class CartRecord(BaseRecord[Cart]):
    """Cart header row keyed by session. GSI1: carts of a user (sparse)."""

    entity_type = EntityType.CART
    model = Cart

    @staticmethod
    def user_partition(user_id: int) -> str:
        return f"CART_USER#{user_id}"

    @staticmethod
    def key_for(session_id: str) -> Tuple[str, str]:
        return primary_key(EntityPrefix.CART, session_id)

    @classmethod
    def key(cls, entity: Cart) -> Tuple[str, str]:
        return cls.key_for(entity.session_id)

    @classmethod
    def index_attributes(cls, entity: Cart) -> Dict[str, str]:
        if entity.user_id is None:
            return {}
        return index_key(
            Index.GSI1, cls.user_partition(entity.user_id), to_iso(entity.updated_at)
        )


class CartItemRecord(BaseRecord[CartItem]):
    """Cart line row under its cart."""

    entity_type = EntityType.CART_ITEM
    model = CartItem

    @staticmethod
    def key_for(session_id: str, item_id: int) -> Tuple[str, str]:
        return child_key(EntityPrefix.CART, session_id, ChildTag.ITEM, pad(item_id))

    @classmethod
    def key(cls, entity: CartItem) -> Tuple[str, str]:
        return cls.key_for(entity.session_id, entity.id)
