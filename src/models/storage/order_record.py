"""Storage mappings for orders, order lines and order-number locks."""

from typing import Any, Dict, Tuple

from ..domain.order import Order, OrderItem
from ...utils.timestamps import to_iso
from .base_record import BaseRecord
from .keys import (
    ChildTag,
    EntityPrefix,
    EntityType,
    Index,
    child_key,
    index_key,
    order_number_lock_key,
    pad,
    partition_key,
    primary_key,
)


class OrderRecord(BaseRecord[Order]):
    """Order header row.

    GSI1: order number lookup. GSI2: orders of a customer email.
    GSI3: orders by status. Both GSI2 and GSI3 sort by creation time.
    """

    entity_type = EntityType.ORDER
    model = Order

    @staticmethod
    def number_partition(order_number: str) -> str:
        return partition_key(EntityPrefix.ORDER_NUMBER, order_number)

    @staticmethod
    def email_partition(email: str) -> str:
        return f"ORDER_EMAIL#{email.strip().lower()}"

    @staticmethod
    def status_partition(status: str) -> str:
        return f"ORDER_STATUS#{status}"

    @classmethod
    def key(cls, entity: Order) -> Tuple[str, str]:
        return primary_key(EntityPrefix.ORDER, entity.id)

    @classmethod
    def index_attributes(cls, entity: Order) -> Dict[str, str]:
        created = to_iso(entity.created_at)
        return {
            **index_key(
                Index.GSI1,
                cls.number_partition(entity.order_number),
                partition_key(EntityPrefix.ORDER, entity.id),
            ),
            **index_key(Index.GSI2, cls.email_partition(entity.customer_email), created),
            **index_key(Index.GSI3, cls.status_partition(entity.status.value), created),
        }


class OrderItemRecord(BaseRecord[OrderItem]):
    """Order line row under its order, keyed by zero-padded line number."""

    entity_type = EntityType.ORDER_ITEM
    model = OrderItem

    @staticmethod
    def key_for(order_id: int, line_number: int) -> Tuple[str, str]:
        return child_key(EntityPrefix.ORDER, order_id, ChildTag.ITEM, pad(line_number))

    @classmethod
    def key(cls, entity: OrderItem) -> Tuple[str, str]:
        return cls.key_for(entity.order_id, entity.line_number)


def order_number_lock_item(order: Order) -> Dict[str, Any]:
    """Row that reserves an order number for exactly one order."""
    pk, sk = order_number_lock_key(order.order_number)
    return {
        "PK": pk,
        "SK": sk,
        "entity_type": EntityType.ORDER_NUMBER_LOCK.value,
        "order_id": order.id,
        "created_at": to_iso(order.created_at),
    }
