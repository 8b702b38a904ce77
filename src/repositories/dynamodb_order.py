"""DynamoDB implementation of the order repository."""

from datetime import datetime
from typing import Any, List, Optional, Tuple

from aws_lambda_powertools.logging import Logger

from ..clients.dynamodb import DynamoDBClient
from ..config.app import AppConfig
from ..exceptions import EntityValidationError
from ..models.api.requests import OrderCreate
from ..models.domain.enums import OrderStatus
from ..models.domain.order import Order, OrderItem
from ..models.storage.keys import (
    ChildTag,
    EntityPrefix,
    Index,
    child_prefix,
    order_number_lock_key,
    partition_key,
    primary_key,
)
from ..models.storage.operations import QuerySpec
from ..models.storage.order_record import OrderItemRecord, OrderRecord
from ..services.counter import ORDER_ID, CounterService
from ..services.order_transaction import OrderTransactionCoordinator
from ..utils.pagination import Page
from ..utils.timestamps import to_iso
from .dynamodb_base import DynamoDBRepository

logger = Logger()

# Bounds for creation-time sort keys when a date range is open on one side
EARLIEST = "0000"
LATEST = "9999"


class DynamoDBOrderRepository(DynamoDBRepository[Order]):
    """Orders: ``ORDER#<id>/METADATA`` with lines at ``ORDER#<id>/ITEM#<line>``.

    GSI1 resolves an order number, GSI2 lists the orders of a customer email
    and GSI3 lists orders by status; GSI2 and GSI3 sort by creation time.
    Orders are created only through the transaction coordinator.
    """

    record = OrderRecord
    entity_name = "Order"
    counter_name = ORDER_ID
    unique_field = "order_number"
    immutable_fields = frozenset({"id", "order_number", "created_at", "deleted_at"})

    def __init__(
        self,
        dynamodb_client: DynamoDBClient,
        config: AppConfig,
        counters: Optional[CounterService] = None,
        coordinator: Optional[OrderTransactionCoordinator] = None,
    ) -> None:
        super().__init__(dynamodb_client, config, counters)
        self.coordinator = coordinator or OrderTransactionCoordinator(
            dynamodb_client, config, self.counters
        )

    def key_for(self, entity_id: Any) -> Tuple[str, str]:
        return primary_key(EntityPrefix.ORDER, entity_id)

    def unique_partition(self, value: Any) -> str:
        return OrderRecord.number_partition(value)

    async def create(self, data: OrderCreate) -> Order:  # type: ignore[override]
        """Create an order with its lines, decrementing stock atomically.

        See :meth:`OrderTransactionCoordinator.create_order`.
        """
        return await self.coordinator.create_order(data)

    async def find_by_order_number(self, order_number: str) -> Optional[Order]:
        return await self.find_by_unique_field(order_number)

    async def find_by_customer_email(
        self,
        email: str,
        cursor: Optional[str] = None,
        page_size: Optional[int] = None,
    ) -> Page[Order]:
        """Orders placed with an email address, newest first."""
        return await self._list(
            QuerySpec(
                pk_value=OrderRecord.email_partition(email),
                index=Index.GSI2,
                scan_forward=False,
            ),
            cursor=cursor,
            page_size=page_size,
        )

    async def list(
        self,
        status: Optional[OrderStatus] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        cursor: Optional[str] = None,
        page_size: Optional[int] = None,
    ) -> Page[Order]:
        """Orders newest first, optionally limited to a status and a date range.

        With a status this is one paginated index query. Without one, every
        status partition is queried and the results merged; that page is
        best effort and carries no cursor.
        """
        between = (
            to_iso(start_date) if start_date else EARLIEST,
            to_iso(end_date) if end_date else LATEST,
        )
        if status is not None:
            return await self._list(
                QuerySpec(
                    pk_value=OrderRecord.status_partition(status.value),
                    index=Index.GSI3,
                    sk_between=between,
                    scan_forward=False,
                ),
                cursor=cursor,
                page_size=page_size,
            )

        if cursor:
            raise EntityValidationError(
                "Listing orders across all statuses cannot be continued with a cursor",
                code="INVALID_CURSOR",
            )
        limit = self._page_size(page_size)
        orders: List[Order] = []
        for each in OrderStatus:
            page = await self.dynamodb_client.query(
                QuerySpec(
                    pk_value=OrderRecord.status_partition(each.value),
                    index=Index.GSI3,
                    sk_between=between,
                    scan_forward=False,
                    limit=limit,
                    exclude_deleted=True,
                )
            )
            orders.extend(self._decode(item) for item in page.items if self._visible(item))
        orders.sort(key=lambda order: order.created_at, reverse=True)
        orders = orders[:limit]
        return Page(items=orders, next_cursor=None, count=len(orders))

    async def _before_update(self, current: Order, updated: Order) -> None:
        if updated.status != current.status and not current.status.can_transition_to(
            updated.status
        ):
            raise EntityValidationError(
                f"Cannot move order from {current.status.value} to {updated.status.value}",
                code="INVALID_STATUS_TRANSITION",
                details={
                    "order_id": current.id,
                    "from": current.status.value,
                    "to": updated.status.value,
                },
            )

    async def update_status(self, order_id: int, status: OrderStatus) -> Order:
        """Move an order along its lifecycle.

        Raises:
            EntityValidationError: If the transition is not allowed
        """
        order = await self.update(order_id, {"status": status})
        logger.info(
            "Order status changed",
            extra={"order_id": order_id, "status": status.value},
        )
        return order

    async def get_items(self, order_id: int) -> List[OrderItem]:
        """Lines of an order in line-number order."""
        items = await self.dynamodb_client.query_all(
            QuerySpec(
                pk_value=partition_key(EntityPrefix.ORDER, order_id),
                sk_prefix=child_prefix(ChildTag.ITEM),
                consistent_read=True,
            )
        )
        return [OrderItemRecord.from_item(item) for item in items if OrderItemRecord.is_type(item)]

    async def get_with_items(self, order_id: int) -> Order:
        order = await self.get(order_id)
        return order.model_copy(update={"items": await self.get_items(order_id)})

    async def hard_delete(self, entity_id: Any) -> None:
        """Remove the order header, its lines and its order-number lock."""
        order = await self.get(entity_id, include_deleted=True)
        await super().hard_delete(entity_id)
        lines = [OrderItemRecord.key(item) for item in await self.get_items(entity_id)]
        await self.dynamodb_client.batch_write(
            deletes=[*lines, order_number_lock_key(order.order_number)]
        )
