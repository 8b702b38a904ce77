"""Order lifecycle operations on top of the order repository."""

from typing import TYPE_CHECKING, Any, Dict, Optional

from aws_lambda_powertools.logging import Logger

from ..models.domain.enums import FulfillmentStatus, OrderStatus, PaymentStatus
from ..models.domain.order import Order
from .audit import AuditRecorder
from .notifications import NotificationPublisher

if TYPE_CHECKING:
    from ..repositories.dynamodb_order import DynamoDBOrderRepository

logger = Logger()


class OrderService:
    """Payment, fulfillment and cancellation of existing orders.

    Notifications and audit entries are side effects: their failure is
    logged and never undoes or fails the order change.
    """

    def __init__(
        self,
        orders: "DynamoDBOrderRepository",
        notifications: Optional[NotificationPublisher] = None,
        audit: Optional[AuditRecorder] = None,
    ) -> None:
        self.orders = orders
        self.notifications = notifications
        self.audit = audit

    async def mark_paid(
        self, order_id: int, payment_intent_id: Optional[str] = None
    ) -> Order:
        """Record a successful payment; a pending order moves to processing."""
        current = await self.orders.get(order_id)
        changes: Dict[str, Any] = {"payment_status": PaymentStatus.PAID}
        if payment_intent_id:
            changes["payment_intent_id"] = payment_intent_id
        if current.status == OrderStatus.PENDING:
            changes["status"] = OrderStatus.PROCESSING
        order = await self.orders.update(order_id, changes)
        await self._after_change(order, "order.paid", {"payment_status": PaymentStatus.PAID.value})
        await self._notify("order_paid", order)
        return order

    async def mark_shipped(self, order_id: int) -> Order:
        """Move a processing order to shipped and fully fulfilled."""
        order = await self.orders.update(
            order_id,
            {"status": OrderStatus.SHIPPED, "fulfillment_status": FulfillmentStatus.FULFILLED},
        )
        await self._after_change(order, "order.shipped", {"status": OrderStatus.SHIPPED.value})
        await self._notify("order_shipped", order)
        return order

    async def update_status(self, order_id: int, status: OrderStatus) -> Order:
        order = await self.orders.update_status(order_id, status)
        await self._after_change(order, "order.status_changed", {"status": status.value})
        return order

    async def cancel(self, order_id: int) -> Order:
        """Cancel an order and soft-delete it.

        Raises:
            EntityValidationError: If the order can no longer be cancelled
        """
        await self.orders.update_status(order_id, OrderStatus.CANCELLED)
        order = await self.orders.soft_delete(order_id)
        await self._after_change(order, "order.cancelled", {"status": OrderStatus.CANCELLED.value})
        return order

    async def _after_change(self, order: Order, action: str, changes: Dict[str, Any]) -> None:
        logger.info(
            "Order changed",
            extra={"order_id": order.id, "order_number": order.order_number, "action": action},
        )
        if self.audit is None:
            return
        try:
            await self.audit.record(action, "order", order.id, changes=changes)
        except Exception:
            logger.exception("Audit entry not written", extra={"order_id": order.id, "action": action})

    async def _notify(self, fact: str, order: Order) -> None:
        if self.notifications is None:
            return
        try:
            await getattr(self.notifications, fact)(order)
        except Exception:
            logger.exception("Notification failed", extra={"order_id": order.id, "fact": fact})
