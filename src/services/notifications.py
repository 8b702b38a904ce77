"""Domain facts delivered to the notification collaborator."""

from typing import TYPE_CHECKING, Any, Dict, Protocol

from aws_lambda_powertools.logging import Logger

from ..models.api.requests import NotificationCreate
from ..models.domain.enums import NotificationType
from ..models.domain.order import Order
from ..models.domain.product import ProductVariant

if TYPE_CHECKING:
    from ..repositories.dynamodb_notification import DynamoDBNotificationRepository

logger = Logger()


class NotificationPublisher(Protocol):
    """Receiver of fire-and-forget facts emitted by the core.

    Callers never let a publisher failure affect the result of the
    operation that produced the fact.
    """

    async def order_created(self, order: Order) -> None: ...

    async def order_paid(self, order: Order) -> None: ...

    async def order_shipped(self, order: Order) -> None: ...

    async def low_stock(self, variant: ProductVariant, remaining: int) -> None: ...


class RepositoryNotificationPublisher:
    """Publisher that stores each fact as an admin notification row."""

    def __init__(self, notifications: "DynamoDBNotificationRepository") -> None:
        self.notifications = notifications

    async def _publish(
        self,
        notification_type: NotificationType,
        title: str,
        message: str,
        metadata: Dict[str, Any],
    ) -> None:
        notification = await self.notifications.create(
            NotificationCreate(
                type=notification_type, title=title, message=message, metadata=metadata
            )
        )
        logger.info(
            "Notification published",
            extra={"notification_id": notification.id, "title": title},
        )

    async def order_created(self, order: Order) -> None:
        await self._publish(
            NotificationType.ORDER,
            "New order",
            f"Order {order.order_number} placed by {order.customer_name} ({order.total} {order.currency})",
            {"order_id": order.id, "order_number": order.order_number},
        )

    async def order_paid(self, order: Order) -> None:
        await self._publish(
            NotificationType.SUCCESS,
            "Order paid",
            f"Payment received for order {order.order_number}",
            {"order_id": order.id, "order_number": order.order_number},
        )

    async def order_shipped(self, order: Order) -> None:
        await self._publish(
            NotificationType.INFO,
            "Order shipped",
            f"Order {order.order_number} has been shipped",
            {"order_id": order.id, "order_number": order.order_number},
        )

    async def low_stock(self, variant: ProductVariant, remaining: int) -> None:
        await self._publish(
            NotificationType.WARNING,
            "Low stock",
            f"Variant {variant.sku} ({variant.name}) has {remaining} left",
            {
                "product_id": variant.product_id,
                "variant_id": variant.id,
                "sku": variant.sku,
                "stock": remaining,
            },
        )
