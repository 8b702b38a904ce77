"""DynamoDB implementation of the notification repository."""

from typing import Any, Optional, Tuple

from aws_lambda_powertools.logging import Logger

from ..exceptions import ConflictError, EntityNotFoundError
from ..models.domain.enums import NotificationType
from ..models.domain.notification import Notification
from ..models.storage.keys import EntityPrefix, Index, primary_key
from ..models.storage.notification_record import NotificationRecord
from ..models.storage.operations import QuerySpec
from ..services.counter import NOTIFICATION_ID
from ..utils.pagination import Page
from ..utils.timestamps import utc_now
from .dynamodb_base import DynamoDBRepository

logger = Logger()


class DynamoDBNotificationRepository(DynamoDBRepository[Notification]):
    """Admin notifications: ``NOTIFICATION#<id>/METADATA``, expiring through TTL."""

    record = NotificationRecord
    entity_name = "Notification"
    counter_name = NOTIFICATION_ID
    soft_deletable = False
    ttl_setting = "notification_ttl_days"
    immutable_fields = frozenset({"id", "type", "created_at", "deleted_at"})

    def key_for(self, entity_id: Any) -> Tuple[str, str]:
        return primary_key(EntityPrefix.NOTIFICATION, entity_id)

    def _read_query(self, is_read: bool) -> QuerySpec:
        return QuerySpec(
            pk_value=NotificationRecord.read_partition(is_read),
            index=Index.GSI1,
            scan_forward=False,
        )

    async def list(
        self,
        is_read: bool = False,
        cursor: Optional[str] = None,
        page_size: Optional[int] = None,
    ) -> Page[Notification]:
        """Read or unread notifications, newest first."""
        return await self._list(self._read_query(is_read), cursor=cursor, page_size=page_size)

    async def list_unread(
        self, cursor: Optional[str] = None, page_size: Optional[int] = None
    ) -> Page[Notification]:
        return await self.list(False, cursor, page_size)

    async def list_by_type(
        self,
        notification_type: NotificationType,
        cursor: Optional[str] = None,
        page_size: Optional[int] = None,
    ) -> Page[Notification]:
        """Notifications of one type, newest first."""
        return await self._list(
            QuerySpec(
                pk_value=NotificationRecord.type_partition(notification_type.value),
                index=Index.GSI2,
                scan_forward=False,
            ),
            cursor=cursor,
            page_size=page_size,
        )

    async def mark_as_read(self, notification_id: int) -> Notification:
        """Flag a notification read; the read index entry moves in the same write."""
        notification = await self.get(notification_id)
        if notification.is_read:
            return notification
        return await self.update(notification_id, {"is_read": True, "read_at": utc_now()})

    async def mark_all_as_read(self) -> int:
        """Flag every unread notification read. Returns the number changed."""
        items = await self.dynamodb_client.query_all(self._read_query(False))
        changed = 0
        for item in items:
            if not self._visible(item):
                continue
            notification = self._decode(item)
            try:
                await self.update(notification.id, {"is_read": True, "read_at": utc_now()})
            except (EntityNotFoundError, ConflictError):
                # Expired or changed by a concurrent writer
                logger.debug(
                    "Skipped notification", extra={"notification_id": notification.id}
                )
                continue
            changed += 1
        logger.info("Marked notifications read", extra={"count": changed})
        return changed

    async def unread_count(self) -> int:
        items = await self.dynamodb_client.query_all(self._read_query(False))
        return sum(1 for item in items if self._visible(item))
