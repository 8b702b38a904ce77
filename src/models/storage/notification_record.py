"""Notification storage mapping."""

from typing import Dict, Tuple

from ..domain.notification import Notification
from ...utils.timestamps import to_iso
from .base_record import BaseRecord
from .keys import EntityPrefix, EntityType, Index, index_key, primary_key


class NotificationRecord(BaseRecord[Notification]):
    """Notification row. GSI1: by read flag. GSI2: by type. Both newest last."""

    entity_type = EntityType.NOTIFICATION
    model = Notification

    @staticmethod
    def read_partition(is_read: bool) -> str:
        return f"NOTIFICATION_READ#{'true' if is_read else 'false'}"

    @staticmethod
    def type_partition(notification_type: str) -> str:
        return f"NOTIFICATION_TYPE#{notification_type}"

    @classmethod
    def key(cls, entity: Notification) -> Tuple[str, str]:
        return primary_key(EntityPrefix.NOTIFICATION, entity.id)

    @classmethod
    def index_attributes(cls, entity: Notification) -> Dict[str, str]:
        created = to_iso(entity.created_at)
        return {
            **index_key(Index.GSI1, cls.read_partition(entity.is_read), created),
            **index_key(Index.GSI2, cls.type_partition(entity.type.value), created),
        }
