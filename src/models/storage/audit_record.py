"""Audit log storage mapping."""

from typing import Any, Dict, Optional, Tuple

from ..domain.audit import AuditLog
from ...utils.timestamps import to_iso
from .base_record import BaseRecord
from .keys import EntityPrefix, EntityType, Index, index_key, primary_key

SYSTEM_ACTOR = "AUDIT_SYSTEM"


class AuditLogRecord(BaseRecord[AuditLog]):
    """Audit row, one partition per entry (``AUDIT#<date>#<uuid>``).

    GSI1: entries for a resource. GSI2: entries by acting user, or the
    system partition. GSI3: entries by action. All sort by creation time.
    """

    entity_type = EntityType.AUDIT_LOG
    model = AuditLog

    @staticmethod
    def resource_partition(resource_type: str, resource_id: Optional[Any] = None) -> str:
        return f"AUDIT_ENTITY#{resource_type}#{'NONE' if resource_id is None else resource_id}"

    @staticmethod
    def user_partition(user_id: Optional[int]) -> str:
        return SYSTEM_ACTOR if user_id is None else f"AUDIT_USER#{user_id}"

    @staticmethod
    def action_partition(action: str) -> str:
        return f"AUDIT_ACTION#{action}"

    @classmethod
    def key(cls, entity: AuditLog) -> Tuple[str, str]:
        return primary_key(EntityPrefix.AUDIT, entity.id)

    @classmethod
    def index_attributes(cls, entity: AuditLog) -> Dict[str, str]:
        created = to_iso(entity.created_at)
        return {
            **index_key(
                Index.GSI1,
                cls.resource_partition(entity.resource_type, entity.resource_id),
                created,
            ),
            **index_key(Index.GSI2, cls.user_partition(entity.user_id), created),
            **index_key(Index.GSI3, cls.action_partition(entity.action), created),
        }
