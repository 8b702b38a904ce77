"""DynamoDB implementation of the audit log repository."""

import uuid
from typing import Any, Dict, NoReturn, Optional, Tuple

from ..exceptions import EntityValidationError
from ..models.api.requests import AuditLogCreate
from ..models.domain.audit import AuditLog
from ..models.storage.audit_record import AuditLogRecord
from ..models.storage.keys import EntityPrefix, Index, day_of, primary_key
from ..models.storage.operations import QuerySpec
from ..utils.pagination import Page
from .dynamodb_base import DynamoDBRepository


class DynamoDBAuditLogRepository(DynamoDBRepository[AuditLog]):
    """Append-only audit entries: ``AUDIT#<date>#<uuid>/METADATA``.

    Entries carry a retention TTL and are never updated or deleted through
    the repository.
    """

    record = AuditLogRecord
    entity_name = "AuditLog"
    soft_deletable = False
    ttl_setting = "audit_ttl_days"

    def key_for(self, entity_id: Any) -> Tuple[str, str]:
        return primary_key(EntityPrefix.AUDIT, entity_id)

    async def _before_create(self, values: Dict[str, Any]) -> None:
        if values.get("id") is None:
            values["id"] = f"{day_of(values['created_at']).isoformat()}#{uuid.uuid4()}"

    async def record(self, data: AuditLogCreate) -> AuditLog:
        """Append an entry."""
        return await self.create(data)

    def _append_only(self) -> NoReturn:
        raise EntityValidationError(
            "Audit log entries cannot be changed", code="APPEND_ONLY"
        )

    async def update(self, entity_id: Any, changes: Any) -> AuditLog:
        self._append_only()

    async def hard_delete(self, entity_id: Any) -> None:
        self._append_only()

    def _newest_first(self, index: Index, partition_value: str) -> QuerySpec:
        return QuerySpec(pk_value=partition_value, index=index, scan_forward=False)

    async def find_by_resource(
        self,
        resource_type: str,
        resource_id: Optional[Any] = None,
        cursor: Optional[str] = None,
        page_size: Optional[int] = None,
    ) -> Page[AuditLog]:
        """Entries about one resource, newest first."""
        return await self._list(
            self._newest_first(
                Index.GSI1, AuditLogRecord.resource_partition(resource_type, resource_id)
            ),
            cursor=cursor,
            page_size=page_size,
        )

    async def find_by_user(
        self,
        user_id: Optional[int],
        cursor: Optional[str] = None,
        page_size: Optional[int] = None,
    ) -> Page[AuditLog]:
        """Entries by an acting user (system entries when None), newest first."""
        return await self._list(
            self._newest_first(Index.GSI2, AuditLogRecord.user_partition(user_id)),
            cursor=cursor,
            page_size=page_size,
        )

    async def find_by_action(
        self,
        action: str,
        cursor: Optional[str] = None,
        page_size: Optional[int] = None,
    ) -> Page[AuditLog]:
        """Entries of one action, newest first."""
        return await self._list(
            self._newest_first(Index.GSI3, AuditLogRecord.action_partition(action)),
            cursor=cursor,
            page_size=page_size,
        )
