"""Append-only recording of actions performed on resources."""

from typing import TYPE_CHECKING, Any, Dict, Optional

from aws_lambda_powertools.logging import Logger

from ..models.api.requests import AuditLogCreate
from ..models.domain.audit import AuditLog

if TYPE_CHECKING:
    from ..repositories.dynamodb_audit_log import DynamoDBAuditLogRepository

logger = Logger()


class AuditRecorder:
    """Writes audit entries through the audit log repository."""

    def __init__(self, audit_logs: "DynamoDBAuditLogRepository") -> None:
        self.audit_logs = audit_logs

    async def record(
        self,
        action: str,
        resource_type: str,
        resource_id: Optional[Any] = None,
        user_id: Optional[int] = None,
        changes: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AuditLog:
        """Append one entry. Errors propagate to the caller."""
        entry = await self.audit_logs.record(
            AuditLogCreate(
                action=action,
                resource_type=resource_type,
                resource_id=resource_id,
                user_id=user_id,
                changes=changes,
                ip_address=ip_address,
                user_agent=user_agent,
            )
        )
        logger.debug(
            "Audit entry recorded",
            extra={"audit_id": entry.id, "action": action, "resource_type": resource_type},
        )
        return entry
