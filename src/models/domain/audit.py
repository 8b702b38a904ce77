"""Audit log domain model."""

from datetime import datetime
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, Field


class AuditLog(BaseModel):
    """An append-only record of an action performed on a resource."""

    id: str = Field(..., description="Date-prefixed unique identifier")
    action: str
    resource_type: str
    resource_id: Optional[Union[int, str]] = None
    user_id: Optional[int] = None
    changes: Optional[Dict[str, Any]] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime
    ttl: Optional[int] = Field(None, description="Retention hint, epoch seconds")
