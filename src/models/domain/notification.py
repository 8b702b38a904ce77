"""Notification domain model."""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from .enums import NotificationType


class Notification(BaseModel):
    """An admin-facing notification. Expires through TTL."""

    id: int
    type: NotificationType
    title: str
    message: str
    metadata: Optional[Dict[str, Any]] = None
    is_read: bool = False
    read_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    ttl: Optional[int] = Field(None, description="Expiry, epoch seconds")
