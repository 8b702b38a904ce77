"""TTL helpers.

The store deletes expired items in the background, best effort and possibly
days late. The ``ttl`` attribute is therefore advisory: readers use
:func:`is_expired` to hide rows whose expiry already passed.
"""

from datetime import datetime, timedelta
from typing import Any, Mapping, Optional

from .timestamps import utc_now


def expiry_timestamp(days: int, start: Optional[datetime] = None) -> int:
    """Epoch seconds ``days`` after ``start`` (default: now)."""
    if days <= 0:
        raise ValueError(f"TTL days must be positive, got {days}")
    start = start or utc_now()
    return int((start + timedelta(days=days)).timestamp())


def is_expired(item: Mapping[str, Any], now: Optional[datetime] = None) -> bool:
    """True when the item carries a ttl that is already in the past."""
    ttl = item.get("ttl")
    if ttl is None:
        return False
    now = now or utc_now()
    return int(ttl) <= int(now.timestamp())
