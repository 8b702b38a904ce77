"""UTC timestamp helpers shared by keys, codecs and repositories."""

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """Current time as an aware UTC datetime with millisecond precision."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def as_utc(moment: Optional[datetime]) -> Optional[datetime]:
    """Convert a datetime to aware UTC. Naive datetimes are taken to be UTC."""
    if moment is None:
        return None
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def to_iso(moment: datetime) -> str:
    """Format a datetime as a fixed-width UTC ISO-8601 string.

    Every timestamp written to the table goes through this function, so
    lexicographic order of stored values equals chronological order.
    Naive datetimes are taken to be UTC.
    """
    return as_utc(moment).isoformat(timespec="milliseconds")


def from_iso(value: str) -> datetime:
    """Parse an ISO-8601 string, accepting the 'Z' suffix."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return as_utc(datetime.fromisoformat(value))
