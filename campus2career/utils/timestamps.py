"""UTC time helpers.

All timestamps are handled as timezone-aware UTC datetimes in memory and as
fixed-width ISO 8601 strings at rest, so string order matches time order.
"""

from datetime import datetime, timezone
from typing import Optional

STORAGE_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Convert ``dt`` to UTC, treating naive datetimes as already UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_timestamp(dt: Optional[datetime]) -> Optional[str]:
    """Serialize a datetime for storage (``2026-03-01T10:30:00.000000Z``)."""
    if dt is None:
        return None
    return ensure_utc(dt).strftime(STORAGE_FORMAT)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse a stored or ISO 8601 timestamp string back into a UTC datetime.

    Returns None for empty input or strings that are not valid timestamps.
    """
    if not value:
        return None
    try:
        return datetime.strptime(value, STORAGE_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        pass
    try:
        return ensure_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
    except ValueError:
        return None
