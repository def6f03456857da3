"""Time and identifier helpers."""

from .ids import new_application_id, new_invite_id, new_notification_id
from .timestamps import ensure_utc, format_timestamp, parse_timestamp, utc_now

__all__ = [
    "ensure_utc",
    "format_timestamp",
    "new_application_id",
    "new_invite_id",
    "new_notification_id",
    "parse_timestamp",
    "utc_now",
]
