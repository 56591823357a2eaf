"""Datetime helpers shared by the store, the formatter and the scanner.

All timestamps are handled as timezone-aware UTC datetimes. SQLite drops
tzinfo on the way back out, so anything read from the store goes through
as_utc() before it is compared or formatted.
"""

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Return value as an aware UTC datetime; naive values are taken to be UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
