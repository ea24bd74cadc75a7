"""Timezone helpers.

All timestamps are stored and compared in UTC. SQLite drops tzinfo on
round-trip, so values read back from the database are normalized here.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """Convert datetime to UTC.

    Args:
        dt: Datetime (timezone-aware or naive)

    Returns:
        Datetime in UTC timezone
    """
    if dt.tzinfo is None:
        # Assume UTC if naive
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def isoformat_or_none(dt: datetime | None) -> str | None:
    """Serialize a datetime as an ISO-8601 UTC string, passing None through."""
    if dt is None:
        return None
    return to_utc(dt).isoformat()
