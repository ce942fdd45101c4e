"""
Datetime utilities for InNet
Timezone-aware "now" helpers plus epoch-millisecond conversions used by share payloads
"""
from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """
    Get current UTC time (replacement for deprecated datetime.utcnow())

    Returns:
        datetime: Current UTC time with timezone awareness
    """
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """
    Attach UTC to naive datetimes (SQLite drops tzinfo on read)

    Example:
        >>> ensure_utc(datetime(2025, 1, 1)).tzinfo
        datetime.timezone.utc
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_epoch_ms(value: datetime) -> int:
    """Convert a datetime to milliseconds since the Unix epoch"""
    return int(ensure_utc(value).timestamp() * 1000)


def now_ms(now: Optional[datetime] = None) -> int:
    """
    Current time in epoch milliseconds (the unit of generatedAt / lastUpdated)

    Example:
        >>> now_ms(datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc))
        1700000000000
    """
    return to_epoch_ms(now or utc_now())


def to_iso(value: Optional[datetime]) -> Optional[str]:
    """ISO-8601 string in UTC, or None"""
    if value is None:
        return None
    return ensure_utc(value).isoformat()
