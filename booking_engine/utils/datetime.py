"""UTC datetime utilities."""

from datetime import date, datetime, time, timezone


def utc_now() -> datetime:
    """
    Return current UTC time as timezone-aware datetime.

    This function should be used instead of datetime.now() or datetime.utcnow()
    to ensure all timestamps are timezone-aware and stored in UTC.

    Returns:
        Timezone-aware datetime in UTC

    Example:
        >>> now = utc_now()
        >>> now.tzinfo
        datetime.timezone.utc
    """
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """
    Normalize a datetime to timezone-aware UTC.

    Naive values are taken to already be UTC (that is how they come back from
    databases without a timezone-aware timestamp type).

    Args:
        value: Naive or aware datetime

    Returns:
        Aware datetime in UTC
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def start_of_day(day: date) -> datetime:
    """Return midnight UTC at the beginning of ``day``."""
    return datetime.combine(day, time.min, tzinfo=timezone.utc)
