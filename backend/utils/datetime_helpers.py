"""Datetime utility functions for timezone handling."""
from datetime import datetime, UTC
from typing import Optional


def utc_now() -> datetime:
    """Return the current time as a UTC-aware datetime."""
    return datetime.now(UTC)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Ensure datetime is timezone-aware in UTC.

    SQLite hands back timezone-naive datetimes even for ``timezone=True``
    columns, so values read from the database are treated as UTC. Aware
    values in another zone are converted.

    Example:
        >>> naive_dt = datetime(2025, 1, 1, 12, 0, 0)
        >>> ensure_utc(naive_dt).tzinfo == UTC
        True

        >>> ensure_utc(None) is None
        True
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def is_past(dt: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """Return True when ``dt`` is set and strictly before ``now``."""
    if dt is None:
        return False
    return ensure_utc(dt) < (now or utc_now())
