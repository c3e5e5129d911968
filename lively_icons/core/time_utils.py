"""UTC helpers shared by models, services and tasks."""

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Return ``value`` as an aware UTC datetime.

    SQLite hands back naive datetimes even for ``DateTime(timezone=True)``
    columns; those are treated as UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def first_of_next_month(now: Optional[datetime] = None) -> datetime:
    current = now or utc_now()
    if current.month == 12:
        return datetime(current.year + 1, 1, 1, tzinfo=timezone.utc)
    return datetime(current.year, current.month + 1, 1, tzinfo=timezone.utc)


def format_long_date(value: Optional[datetime], fallback: str) -> str:
    """Format as e.g. ``March 1, 2026``."""
    if value is None:
        return fallback
    return f"{value.strftime('%B')} {value.day}, {value.year}"
