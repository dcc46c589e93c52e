"""
Date utility functions for the application.

Scheduling works in whole calendar days; these helpers keep every caller
on `datetime.date` values.
"""
from datetime import date, datetime, timedelta, timezone
from typing import Optional


def to_date(value) -> Optional[date]:
    """
    Coerce a date, datetime or ISO string (YYYY-MM-DD or full ISO timestamp) to a date.

    Args:
        value: date, datetime, ISO string, or None

    Returns:
        date or None if value is None/empty

    Raises:
        ValueError: if a string cannot be parsed
    """
    if value is None or value == '':
        return None

    if isinstance(value, datetime):
        return value.date()

    if isinstance(value, date):
        return value

    if isinstance(value, str):
        text = value.strip()
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            raise ValueError(f"Invalid date '{value}': expected YYYY-MM-DD")

    raise ValueError(f"Invalid date {value!r}: expected YYYY-MM-DD")


def add_days(start: date, days: int) -> date:
    """Add calendar days to a date."""
    return start + timedelta(days=days)


def subtract_days(start: date, days: int) -> date:
    """Subtract calendar days from a date."""
    return start - timedelta(days=days)


def days_between(earlier: date, later: date) -> int:
    """Signed number of calendar days from `earlier` to `later`."""
    return (later - earlier).days


def format_date(d: Optional[date]) -> Optional[str]:
    """ISO format for JSON payloads, or None."""
    if d is None:
        return None
    return d.isoformat()


def format_date_display(d: Optional[date]) -> str:
    """Readable format like "February 3, 2025"."""
    if d is None:
        return 'None'
    return f"{d.strftime('%B')} {d.day}, {d.year}"


def utcnow() -> datetime:
    """Naive UTC timestamp, the format stored in DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
