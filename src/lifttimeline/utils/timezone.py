"""Civil-time helpers for the resort's fixed local zone.

All resorts are in Japan, so local time is JST (UTC+9) with no DST.
Every conversion between stored UTC instants and local wall-clock time
goes through this module.
"""

import re
from datetime import date, datetime, timedelta, timezone

JST = timezone(timedelta(hours=9), "JST")

DATE_STR_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def ensure_utc(dt: datetime) -> datetime:
    """Return an aware UTC datetime. Naive values are taken as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_local(dt: datetime) -> datetime:
    """Convert an instant to JST wall-clock time."""
    return ensure_utc(dt).astimezone(JST)


def utc_now() -> datetime:
    """Current instant as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_date_str(date_str: str) -> date:
    """Parse a ``YYYY-MM-DD`` civil date.

    Raises:
        ValueError: If the string is not in that format or is not a real date
    """
    if not isinstance(date_str, str) or not DATE_STR_PATTERN.match(date_str):
        raise ValueError(f"Invalid date string: {date_str!r}. Expected YYYY-MM-DD")
    return date.fromisoformat(date_str)


def local_datetime(day: date, hour: int = 0, minute: int = 0) -> datetime:
    """Aware JST datetime for a civil date and wall-clock time.

    ``hour`` may be 24, meaning midnight at the start of the next day.
    """
    return datetime(day.year, day.month, day.day, tzinfo=JST) + timedelta(
        hours=hour, minutes=minute
    )


def local_day_bounds(day: date) -> tuple[datetime, datetime]:
    """UTC bounds ``[start, end)`` of a JST civil day."""
    start = local_datetime(day)
    end = start + timedelta(days=1)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def local_date(dt: datetime) -> date:
    """JST civil date of an instant."""
    return to_local(dt).date()
