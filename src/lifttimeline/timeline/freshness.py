"""Freshness policy for computed day timelines.

A day's timeline keeps changing until the lift network shuts down for the
night. After ``final_hour`` local time it is considered final and is never
recomputed. Before that, a result is reused only while the clock stays in the
same grid cell it was computed in.
"""

from datetime import date, datetime, timedelta
from typing import Optional

from lifttimeline.timeline.models import SEGMENTS_PER_HOUR
from lifttimeline.timeline.normalizer import grid_minutes_for
from lifttimeline.utils.timezone import ensure_utc, local_datetime, parse_date_str, to_local

# Local hour after which a day's lift data is assumed complete
FINAL_HOUR = 20

# Cached days older than this are removed by the retention sweep
RETENTION_DAYS = 7


def current_time_segment(now: datetime, segments_per_hour: int = SEGMENTS_PER_HOUR) -> str:
    """Coarse fingerprint of the current local time.

    Example:
        10:07 JST -> "10-0", 10:21 JST -> "10-1"
    """
    grid_minutes = grid_minutes_for(segments_per_hour)
    local_now = to_local(now)
    return f"{local_now.hour}-{local_now.minute // grid_minutes}"


def is_past_final_hour(date_str: str, now: datetime, final_hour: int = FINAL_HOUR) -> bool:
    """Whether ``now`` is at or after ``final_hour``:00 local time on ``date_str``."""
    final_time = local_datetime(parse_date_str(date_str), final_hour)
    return ensure_utc(now) >= final_time


def is_expired(
    date_str: str,
    reference_today: date,
    retention_days: int = RETENTION_DAYS,
) -> bool:
    """Whether ``date_str`` is strictly before ``reference_today - retention_days``.

    Example:
        >>> is_expired("2024-02-01", date(2024, 2, 10), 7)
        True
    """
    cutoff = reference_today - timedelta(days=retention_days)
    return parse_date_str(date_str) < cutoff


def resolve_reference_today(now: datetime, override: Optional[date] = None) -> date:
    """Civil "today" for retention checks, unless a fixed date is configured."""
    if override is not None:
        return override
    return to_local(now).date()
