"""Segment building for lift status timelines.

Turns one lift's normalized status list into run-length segments over a fixed
grid of display cells. The grid is the same for every lift and every day
(``len(displayed_hours) * segments_per_hour`` cells), so timelines line up
when shown side by side.

Every cell of the grid is covered exactly once. Cells with no known status,
before the first event, between runs, after the data stops or in the
future, are filled with ``StatusCode.NO_DATA``.
"""

import logging
import math
from dataclasses import replace
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, Sequence

from lifttimeline.timeline.models import (
    SEGMENTS_PER_HOUR,
    NormalizedStatus,
    Segment,
    StatusCode,
)
from lifttimeline.timeline.normalizer import grid_minutes_for
from lifttimeline.utils.timezone import ensure_utc, local_date, local_datetime

logger = logging.getLogger(__name__)


def validate_displayed_hours(displayed_hours: Iterable[int]) -> list[int]:
    """Sort and check a displayed-hour window.

    Returns:
        Sorted hours (empty list allowed)

    Raises:
        ValueError: If an hour is outside 0-23 or the hours are not contiguous
    """
    hours = sorted(displayed_hours)
    for hour in hours:
        if isinstance(hour, bool) or not isinstance(hour, int) or not 0 <= hour <= 23:
            raise ValueError(f"Invalid displayed hour: {hour!r}. Must be an int in 0-23")
    if hours and hours[-1] - hours[0] + 1 != len(hours):
        raise ValueError(f"Displayed hours must be a contiguous range, got {hours}")
    return hours


def display_window(day: date, hours: Sequence[int]) -> tuple[datetime, datetime]:
    """UTC ``[start, end)`` of the display window on a civil day.

    Start is the first displayed hour at minute 0, end is one hour past the
    last displayed hour.
    """
    start = local_datetime(day, hours[0]).astimezone(timezone.utc)
    end = local_datetime(day, hours[-1] + 1).astimezone(timezone.utc)
    return start, end


def build_segments(
    normalized: Sequence[NormalizedStatus],
    displayed_hours: Iterable[int],
    fallback_date: date,
    now: datetime,
    segments_per_hour: int = SEGMENTS_PER_HOUR,
) -> list[Segment]:
    """Build the gap-filled segment list for one lift.

    Args:
        normalized: Output of ``normalize_events`` for one lift
        displayed_hours: Contiguous local hours shown on the timeline (e.g. 7-19)
        fallback_date: Civil day used when ``normalized`` is empty
        now: Current instant; nothing after it is filled with a real status
        segments_per_hour: Grid resolution

    Returns:
        Segments partitioning ``[0, total_segments)`` with no two adjacent
        segments sharing a status. Empty when ``displayed_hours`` is empty.
        Before the day ends a real status reaches at most the cell that
        contains ``now``; later cells are NO_DATA.

    Raises:
        ValueError: If ``displayed_hours`` or ``segments_per_hour`` is invalid
    """
    grid_minutes = grid_minutes_for(segments_per_hour)
    hours = validate_displayed_hours(displayed_hours)
    if not hours:
        return []

    total_segments = len(hours) * segments_per_hour
    base_day = local_date(normalized[0].rounded_at) if normalized else fallback_date
    start_time, end_time = display_window(base_day, hours)

    if not normalized:
        return [_no_data(start_time, grid_minutes, 0, total_segments)]

    runs = _status_runs(
        normalized,
        start_time,
        end_time,
        ensure_utc(now),
        total_segments,
        grid_minutes,
    )
    segments = _fill_gaps(runs, start_time, total_segments, grid_minutes)
    logger.debug(
        f"Built {len(segments)} segments ({len(runs)} with status) "
        f"over {total_segments} cells for {base_day}"
    )
    return segments


def _status_runs(
    normalized: Sequence[NormalizedStatus],
    start_time: datetime,
    end_time: datetime,
    now: datetime,
    total_segments: int,
    grid_minutes: int,
) -> list[Segment]:
    """Segments for entries that fall inside the window, before gap filling."""
    entries = sorted(
        (e for e in normalized if start_time <= e.rounded_at < end_time and e.rounded_at <= now),
        key=lambda e: e.rounded_at,
    )

    runs: list[Segment] = []
    for i, entry in enumerate(entries):
        start_index = _cell_index(entry.rounded_at - start_time, grid_minutes)
        natural_end = entries[i + 1].rounded_at if i + 1 < len(entries) else end_time

        # Never extend into the future
        segment_end = now if now < natural_end else natural_end

        minutes = int((segment_end - entry.rounded_at).total_seconds() // 60)
        count = max(1, math.ceil(minutes / grid_minutes))
        count = min(count, total_segments - start_index)

        segment = Segment(
            status=entry.status,
            created_at=entry.created_at,
            rounded_at=entry.rounded_at,
            start_index=start_index,
            count=count,
        )

        # Coalesce touching runs of the same status; a gap keeps them apart
        previous = runs[-1] if runs else None
        if (
            previous is not None
            and previous.status == segment.status
            and previous.end_index == segment.start_index
        ):
            runs[-1] = replace(previous, count=previous.count + segment.count)
        else:
            runs.append(segment)

    return runs


def _fill_gaps(
    runs: list[Segment],
    start_time: datetime,
    total_segments: int,
    grid_minutes: int,
) -> list[Segment]:
    """Fill the leading, inner and trailing gaps with NO_DATA segments."""
    filled: list[Segment] = []
    cursor = 0

    for segment in runs:
        if segment.start_index > cursor:
            filled.append(
                _no_data(start_time, grid_minutes, cursor, segment.start_index - cursor)
            )
        filled.append(segment)
        cursor = segment.end_index

    if cursor < total_segments:
        filled.append(_no_data(start_time, grid_minutes, cursor, total_segments - cursor))

    return filled


def _no_data(start_time: datetime, grid_minutes: int, start_index: int, count: int) -> Segment:
    at = start_time + timedelta(minutes=start_index * grid_minutes)
    return Segment(
        status=StatusCode.NO_DATA,
        created_at=at,
        rounded_at=at,
        start_index=start_index,
        count=count,
    )


def _cell_index(offset: timedelta, grid_minutes: int) -> int:
    return int(offset.total_seconds() // (grid_minutes * 60))
