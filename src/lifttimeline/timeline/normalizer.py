"""Normalization of raw lift status events.

Raw events arrive unordered, often several per grid cell, and mostly repeat
the previous status. Normalization sorts them, snaps each to its grid cell and
keeps only the entries that change what a timeline would show.
"""

import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Iterable, Optional

from lifttimeline.timeline.models import (
    SEGMENTS_PER_HOUR,
    NormalizedStatus,
    StatusEvent,
)
from lifttimeline.utils.timezone import ensure_utc

logger = logging.getLogger(__name__)


def grid_minutes_for(segments_per_hour: int) -> int:
    """Width of one grid cell in minutes.

    Raises:
        ValueError: If the hour cannot be split evenly
    """
    if segments_per_hour <= 0 or 60 % segments_per_hour != 0:
        raise ValueError(
            f"segments_per_hour must evenly divide 60, got {segments_per_hour}"
        )
    return 60 // segments_per_hour


def round_to_grid(dt: datetime, grid_minutes: int) -> datetime:
    """Floor an instant to the start of its grid cell.

    Example:
        >>> round_to_grid(datetime(2024, 2, 10, 7, 29, 59), 15)
        datetime.datetime(2024, 2, 10, 7, 15, tzinfo=datetime.timezone.utc)
    """
    dt = ensure_utc(dt)
    floored = dt.replace(second=0, microsecond=0)
    return floored - timedelta(minutes=floored.minute % grid_minutes)


def normalize_events(
    events: Iterable[StatusEvent],
    segments_per_hour: int = SEGMENTS_PER_HOUR,
) -> list[NormalizedStatus]:
    """Collapse one lift's raw events into a minimal grid-aligned list.

    Events are sorted by ``created_at``. A later event in the same grid cell
    replaces the earlier one. An event repeating the last emitted status is
    dropped, except the final event, which is always kept so the tail reflects
    the latest known status.

    Args:
        events: Raw events for a single lift, in any order
        segments_per_hour: Grid resolution

    Returns:
        Normalized entries, ascending, with unique ``rounded_at`` values.
        Empty when there are no events.
    """
    grid_minutes = grid_minutes_for(segments_per_hour)
    ordered = sorted(events, key=lambda e: e.created_at)
    if not ordered:
        return []

    processed: list[NormalizedStatus] = []
    last: Optional[NormalizedStatus] = None

    for i, event in enumerate(ordered):
        rounded_at = round_to_grid(event.created_at, grid_minutes)

        # Same cell: the newer event wins
        if last is not None and last.rounded_at == rounded_at:
            processed.pop()
            last = processed[-1] if processed else None

        is_final_event = i == len(ordered) - 1
        if last is None or last.status != event.status or is_final_event:
            last = NormalizedStatus(
                status=event.status,
                created_at=event.created_at,
                rounded_at=rounded_at,
            )
            processed.append(last)

    logger.debug(f"Normalized {len(ordered)} events into {len(processed)} entries")
    return processed


def group_events_by_lift(
    events: Iterable[StatusEvent],
) -> dict[int, list[StatusEvent]]:
    """Split a resort's events into per-lift lists, preserving input order."""
    grouped: dict[int, list[StatusEvent]] = defaultdict(list)
    for event in events:
        grouped[event.lift_id].append(event)
    return dict(grouped)
