"""Timeline engine: normalization, segment building and freshness policy."""

from lifttimeline.timeline.freshness import (
    FINAL_HOUR,
    RETENTION_DAYS,
    current_time_segment,
    is_expired,
    is_past_final_hour,
    resolve_reference_today,
)
from lifttimeline.timeline.models import (
    SEGMENTS_PER_HOUR,
    NormalizedStatus,
    Segment,
    StatusCode,
    StatusEvent,
)
from lifttimeline.timeline.normalizer import (
    grid_minutes_for,
    group_events_by_lift,
    normalize_events,
    round_to_grid,
)
from lifttimeline.timeline.segments import (
    build_segments,
    display_window,
    validate_displayed_hours,
)

__all__ = [
    "FINAL_HOUR",
    "RETENTION_DAYS",
    "SEGMENTS_PER_HOUR",
    "NormalizedStatus",
    "Segment",
    "StatusCode",
    "StatusEvent",
    "build_segments",
    "current_time_segment",
    "display_window",
    "grid_minutes_for",
    "group_events_by_lift",
    "is_expired",
    "is_past_final_hour",
    "normalize_events",
    "resolve_reference_today",
    "round_to_grid",
    "validate_displayed_hours",
]
