"""Cached timeline service.

Answers "what did every lift of resort R do on day D" by combining the event
source, the timeline engine and the timeline cache:

    cache hit (complete, or provisional within the same time segment) -> return
    otherwise -> fetch events -> normalize per lift -> build segments -> cache
"""

import logging
from datetime import datetime
from typing import Optional, Protocol

from lifttimeline.cache.blob_store import DuckDBBlobStore
from lifttimeline.cache.database import StatusDatabase
from lifttimeline.cache.models import TimelineResult
from lifttimeline.cache.timeline_cache import TimelineCache
from lifttimeline.config import TimelineSettings
from lifttimeline.timeline.freshness import is_past_final_hour
from lifttimeline.timeline.models import StatusEvent
from lifttimeline.timeline.normalizer import group_events_by_lift, normalize_events
from lifttimeline.timeline.segments import build_segments
from lifttimeline.utils.timezone import ensure_utc, parse_date_str, utc_now

logger = logging.getLogger(__name__)


class EventSource(Protocol):
    """Where raw status events come from (e.g. ``StatusDatabase``)."""

    def fetch_events(self, resort_id: int, date_str: str) -> list[StatusEvent]:
        ...

    def list_lift_ids(self, resort_id: int) -> list[int]:
        ...


class TimelineService:
    """Resort day timelines with write-through caching.

    Example:
        >>> db = StatusDatabase()
        >>> service = TimelineService(db, TimelineCache(DuckDBBlobStore(db)))
        >>> result = service.get_timeline(1, "2024-02-10")
        >>> result.segments_by_lift[12][0].status
        <StatusCode.OPERATING: 'OPERATING'>
    """

    def __init__(
        self,
        source: EventSource,
        cache: Optional[TimelineCache] = None,
        settings: Optional[TimelineSettings] = None,
    ):
        """Initialize service.

        Args:
            source: Event source for resorts' raw status events
            cache: Timeline cache. Without one every request recomputes.
            settings: Grid and freshness configuration
        """
        self.source = source
        self.cache = cache
        self.settings = settings or TimelineSettings()

    def compute(self, resort_id: int, date_str: str, now: datetime) -> TimelineResult:
        """Compute a resort's timelines from raw events, bypassing the cache.

        Every known lift of the resort gets a timeline; lifts without events
        are shown as NO_DATA for the whole day.

        Raises:
            ValueError: If ``date_str`` is not a valid YYYY-MM-DD date
        """
        day = parse_date_str(date_str)
        hours = self.settings.displayed_hours
        segments_per_hour = self.settings.segments_per_hour

        events = self.source.fetch_events(resort_id, date_str)
        events_by_lift = group_events_by_lift(events)
        lift_ids = set(events_by_lift) | set(self.source.list_lift_ids(resort_id))

        segments_by_lift = {}
        for lift_id in sorted(lift_ids):
            normalized = normalize_events(events_by_lift.get(lift_id, []), segments_per_hour)
            segments_by_lift[lift_id] = build_segments(
                normalized,
                hours,
                fallback_date=day,
                now=now,
                segments_per_hour=segments_per_hour,
            )

        logger.info(
            f"Computed timelines for resort {resort_id} on {date_str}: "
            f"{len(segments_by_lift)} lifts from {len(events)} events"
        )
        return TimelineResult.from_segments(segments_by_lift, hours)

    def get_timeline(
        self,
        resort_id: int,
        date_str: str,
        now: Optional[datetime] = None,
    ) -> TimelineResult:
        """Get a resort's timelines, from cache when still fresh.

        Args:
            resort_id: Resort id
            date_str: Local date (YYYY-MM-DD)
            now: Current instant (defaults to the wall clock)

        Returns:
            TimelineResult for every lift of the resort

        Raises:
            ValueError: If ``date_str`` is not a valid YYYY-MM-DD date
        """
        parse_date_str(date_str)
        now = ensure_utc(now) if now is not None else utc_now()

        if self.cache is not None:
            cached = self.cache.lookup(date_str, resort_id, now)
            if cached is not None:
                return cached.result

        result = self.compute(resort_id, date_str, now)

        if self.cache is not None:
            self.cache.put(date_str, resort_id, self.cache.make_entry(result, date_str, now))

        return result

    def is_complete(self, date_str: str, now: Optional[datetime] = None) -> bool:
        """Whether a day's timelines are final at ``now``."""
        now = ensure_utc(now) if now is not None else utc_now()
        return is_past_final_hour(date_str, now, self.settings.final_hour)


def create_timeline_service(settings: Optional[TimelineSettings] = None) -> TimelineService:
    """Build a service on the configured DuckDB database."""
    settings = settings or TimelineSettings()
    db = StatusDatabase(settings.db_path)
    cache = TimelineCache(
        DuckDBBlobStore(db),
        prefix=settings.cache_key_prefix,
        final_hour=settings.final_hour,
        segments_per_hour=settings.segments_per_hour,
    )
    return TimelineService(db, cache, settings)
