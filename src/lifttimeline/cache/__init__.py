"""Storage and caching layer for lifttimeline.

Raw lift status events and cached resort timelines live in one DuckDB file.
Timelines are cached per resort and day as JSON blobs and recomputed only
when the day is still open and the clock has moved to a new grid cell.

Expired cache entries are removed by a daily sweep:
    python -m lifttimeline.cache.cleanup

Or scheduled via cron:
    0 4 * * * python -m lifttimeline.cache.cleanup
"""

from lifttimeline.cache.blob_store import BlobStore, DuckDBBlobStore
from lifttimeline.cache.cleanup import (
    SweepResult,
    find_expired_keys,
    get_cache_status,
    sweep_expired_entries,
)
from lifttimeline.cache.database import Lift, SkiResort, StatusDatabase
from lifttimeline.cache.models import BlobListing, CacheEntry, SegmentRecord, TimelineResult
from lifttimeline.cache.timeline_cache import TimelineCache

__all__ = [
    "BlobListing",
    "BlobStore",
    "CacheEntry",
    "DuckDBBlobStore",
    "Lift",
    "SegmentRecord",
    "SkiResort",
    "StatusDatabase",
    "SweepResult",
    "TimelineCache",
    "TimelineResult",
    "find_expired_keys",
    "get_cache_status",
    "sweep_expired_entries",
]
