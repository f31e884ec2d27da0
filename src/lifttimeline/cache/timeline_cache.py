"""Write-through cache for computed resort timelines.

One JSON entry per resort and day, keyed ``{prefix}/{date_str}/{resort_id}.json``.

Freshness rules:
- Entries computed at or after the day's final hour are complete and reused
  forever.
- Provisional entries are reused only while the current local time is in the
  same grid cell as when they were computed, and never once the final hour
  has passed.

The cache never raises for backend failures: a broken or unreachable store
behaves like an empty one.
"""

import logging
from datetime import datetime
from typing import Iterator, Optional, Sequence

from pydantic import ValidationError

from lifttimeline.cache.blob_store import DEFAULT_LIST_LIMIT, BlobStore
from lifttimeline.cache.models import CacheEntry, TimelineResult
from lifttimeline.timeline.freshness import (
    FINAL_HOUR,
    current_time_segment,
    is_past_final_hour,
)
from lifttimeline.timeline.models import SEGMENTS_PER_HOUR

logger = logging.getLogger(__name__)

LIFT_CACHE_KEY_PREFIX = "lift-timeline"
JSON_CONTENT_TYPE = "application/json"


class TimelineCache:
    """Cache layer for computed resort timelines.

    Example:
        >>> cache = TimelineCache(DuckDBBlobStore(StatusDatabase()))
        >>> entry = cache.lookup("2024-02-10", 1, now)
        >>> if entry is None:
        ...     result = compute(...)
        ...     cache.put("2024-02-10", 1, cache.make_entry(result, "2024-02-10", now))
    """

    def __init__(
        self,
        store: BlobStore,
        prefix: str = LIFT_CACHE_KEY_PREFIX,
        final_hour: int = FINAL_HOUR,
        segments_per_hour: int = SEGMENTS_PER_HOUR,
    ):
        """Initialize timeline cache.

        Args:
            store: Blob store holding the entries
            prefix: Key prefix for every entry
            final_hour: Local hour after which a day is complete
            segments_per_hour: Grid resolution used for the time-segment fingerprint
        """
        self.store = store
        self.prefix = prefix.strip("/")
        self.final_hour = final_hour
        self.segments_per_hour = segments_per_hour

    def cache_key(self, date_str: str, resort_id: int) -> str:
        """Key of the entry for one resort and day."""
        return f"{self.prefix}/{date_str}/{resort_id}.json"

    def get(self, date_str: str, resort_id: int) -> Optional[CacheEntry]:
        """Read an entry regardless of freshness.

        Returns:
            CacheEntry if present and well-formed, None otherwise
        """
        key = self.cache_key(date_str, resort_id)
        try:
            body = self.store.get(key)
        except Exception as e:
            logger.warning(f"Cache read failed for {key}: {e}")
            return None

        if body is None:
            logger.debug(f"Cache MISS for {key}")
            return None

        try:
            return CacheEntry.model_validate_json(body)
        except ValidationError as e:
            logger.warning(f"Discarding malformed cache entry {key}: {e.error_count()} errors")
            return None

    def put(self, date_str: str, resort_id: int, entry: CacheEntry) -> bool:
        """Write an entry, replacing any previous one.

        Returns:
            True if stored, False if the backend failed
        """
        key = self.cache_key(date_str, resort_id)
        try:
            self.store.put(key, entry.to_json().encode("utf-8"), JSON_CONTENT_TYPE)
        except Exception as e:
            logger.warning(f"Cache write failed for {key}: {e}")
            return False

        logger.info(
            f"Cached timeline {key} "
            f"(segment={entry.calculated_at_segment}, complete={entry.is_complete})"
        )
        return True

    def is_fresh(self, entry: CacheEntry, date_str: str, now: datetime) -> bool:
        """Whether a cached entry can be served without recomputing."""
        if entry.is_complete:
            return True
        if is_past_final_hour(date_str, now, self.final_hour):
            # Provisional data from before the close is never trusted afterwards
            return False
        return entry.calculated_at_segment == current_time_segment(now, self.segments_per_hour)

    def lookup(self, date_str: str, resort_id: int, now: datetime) -> Optional[CacheEntry]:
        """Get an entry only if it is fresh at ``now``."""
        entry = self.get(date_str, resort_id)
        if entry is None:
            return None

        key = self.cache_key(date_str, resort_id)
        if self.is_fresh(entry, date_str, now):
            logger.debug(
                f"Cache HIT for {key} "
                f"(segment={entry.calculated_at_segment}, complete={entry.is_complete})"
            )
            return entry

        logger.debug(f"Cache STALE for {key} (segment={entry.calculated_at_segment})")
        return None

    def make_entry(self, result: TimelineResult, date_str: str, now: datetime) -> CacheEntry:
        """Tag a freshly computed result for storage."""
        return CacheEntry(
            calculated_at_segment=current_time_segment(now, self.segments_per_hour),
            is_complete=is_past_final_hour(date_str, now, self.final_hour),
            result=result,
        )

    def iter_keys(self, page_size: int = DEFAULT_LIST_LIMIT) -> Iterator[str]:
        """Iterate every key under the cache prefix."""
        cursor = None
        while True:
            listing = self.store.list(f"{self.prefix}/", cursor=cursor, limit=page_size)
            yield from listing.keys
            if not listing.next_cursor:
                return
            cursor = listing.next_cursor

    def date_from_key(self, key: str) -> Optional[str]:
        """Extract the ``date_str`` path component of a cache key."""
        head = f"{self.prefix}/"
        if not key.startswith(head):
            return None
        parts = key[len(head):].split("/")
        return parts[0] or None

    def delete_keys(self, keys: Sequence[str]) -> None:
        """Delete entries. Backend errors propagate to the caller."""
        self.store.delete(list(keys))
