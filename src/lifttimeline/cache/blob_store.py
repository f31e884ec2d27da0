"""Blob storage backends for the timeline cache.

The cache only needs a byte-oriented key/value store with get/put/delete and
prefix listing, the same surface object stores such as R2 or S3 expose.
``DuckDBBlobStore`` implements it on the ``cache_blobs`` table of a
``StatusDatabase``.
"""

import logging
from typing import Optional, Protocol, Sequence

from lifttimeline.cache.database import StatusDatabase
from lifttimeline.cache.models import BlobListing
from lifttimeline.utils.timezone import utc_now

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 1000


class BlobStore(Protocol):
    """Minimal key/value blob store interface."""

    def get(self, key: str) -> Optional[bytes]:
        ...

    def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> None:
        ...

    def delete(self, keys: Sequence[str]) -> None:
        ...

    def list(
        self,
        prefix: str,
        cursor: Optional[str] = None,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> BlobListing:
        ...


class DuckDBBlobStore:
    """Blob store backed by the DuckDB ``cache_blobs`` table.

    Listing is ordered by key; the cursor is the last key of the previous page.

    Example:
        >>> store = DuckDBBlobStore(StatusDatabase())
        >>> store.put("lift-timeline/2024-02-10/1.json", b"{}", "application/json")
        >>> store.get("lift-timeline/2024-02-10/1.json")
        b'{}'
    """

    def __init__(self, db: StatusDatabase):
        """Initialize blob store.

        Args:
            db: StatusDatabase instance for persistence
        """
        self.db = db

    def get(self, key: str) -> Optional[bytes]:
        with self.db.cursor() as cur:
            result = cur.execute(
                "SELECT body FROM cache_blobs WHERE key = ?",
                [key],
            ).fetchone()
        if result is None:
            return None
        return bytes(result[0])

    def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> None:
        with self.db.cursor() as cur:
            cur.execute(
                """
                INSERT INTO cache_blobs (key, body, content_type, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT (key)
                DO UPDATE SET
                    body = EXCLUDED.body,
                    content_type = EXCLUDED.content_type,
                    updated_at = EXCLUDED.updated_at
                """,
                [key, data, content_type, utc_now().replace(tzinfo=None)],
            )

    def delete(self, keys: Sequence[str]) -> None:
        keys = list(keys)
        if not keys:
            return
        placeholders = ", ".join("?" for _ in keys)
        with self.db.cursor() as cur:
            cur.execute(
                f"DELETE FROM cache_blobs WHERE key IN ({placeholders})",
                keys,
            )
        logger.debug(f"Deleted {len(keys)} blobs")

    def list(
        self,
        prefix: str,
        cursor: Optional[str] = None,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> BlobListing:
        # Fetch one extra row to know whether another page exists
        with self.db.cursor() as cur:
            rows = cur.execute(
                """
                SELECT key FROM cache_blobs
                WHERE starts_with(key, ?) AND key > ?
                ORDER BY key
                LIMIT ?
                """,
                [prefix, cursor or "", limit + 1],
            ).fetchall()

        keys = [row[0] for row in rows[:limit]]
        next_cursor = keys[-1] if len(rows) > limit else None
        return BlobListing(keys=keys, next_cursor=next_cursor)
