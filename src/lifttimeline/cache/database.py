"""DuckDB database for lift status events and cached timelines."""

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

import duckdb

from lifttimeline.timeline.models import StatusCode, StatusEvent
from lifttimeline.utils.timezone import ensure_utc, local_day_bounds, parse_date_str

logger = logging.getLogger(__name__)

# Default database path - use project root to ensure consistent path
_PROJECT_ROOT = Path(__file__).parent.parent.parent.parent
DEFAULT_DB_PATH = _PROJECT_ROOT / "data" / "cache" / "lifttimeline.duckdb"

# SQL schema - DuckDB uses sequences for auto-increment
SCHEMA_SQL = """
CREATE SEQUENCE IF NOT EXISTS seq_lift_statuses_id START 1;

-- Ski resorts (reference data)
CREATE TABLE IF NOT EXISTS ski_resorts (
    id INTEGER PRIMARY KEY,
    name VARCHAR NOT NULL,
    map_url VARCHAR
);

-- Lifts per resort (reference data)
CREATE TABLE IF NOT EXISTS lifts (
    id INTEGER PRIMARY KEY,
    resort_id INTEGER NOT NULL,
    name VARCHAR NOT NULL,
    start_time VARCHAR,
    end_time VARCHAR
);

-- Raw status-change events, created_at stored as naive UTC
CREATE TABLE IF NOT EXISTS lift_statuses (
    id INTEGER DEFAULT nextval('seq_lift_statuses_id') PRIMARY KEY,
    resort_id INTEGER NOT NULL,
    lift_id INTEGER NOT NULL,
    status VARCHAR NOT NULL,
    created_at TIMESTAMP NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_lift_statuses_resort_time ON lift_statuses(resort_id, created_at);

-- Key/value blobs backing the timeline cache
CREATE TABLE IF NOT EXISTS cache_blobs (
    key VARCHAR PRIMARY KEY,
    body BLOB NOT NULL,
    content_type VARCHAR,
    updated_at TIMESTAMP NOT NULL
);
"""


@dataclass
class SkiResort:
    """Ski resort reference data."""

    id: int
    name: str
    map_url: Optional[str] = None


@dataclass
class Lift:
    """Lift reference data."""

    id: int
    resort_id: int
    name: str
    start_time: Optional[str] = None
    end_time: Optional[str] = None


def _to_db_time(dt: datetime) -> datetime:
    return ensure_utc(dt).replace(tzinfo=None)


def _from_db_time(dt: datetime) -> datetime:
    return dt.replace(tzinfo=timezone.utc)


class StatusDatabase:
    """DuckDB database for lift status events.

    Holds resorts, lifts and raw status events written by the upstream poller,
    plus the ``cache_blobs`` table used by ``DuckDBBlobStore``.

    Example:
        >>> db = StatusDatabase()
        >>> db.fetch_events(1, "2024-02-10")
        [StatusEvent(...), ...]
    """

    def __init__(self, db_path: Optional[Path] = None):
        """Initialize database connection.

        Args:
            db_path: Path to DuckDB file. Creates if doesn't exist.
        """
        self.db_path = Path(db_path or DEFAULT_DB_PATH)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn = None
        self._init_schema()

    @property
    def conn(self) -> duckdb.DuckDBPyConnection:
        """Get database connection (lazy initialization with retry)."""
        if self._conn is None:
            self._conn = self._connect_with_retry()
        return self._conn

    def _connect_with_retry(self, max_retries: int = 3) -> duckdb.DuckDBPyConnection:
        """Connect to database with retry logic for lock handling."""
        last_error = None
        for attempt in range(max_retries):
            try:
                return duckdb.connect(str(self.db_path))
            except duckdb.IOException as e:
                last_error = e
                if "lock" in str(e).lower() and attempt < max_retries - 1:
                    wait_time = 0.5 * (2 ** attempt)  # Exponential backoff
                    logger.warning(f"Database locked, retrying in {wait_time}s...")
                    time.sleep(wait_time)
                else:
                    raise
        raise last_error

    def cursor(self) -> duckdb.DuckDBPyConnection:
        """Open a cursor on the shared connection.

        The connection itself must not be used from several threads at once;
        every query runs on its own cursor instead.
        """
        return self.conn.cursor()

    def _init_schema(self) -> None:
        """Initialize database schema."""
        for statement in SCHEMA_SQL.split(";"):
            statement = statement.strip()
            if statement:
                with self.cursor() as cur:
                    cur.execute(statement)
        logger.info(f"Status database initialized at {self.db_path}")

    def close(self) -> None:
        """Close database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    # -------------------------------------------------------------------------
    # Resort / Lift Operations
    # -------------------------------------------------------------------------

    def store_resort(self, resort: SkiResort) -> None:
        """Insert or update a ski resort."""
        with self.cursor() as cur:
            cur.execute(
                """
                INSERT INTO ski_resorts (id, name, map_url)
                VALUES (?, ?, ?)
                ON CONFLICT (id)
                DO UPDATE SET name = EXCLUDED.name, map_url = EXCLUDED.map_url
                """,
                [resort.id, resort.name, resort.map_url],
            )

    def store_lift(self, lift: Lift) -> None:
        """Insert or update a lift."""
        with self.cursor() as cur:
            cur.execute(
                """
                INSERT INTO lifts (id, resort_id, name, start_time, end_time)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT (id)
                DO UPDATE SET
                    resort_id = EXCLUDED.resort_id,
                    name = EXCLUDED.name,
                    start_time = EXCLUDED.start_time,
                    end_time = EXCLUDED.end_time
                """,
                [lift.id, lift.resort_id, lift.name, lift.start_time, lift.end_time],
            )

    def get_resorts(self) -> list[SkiResort]:
        """Get all ski resorts ordered by id."""
        with self.cursor() as cur:
            results = cur.execute(
                "SELECT id, name, map_url FROM ski_resorts ORDER BY id"
            ).fetchall()
        return [SkiResort(id=row[0], name=row[1], map_url=row[2]) for row in results]

    def get_lifts(self, resort_id: int) -> list[Lift]:
        """Get the lifts of one resort ordered by id."""
        with self.cursor() as cur:
            results = cur.execute(
                """
                SELECT id, resort_id, name, start_time, end_time
                FROM lifts
                WHERE resort_id = ?
                ORDER BY id
                """,
                [resort_id],
            ).fetchall()
        return [
            Lift(
                id=row[0],
                resort_id=row[1],
                name=row[2],
                start_time=row[3],
                end_time=row[4],
            )
            for row in results
        ]

    def list_lift_ids(self, resort_id: int) -> list[int]:
        """Ids of every known lift of a resort."""
        return [lift.id for lift in self.get_lifts(resort_id)]

    # -------------------------------------------------------------------------
    # Status Event Operations
    # -------------------------------------------------------------------------

    def store_statuses(self, resort_id: int, events: Iterable[StatusEvent]) -> int:
        """Append raw status events for a resort.

        Returns:
            Number of rows inserted
        """
        rows = [
            [resort_id, e.lift_id, e.status.value, _to_db_time(e.created_at)]
            for e in events
        ]
        if not rows:
            return 0
        with self.cursor() as cur:
            cur.executemany(
                """
                INSERT INTO lift_statuses (resort_id, lift_id, status, created_at)
                VALUES (?, ?, ?, ?)
                """,
                rows,
            )
        logger.debug(f"Stored {len(rows)} status events for resort {resort_id}")
        return len(rows)

    def fetch_events(self, resort_id: int, date_str: str) -> list[StatusEvent]:
        """Get every status event of a resort on a local civil day.

        Args:
            resort_id: Resort id
            date_str: Local date (YYYY-MM-DD)

        Returns:
            Events ordered by ``created_at``. Rows with a status the engine
            does not accept as input are skipped.

        Raises:
            ValueError: If ``date_str`` is not a valid date
        """
        day_start, day_end = local_day_bounds(parse_date_str(date_str))
        with self.cursor() as cur:
            results = cur.execute(
                """
                SELECT lift_id, status, created_at
                FROM lift_statuses
                WHERE resort_id = ?
                  AND created_at >= ? AND created_at < ?
                ORDER BY created_at
                """,
                [resort_id, _to_db_time(day_start), _to_db_time(day_end)],
            ).fetchall()

        events = []
        for lift_id, status, created_at in results:
            try:
                code = StatusCode.parse_raw(status)
            except ValueError:
                logger.warning(
                    f"Skipping lift {lift_id} event at {created_at}: "
                    f"unsupported status {status!r}"
                )
                continue
            events.append(
                StatusEvent(lift_id=lift_id, status=code, created_at=_from_db_time(created_at))
            )
        return events

    # -------------------------------------------------------------------------
    # Statistics
    # -------------------------------------------------------------------------

    def get_stats(self) -> dict:
        """Get database statistics."""
        with self.cursor() as cur:
            resort_count = cur.execute("SELECT COUNT(*) FROM ski_resorts").fetchone()[0]
            lift_count = cur.execute("SELECT COUNT(*) FROM lifts").fetchone()[0]
            event_count = cur.execute("SELECT COUNT(*) FROM lift_statuses").fetchone()[0]
            cache_count = cur.execute("SELECT COUNT(*) FROM cache_blobs").fetchone()[0]
            latest_event = cur.execute(
                "SELECT MAX(created_at) FROM lift_statuses"
            ).fetchone()[0]

        return {
            "resort_count": resort_count,
            "lift_count": lift_count,
            "event_count": event_count,
            "cache_entry_count": cache_count,
            "latest_event_at": _from_db_time(latest_event) if latest_event else None,
            "db_path": str(self.db_path),
        }
