"""Shared pytest fixtures for lifttimeline tests.

Test Tiers:
- unit: Timeline engine, models and settings, no database
- integration: Tests against a real temporary DuckDB file

Timestamps in tests are written as JST wall-clock times on the fixture day
(2024-02-10) and converted to aware datetimes by the ``jst`` fixture.
"""

import tempfile
from datetime import date, datetime
from pathlib import Path

import pytest

from lifttimeline.cache.blob_store import DuckDBBlobStore
from lifttimeline.cache.database import Lift, SkiResort, StatusDatabase
from lifttimeline.cache.timeline_cache import TimelineCache
from lifttimeline.config import TimelineSettings
from lifttimeline.timeline.models import StatusCode, StatusEvent
from lifttimeline.utils.timezone import JST

TEST_DAY = date(2024, 2, 10)
TEST_DATE_STR = "2024-02-10"


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: fast tests that never open a database")
    config.addinivalue_line("markers", "integration: tests using a temporary DuckDB file")


@pytest.fixture
def day() -> date:
    """Civil day used throughout the tests."""
    return TEST_DAY


@pytest.fixture
def date_str() -> str:
    """``day`` as a YYYY-MM-DD string."""
    return TEST_DATE_STR


@pytest.fixture
def jst():
    """Build an aware JST datetime on the test day (or another day)."""

    def _jst(hour: int, minute: int = 0, second: int = 0, day: date = TEST_DAY) -> datetime:
        return datetime(day.year, day.month, day.day, hour, minute, second, tzinfo=JST)

    return _jst


@pytest.fixture
def temp_db_path():
    """Create a temporary database path for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "test.duckdb"


@pytest.fixture
def temp_db(temp_db_path):
    """Create a StatusDatabase on a temporary file."""
    db = StatusDatabase(temp_db_path)
    yield db
    db.close()


@pytest.fixture
def blob_store(temp_db) -> DuckDBBlobStore:
    """Blob store on the temporary database."""
    return DuckDBBlobStore(temp_db)


@pytest.fixture
def timeline_cache(blob_store) -> TimelineCache:
    """Timeline cache with default prefix and final hour."""
    return TimelineCache(blob_store)


@pytest.fixture
def settings(temp_db_path) -> TimelineSettings:
    """Settings pointing at the temporary database."""
    return TimelineSettings(db_path=temp_db_path)


@pytest.fixture
def seeded_db(temp_db, jst):
    """Database with one resort, three lifts and a morning of events.

    Lift 101: OPERATING from 07:05, SUSPENDED from 09:10, OPERATING from 10:00
    Lift 102: STANDBY from 07:30 (with repeats), OPERATING from 08:00
    Lift 103: no events
    """
    temp_db.store_resort(SkiResort(id=1, name="Hakuba Happo-one", map_url=None))
    temp_db.store_resort(SkiResort(id=2, name="Niseko Grand Hirafu"))
    for lift_id, name in [(101, "Alpen Quad"), (102, "Kokusai Triple"), (103, "Skyline Pair")]:
        temp_db.store_lift(Lift(id=lift_id, resort_id=1, name=name, start_time="08:00", end_time="16:30"))

    temp_db.store_statuses(
        1,
        [
            StatusEvent(101, StatusCode.OPERATING, jst(7, 5)),
            StatusEvent(101, StatusCode.OPERATING, jst(8, 0)),
            StatusEvent(101, StatusCode.SUSPENDED, jst(9, 10)),
            StatusEvent(101, StatusCode.OPERATING, jst(10, 0)),
            StatusEvent(102, StatusCode.STANDBY, jst(7, 30)),
            StatusEvent(102, StatusCode.STANDBY, jst(7, 45)),
            StatusEvent(102, StatusCode.OPERATING, jst(8, 0)),
        ],
    )
    return temp_db
