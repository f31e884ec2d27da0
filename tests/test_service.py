"""Tests for the cached timeline service.

Tests run the whole path against a real DuckDB file: events are stored,
fetched, turned into timelines and cached.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timedelta

import pytest

from lifttimeline.cache.blob_store import DuckDBBlobStore
from lifttimeline.cache.timeline_cache import TimelineCache
from lifttimeline.config import TimelineSettings
from lifttimeline.service import TimelineService, create_timeline_service
from lifttimeline.timeline.models import StatusCode, StatusEvent

pytestmark = pytest.mark.integration

OP = StatusCode.OPERATING
SUS = StatusCode.SUSPENDED
STBY = StatusCode.STANDBY
NO_DATA = StatusCode.NO_DATA

DATE_STR = "2024-02-10"


class FailingSource:
    """Event source that cannot be reached."""

    def fetch_events(self, resort_id, date_str):
        raise ConnectionError("status API down")

    def list_lift_ids(self, resort_id):
        return []


class BrokenStore:
    """Blob store whose every call fails."""

    def get(self, key):
        raise ConnectionError("store unreachable")

    def put(self, key, data, content_type="application/octet-stream"):
        raise ConnectionError("store unreachable")

    def delete(self, keys):
        raise ConnectionError("store unreachable")

    def list(self, prefix, cursor=None, limit=1000):
        raise ConnectionError("store unreachable")


def _shape(result, lift_id):
    return [(s.status, s.start_index, s.count) for s in result.segments_for(lift_id)]


@pytest.fixture
def service(seeded_db, settings):
    """Service on the seeded database with a DuckDB-backed cache."""
    return TimelineService(seeded_db, TimelineCache(DuckDBBlobStore(seeded_db)), settings)


class TestCompute:
    """Tests for TimelineService.compute."""

    def test_hours_from_settings(self, service, jst):
        """The grid covers the configured display hours."""
        result = service.compute(1, DATE_STR, jst(12, 0))
        assert result.hours == list(range(7, 20))

    def test_lift_with_changes(self, service, jst):
        """Status changes become runs, truncated at now."""
        result = service.compute(1, DATE_STR, jst(12, 0))

        assert _shape(result, 101) == [(OP, 0, 8), (SUS, 8, 4), (OP, 12, 8), (NO_DATA, 20, 32)]

    def test_lift_with_leading_gap(self, service, jst):
        """Repeated statuses collapse and the start is NO_DATA."""
        result = service.compute(1, DATE_STR, jst(12, 0))

        assert _shape(result, 102) == [(NO_DATA, 0, 2), (STBY, 2, 2), (OP, 4, 16), (NO_DATA, 20, 32)]

    def test_known_lift_without_events(self, service, jst):
        """Lifts with no events get a full NO_DATA row."""
        result = service.compute(1, DATE_STR, jst(12, 0))

        assert _shape(result, 103) == [(NO_DATA, 0, 52)]
        assert list(result.segments_by_lift) == [101, 102, 103]

    def test_completed_day(self, service, jst):
        """After the day ends the last status runs to the window end."""
        result = service.compute(1, DATE_STR, jst(22, 0))

        assert _shape(result, 101) == [(OP, 0, 8), (SUS, 8, 4), (OP, 12, 40)]

    def test_unknown_resort(self, service, jst):
        """A resort with no lifts or events has no timelines."""
        result = service.compute(99, DATE_STR, jst(12, 0))
        assert result.segments_by_lift == {}

    def test_day_without_events(self, service, jst):
        """Known lifts show NO_DATA on days without events."""
        result = service.compute(1, "2024-02-11", jst(12, 0))

        assert _shape(result, 101) == [(NO_DATA, 0, 52)]
        assert result.segments_for(101)[0].rounded_at == jst(7, 0, day=date(2024, 2, 11))

    def test_invalid_date(self, service, jst):
        """Malformed dates raise ValueError."""
        with pytest.raises(ValueError):
            service.compute(1, "2024-2-10", jst(12, 0))

    def test_source_errors_propagate(self, settings, jst):
        """A failed fetch is not turned into an empty timeline."""
        service = TimelineService(FailingSource(), None, settings)
        with pytest.raises(ConnectionError):
            service.compute(1, DATE_STR, jst(12, 0))


class TestGetTimeline:
    """Tests for TimelineService.get_timeline caching."""

    def test_writes_cache(self, service, jst):
        """A computed timeline is written back."""
        service.get_timeline(1, DATE_STR, jst(12, 5))

        entry = service.cache.get(DATE_STR, 1)
        assert entry is not None
        assert entry.calculated_at_segment == "12-0"
        assert entry.is_complete is False

    def test_same_segment_served_from_cache(self, service, seeded_db, jst):
        """Within one time segment new events are not picked up."""
        first = service.get_timeline(1, DATE_STR, jst(12, 0))
        seeded_db.store_statuses(1, [StatusEvent(101, SUS, jst(12, 5))])

        second = service.get_timeline(1, DATE_STR, jst(12, 10))

        assert second == first

    def test_next_segment_recomputes(self, service, seeded_db, jst):
        """A new time segment triggers recomputation."""
        service.get_timeline(1, DATE_STR, jst(12, 0))
        seeded_db.store_statuses(1, [StatusEvent(101, SUS, jst(12, 5))])

        result = service.get_timeline(1, DATE_STR, jst(12, 15))

        assert (SUS, 20, 1) in _shape(result, 101)
        assert service.cache.get(DATE_STR, 1).calculated_at_segment == "12-1"

    def test_complete_entry_never_recomputed(self, service, seeded_db, jst):
        """Once final, later events do not change the timeline."""
        final = service.get_timeline(1, DATE_STR, jst(20, 0))
        assert service.cache.get(DATE_STR, 1).is_complete is True

        seeded_db.store_statuses(1, [StatusEvent(101, SUS, jst(15, 0))])
        later = service.get_timeline(1, DATE_STR, jst(20, 0) + timedelta(days=2))

        assert later == final

    def test_provisional_replaced_after_final_hour(self, service, jst):
        """A provisional entry is recomputed and finalized after close."""
        service.get_timeline(1, DATE_STR, jst(19, 59))
        assert service.cache.get(DATE_STR, 1).is_complete is False

        result = service.get_timeline(1, DATE_STR, jst(20, 1))

        entry = service.cache.get(DATE_STR, 1)
        assert entry.is_complete is True
        assert entry.result == result

    def test_naive_now_accepted(self, service, jst):
        """A naive now is taken as UTC."""
        aware_result = service.compute(1, DATE_STR, jst(12, 0))

        result = service.get_timeline(1, DATE_STR, datetime(2024, 2, 10, 3, 0))  # 12:00 JST

        assert result == aware_result

    def test_without_cache(self, seeded_db, settings, jst):
        """With no cache every call computes."""
        service = TimelineService(seeded_db, None, settings)
        result = service.get_timeline(1, DATE_STR, jst(12, 0))

        assert _shape(result, 103) == [(NO_DATA, 0, 52)]

    def test_broken_cache_still_answers(self, seeded_db, settings, jst):
        """Cache outages do not affect correctness."""
        service = TimelineService(seeded_db, TimelineCache(BrokenStore()), settings)
        result = service.get_timeline(1, DATE_STR, jst(12, 0))

        assert _shape(result, 101)[0] == (OP, 0, 8)

    def test_invalid_date_before_cache(self, service):
        """Invalid dates fail before touching the cache."""
        with pytest.raises(ValueError):
            service.get_timeline(1, "../../etc", None)


class TestConcurrentRequests:
    """Tests for get_timeline called from a worker pool on one database."""

    def test_shared_database_across_threads(self, service, jst):
        """Parallel requests for the same segment all return the same timelines."""
        now = jst(12, 0)
        with ThreadPoolExecutor(max_workers=8) as pool:
            futures = [pool.submit(service.get_timeline, 1, DATE_STR, now) for _ in range(200)]
            results = [f.result() for f in futures]

        for result in results:
            assert _shape(result, 101) == [(OP, 0, 8), (SUS, 8, 4), (OP, 12, 8), (NO_DATA, 20, 32)]
            assert _shape(result, 102) == [(NO_DATA, 0, 2), (STBY, 2, 2), (OP, 4, 16), (NO_DATA, 20, 32)]
            assert _shape(result, 103) == [(NO_DATA, 0, 52)]
        assert service.cache.get(DATE_STR, 1).calculated_at_segment == "12-0"

    def test_uncached_reads_across_threads(self, seeded_db, settings, jst):
        """Concurrent recomputation at different times stays consistent."""
        service = TimelineService(seeded_db, None, settings)
        expected = {
            jst(12, 0): [(OP, 0, 8), (SUS, 8, 4), (OP, 12, 8), (NO_DATA, 20, 32)],
            jst(22, 0): [(OP, 0, 8), (SUS, 8, 4), (OP, 12, 40)],
        }
        nows = list(expected) * 100

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda now: service.get_timeline(1, DATE_STR, now), nows))

        for now, result in zip(nows, results):
            assert _shape(result, 101) == expected[now]


class TestIsComplete:
    """Tests for TimelineService.is_complete."""

    def test_follows_final_hour(self, service, jst):
        """Completion flips at the configured final hour."""
        assert service.is_complete(DATE_STR, jst(19, 59)) is False
        assert service.is_complete(DATE_STR, jst(20, 0)) is True

    def test_custom_final_hour(self, seeded_db, temp_db_path, jst):
        """final_hour comes from settings."""
        service = TimelineService(seeded_db, None, TimelineSettings(db_path=temp_db_path, final_hour=17))
        assert service.is_complete(DATE_STR, jst(17, 0)) is True


class TestCreateTimelineService:
    """Tests for create_timeline_service."""

    def test_wires_configured_database(self, tmp_path, jst):
        """The factory opens the configured DuckDB file with a cache."""
        settings = TimelineSettings(db_path=tmp_path / "svc.duckdb", cache_key_prefix="tl")
        service = create_timeline_service(settings)
        try:
            service.get_timeline(1, DATE_STR, jst(12, 0))

            assert service.cache.prefix == "tl"
            assert service.cache.store.get("tl/2024-02-10/1.json") is not None
            assert (tmp_path / "svc.duckdb").exists()
        finally:
            service.source.close()
