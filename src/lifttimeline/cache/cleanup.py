"""Retention sweep for the timeline cache.

Deletes cached resort timelines for days older than the retention window.
Run daily via cron:

    # Every day at 04:00
    0 4 * * * python -m lifttimeline.cache.cleanup

Usage:
    python -m lifttimeline.cache.cleanup                       # Delete expired entries
    python -m lifttimeline.cache.cleanup --retention-days 14   # Custom window
    python -m lifttimeline.cache.cleanup --reference-date 2024-02-10
    python -m lifttimeline.cache.cleanup --status              # Show cache status
"""

import argparse
import logging
import sys
import time
from collections import Counter
from dataclasses import dataclass
from datetime import date
from pathlib import Path

from lifttimeline.cache.blob_store import DuckDBBlobStore
from lifttimeline.cache.database import StatusDatabase
from lifttimeline.cache.timeline_cache import TimelineCache
from lifttimeline.timeline.freshness import (
    RETENTION_DAYS,
    is_expired,
    resolve_reference_today,
)
from lifttimeline.utils.timezone import utc_now

logger = logging.getLogger(__name__)

DELETE_BATCH_SIZE = 1000


@dataclass
class SweepResult:
    """Result of a retention sweep."""

    scanned: int
    expired: int
    deleted: int
    failed: int
    duration_ms: int

    @property
    def kept(self) -> int:
        """Keys left in place because they are still within retention."""
        return self.scanned - self.expired

    def __str__(self) -> str:
        return (
            f"Sweep complete: {self.deleted}/{self.expired} expired entries deleted, "
            f"{self.failed} failed, {self.kept} kept "
            f"({self.duration_ms}ms)"
        )


def find_expired_keys(
    cache: TimelineCache,
    reference_today: date,
    retention_days: int = RETENTION_DAYS,
) -> tuple[int, list[str]]:
    """List cache keys whose day is past the retention window.

    Keys whose date component cannot be parsed are kept.

    Returns:
        Tuple of (number of keys scanned, expired keys)
    """
    scanned = 0
    expired = []
    for key in cache.iter_keys():
        scanned += 1
        date_str = cache.date_from_key(key)
        if date_str is None:
            continue
        try:
            if is_expired(date_str, reference_today, retention_days):
                expired.append(key)
        except ValueError:
            logger.warning(f"Skipping cache key with unparseable date: {key}")
    return scanned, expired


def sweep_expired_entries(
    cache: TimelineCache,
    reference_today: date,
    retention_days: int = RETENTION_DAYS,
    batch_size: int = DELETE_BATCH_SIZE,
) -> SweepResult:
    """Delete expired cache entries in bounded batches.

    A failing batch is logged and left for the next sweep; the remaining
    batches are still attempted.

    Args:
        cache: TimelineCache to sweep
        reference_today: Civil date the retention window is measured from
        retention_days: Days to keep
        batch_size: Maximum keys per delete call

    Returns:
        SweepResult with counts
    """
    start_time = time.time()
    scanned, expired = find_expired_keys(cache, reference_today, retention_days)

    logger.info(
        f"Found {len(expired)}/{scanned} expired cache entries "
        f"(reference={reference_today}, retention={retention_days}d)"
    )

    deleted = 0
    failed = 0
    for i in range(0, len(expired), batch_size):
        batch = expired[i:i + batch_size]
        try:
            cache.delete_keys(batch)
            deleted += len(batch)
            logger.debug(f"Deleted batch of {len(batch)} keys starting at {batch[0]}")
        except Exception as e:
            logger.error(f"Failed to delete batch starting at {batch[0]}: {e}")
            failed += len(batch)

    result = SweepResult(
        scanned=scanned,
        expired=len(expired),
        deleted=deleted,
        failed=failed,
        duration_ms=int((time.time() - start_time) * 1000),
    )
    logger.info(str(result))
    return result


def get_cache_status(cache: TimelineCache) -> dict:
    """Count cached entries per day."""
    per_date = Counter()
    for key in cache.iter_keys():
        per_date[cache.date_from_key(key) or "?"] += 1

    return {
        "prefix": cache.prefix,
        "total_entries": sum(per_date.values()),
        "dates": dict(sorted(per_date.items())),
    }


def print_status(status: dict, stats: dict) -> None:
    """Print cache status in human-readable format."""
    print()
    print("=" * 60)
    print("Lift Timeline Cache Status")
    print("=" * 60)
    print(f"Database: {stats['db_path']}")
    print(f"Resorts: {stats['resort_count']}  Lifts: {stats['lift_count']}")
    print(f"Status events: {stats['event_count']}")
    if stats["latest_event_at"]:
        print(f"Latest event: {stats['latest_event_at']}")
    print()
    print(f"Cached entries under '{status['prefix']}/': {status['total_entries']}")
    print("-" * 60)
    for date_str, count in status["dates"].items():
        print(f"  {date_str:<12} {count} entries")
    print("=" * 60)


def main():
    """CLI entry point for the retention sweep."""
    # Imported here: config depends on this package
    from lifttimeline.config import TimelineSettings

    settings = TimelineSettings()

    parser = argparse.ArgumentParser(
        description="Delete expired lift timeline cache entries",
        epilog="""
Examples:
  python -m lifttimeline.cache.cleanup                      # Sweep with configured retention
  python -m lifttimeline.cache.cleanup --retention-days 14  # Keep two weeks
  python -m lifttimeline.cache.cleanup --status             # Show status

Cron setup (daily at 04:00 JST):
  0 4 * * * cd /path/to/lifttimeline && python -m lifttimeline.cache.cleanup >> /var/log/lifttimeline-sweep.log 2>&1
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help=f"Database path (default: {settings.db_path})",
    )
    parser.add_argument(
        "--retention-days",
        type=int,
        default=settings.retention_days,
        help=f"Days of cache to keep (default: {settings.retention_days})",
    )
    parser.add_argument(
        "--reference-date",
        type=date.fromisoformat,
        default=settings.reference_date,
        help="Treat this YYYY-MM-DD as today (default: current JST date)",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=settings.delete_batch_size,
        help=f"Keys per delete call (default: {settings.delete_batch_size})",
    )
    parser.add_argument(
        "--status",
        action="store_true",
        help="Show current cache status",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress output except errors",
    )

    args = parser.parse_args()

    if args.quiet:
        level = logging.ERROR
    elif args.verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    db = StatusDatabase(args.db or settings.db_path)

    try:
        cache = TimelineCache(
            DuckDBBlobStore(db),
            prefix=settings.cache_key_prefix,
            final_hour=settings.final_hour,
            segments_per_hour=settings.segments_per_hour,
        )

        if args.status:
            print_status(get_cache_status(cache), db.get_stats())
            return 0

        reference_today = resolve_reference_today(utc_now(), args.reference_date)
        result = sweep_expired_entries(
            cache,
            reference_today,
            retention_days=args.retention_days,
            batch_size=args.batch_size,
        )
        return 1 if result.failed > 0 else 0

    except Exception as e:
        logger.error(f"Sweep failed: {e}")
        return 1

    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
