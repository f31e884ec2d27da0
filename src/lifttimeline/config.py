"""Application settings (Pydantic Settings).

Every value can be overridden with an ``LIFT_TIMELINE_``-prefixed environment
variable or a ``.env`` file in the working directory, e.g.::

    LIFT_TIMELINE_FINAL_HOUR=19
    LIFT_TIMELINE_REFERENCE_DATE=2024-02-10
"""

from datetime import date
from pathlib import Path
from typing import Optional

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from lifttimeline.cache.cleanup import DELETE_BATCH_SIZE
from lifttimeline.cache.database import DEFAULT_DB_PATH
from lifttimeline.cache.timeline_cache import LIFT_CACHE_KEY_PREFIX
from lifttimeline.timeline.freshness import FINAL_HOUR, RETENTION_DAYS
from lifttimeline.timeline.models import SEGMENTS_PER_HOUR

DISPLAY_HOUR_START = 7


class TimelineSettings(BaseSettings):
    """Timeline grid, freshness and cache configuration."""

    segments_per_hour: int = SEGMENTS_PER_HOUR
    display_hour_start: int = DISPLAY_HOUR_START
    # Exclusive: the last displayed hour is display_hour_end - 1
    display_hour_end: int = FINAL_HOUR
    final_hour: int = FINAL_HOUR
    retention_days: int = RETENTION_DAYS
    cache_key_prefix: str = LIFT_CACHE_KEY_PREFIX
    # Fixed "today" for retention checks (testing / staging)
    reference_date: Optional[date] = None
    db_path: Path = DEFAULT_DB_PATH
    delete_batch_size: int = DELETE_BATCH_SIZE

    model_config = SettingsConfigDict(
        env_prefix="LIFT_TIMELINE_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("segments_per_hour")
    @classmethod
    def check_segments_per_hour(cls, v: int) -> int:
        if v <= 0 or 60 % v != 0:
            raise ValueError(f"segments_per_hour must evenly divide 60, got {v}")
        return v

    @field_validator("final_hour")
    @classmethod
    def check_final_hour(cls, v: int) -> int:
        if not 0 <= v <= 24:
            raise ValueError(f"final_hour must be in 0-24, got {v}")
        return v

    @field_validator("retention_days", "delete_batch_size")
    @classmethod
    def check_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"must be positive, got {v}")
        return v

    @field_validator("cache_key_prefix")
    @classmethod
    def strip_prefix(cls, v: str) -> str:
        v = (v or "").strip().strip("/")
        if not v:
            raise ValueError("cache_key_prefix must not be empty")
        return v

    @model_validator(mode="after")
    def check_display_window(self) -> "TimelineSettings":
        if not 0 <= self.display_hour_start < self.display_hour_end <= 24:
            raise ValueError(
                "display hours must satisfy 0 <= start < end <= 24, got "
                f"{self.display_hour_start}-{self.display_hour_end}"
            )
        return self

    @property
    def grid_minutes(self) -> int:
        """Width of one grid cell in minutes."""
        return 60 // self.segments_per_hour

    @property
    def displayed_hours(self) -> list[int]:
        """Local hours shown on every timeline."""
        return list(range(self.display_hour_start, self.display_hour_end))
