"""Data models for the timeline cache.

The cache stores one JSON document per resort and day::

    {
      "calculatedAtSegment": "10-1",
      "isComplete": false,
      "result": {
        "segmentsByLift": {"12": [{"status": "OPERATING", ...}]},
        "hours": [7, 8, ..., 19]
      }
    }
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from lifttimeline.timeline.models import Segment, StatusCode

_CAMEL = ConfigDict(populate_by_name=True)


class SegmentRecord(BaseModel):
    """Serialized form of a ``Segment``."""

    model_config = _CAMEL

    status: StatusCode
    created_at: datetime = Field(alias="createdAt")
    rounded_at: datetime = Field(alias="roundedAt")
    start_index: int = Field(alias="startIndex", ge=0)
    count: int = Field(ge=1)

    @classmethod
    def from_segment(cls, segment: Segment) -> "SegmentRecord":
        return cls(
            status=segment.status,
            created_at=segment.created_at,
            rounded_at=segment.rounded_at,
            start_index=segment.start_index,
            count=segment.count,
        )

    def to_segment(self) -> Segment:
        return Segment(
            status=self.status,
            created_at=self.created_at,
            rounded_at=self.rounded_at,
            start_index=self.start_index,
            count=self.count,
        )


class TimelineResult(BaseModel):
    """All lift timelines of one resort for one day."""

    model_config = _CAMEL

    segments_by_lift: dict[int, list[SegmentRecord]] = Field(alias="segmentsByLift")
    hours: list[int]

    @classmethod
    def from_segments(
        cls,
        segments_by_lift: dict[int, list[Segment]],
        hours: list[int],
    ) -> "TimelineResult":
        return cls(
            segments_by_lift={
                lift_id: [SegmentRecord.from_segment(s) for s in segments]
                for lift_id, segments in sorted(segments_by_lift.items())
            },
            hours=list(hours),
        )

    def segments_for(self, lift_id: int) -> list[Segment]:
        """Segments of one lift (empty if the lift is unknown)."""
        return [r.to_segment() for r in self.segments_by_lift.get(lift_id, [])]


class CacheEntry(BaseModel):
    """One cached resort/day snapshot.

    Attributes:
        calculated_at_segment: ``current_time_segment`` when computed
        is_complete: True if computed at or after the day's final hour
        result: The computed timelines
    """

    model_config = _CAMEL

    calculated_at_segment: str = Field(alias="calculatedAtSegment", strict=True)
    is_complete: bool = Field(default=False, alias="isComplete")
    result: TimelineResult

    @field_validator("is_complete", mode="before")
    @classmethod
    def only_true_is_complete(cls, v: Any) -> bool:
        # Anything but a literal true means provisional
        return v is True

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


@dataclass
class BlobListing:
    """One page of keys from a blob store listing."""

    keys: list[str]
    next_cursor: Optional[str] = None
