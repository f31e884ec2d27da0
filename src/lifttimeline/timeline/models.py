"""Data models for the timeline engine."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from lifttimeline.utils.timezone import ensure_utc

# Default grid resolution: 4 cells per hour = 15-minute cells
SEGMENTS_PER_HOUR = 4


class StatusCode(str, Enum):
    """Operational state of a lift.

    The first six values come from the upstream status API. ``OUTSIDE_HOURS``
    and ``NO_DATA`` are synthetic: they only ever appear in output segments.
    """

    OPERATING = "OPERATING"
    OPERATION_SLOWED = "OPERATION_SLOWED"
    STANDBY = "STANDBY"
    SUSPENDED = "SUSPENDED"
    OPERATION_TEMPORARILY_SUSPENDED = "OPERATION_TEMPORARILY_SUSPENDED"
    TODAY_CLOSED = "TODAY_CLOSED"
    OUTSIDE_HOURS = "outside-hours"
    NO_DATA = "no-data"

    @property
    def is_synthetic(self) -> bool:
        """True for codes the engine introduces itself."""
        return self in _SYNTHETIC_CODES

    @classmethod
    def parse_raw(cls, value: "str | StatusCode") -> "StatusCode":
        """Parse a status as received from upstream.

        Raises:
            ValueError: If the value is unknown or is a synthetic code
        """
        code = cls(value)
        if code.is_synthetic:
            raise ValueError(f"Synthetic status {code.value!r} is not valid input")
        return code


_SYNTHETIC_CODES = frozenset({StatusCode.OUTSIDE_HOURS, StatusCode.NO_DATA})


@dataclass(frozen=True)
class StatusEvent:
    """Raw status-change event for one lift."""

    lift_id: int
    status: StatusCode
    created_at: datetime

    def __post_init__(self):
        object.__setattr__(self, "status", StatusCode.parse_raw(self.status))
        object.__setattr__(self, "created_at", ensure_utc(self.created_at))


@dataclass(frozen=True)
class NormalizedStatus:
    """Status event snapped to the display grid."""

    status: StatusCode
    created_at: datetime
    rounded_at: datetime


@dataclass(frozen=True)
class Segment:
    """Run of ``count`` consecutive grid cells sharing one status.

    Attributes:
        status: Status shown for every cell in the run
        created_at: Original event time (gap start for synthetic segments)
        rounded_at: Grid-aligned start of the run
        start_index: Index of the first cell (0-based)
        count: Number of cells (>= 1)
    """

    status: StatusCode
    created_at: datetime
    rounded_at: datetime
    start_index: int
    count: int

    @property
    def end_index(self) -> int:
        """Exclusive end cell index."""
        return self.start_index + self.count
