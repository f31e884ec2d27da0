"""Pydantic schemas for API responses.

Defines all data models returned by the timeline API.
"""

from typing import Optional

from pydantic import BaseModel, Field

from lifttimeline.cache.models import SegmentRecord


class TimelineResponse(BaseModel):
    """Timelines of every lift of a resort for one day.

    Attributes:
        resort_id: Resort id
        date: Local date (YYYY-MM-DD)
        hours: Local hours covered by the grid
        segments_by_lift: Segments per lift id
        is_complete: True once the day is past its final hour
    """

    resort_id: int = Field(alias="resortId")
    date: str
    hours: list[int]
    segments_by_lift: dict[int, list[SegmentRecord]] = Field(alias="segmentsByLift")
    is_complete: bool = Field(alias="isComplete")

    model_config = {
        "populate_by_name": True,
        "json_schema_extra": {
            "examples": [
                {
                    "resortId": 1,
                    "date": "2024-02-10",
                    "hours": [7, 8, 9],
                    "segmentsByLift": {
                        "12": [
                            {
                                "status": "OPERATING",
                                "createdAt": "2024-02-09T22:05:12Z",
                                "roundedAt": "2024-02-09T22:00:00Z",
                                "startIndex": 0,
                                "count": 12,
                            }
                        ]
                    },
                    "isComplete": True,
                }
            ]
        },
    }


class ResortInfo(BaseModel):
    """Ski resort reference data."""

    id: int
    name: str
    map_url: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response.

    Attributes:
        status: Service status
        database: Whether the database answered
        version: API version
    """

    status: str
    database: bool
    version: str


class ErrorResponse(BaseModel):
    """Error response.

    Attributes:
        error: Error code
        message: Human-readable message
    """

    error: str
    message: str
