"""Timeline API for lifttimeline.

This module provides:

- create_app: Factory function to create FastAPI application
- TimelineResponse: Response schema with per-lift segments
- HealthResponse, ErrorResponse, ResortInfo: Supporting schemas

Note: create_app is lazy-loaded to allow importing schemas without
FastAPI installed.
"""

# Schemas can be imported directly (only depend on pydantic)
from lifttimeline.api.schemas import (
    ErrorResponse,
    HealthResponse,
    ResortInfo,
    TimelineResponse,
)


def __getattr__(name):
    """Lazy load FastAPI-dependent components."""
    if name == "create_app":
        from lifttimeline.api.app import create_app
        return create_app
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "create_app",
    "ErrorResponse",
    "HealthResponse",
    "ResortInfo",
    "TimelineResponse",
]
