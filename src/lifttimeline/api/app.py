"""FastAPI application for lift timelines.

Provides REST API endpoints for:
- Per-resort day timelines
- Resort list
- Health checks

Example:
    >>> from lifttimeline.api import create_app
    >>> app = create_app()
    >>> # Run with: uvicorn lifttimeline.api.app:create_app --factory --reload
"""

import logging
from typing import Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from lifttimeline import __version__
from lifttimeline.api.schemas import (
    ErrorResponse,
    HealthResponse,
    ResortInfo,
    TimelineResponse,
)
from lifttimeline.cache.blob_store import DuckDBBlobStore
from lifttimeline.cache.database import StatusDatabase
from lifttimeline.cache.timeline_cache import TimelineCache
from lifttimeline.config import TimelineSettings
from lifttimeline.service import TimelineService
from lifttimeline.utils.timezone import parse_date_str, utc_now

logger = logging.getLogger(__name__)

API_VERSION = __version__


def create_app(
    settings: Optional[TimelineSettings] = None,
    db: Optional[StatusDatabase] = None,
) -> FastAPI:
    """Create FastAPI application.

    Args:
        settings: Timeline configuration (read from the environment if omitted)
        db: Database to serve from (opened from ``settings.db_path`` if omitted)

    Returns:
        Configured FastAPI application
    """
    settings = settings or TimelineSettings()
    db = db or StatusDatabase(settings.db_path)
    cache = TimelineCache(
        DuckDBBlobStore(db),
        prefix=settings.cache_key_prefix,
        final_hour=settings.final_hour,
        segments_per_hour=settings.segments_per_hour,
    )
    service = TimelineService(db, cache, settings)

    app = FastAPI(
        title="Lift Timeline API",
        description="Day-long lift operation timelines for ski resorts",
        version=API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.service = service
    app.state.db = db

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """Handle HTTP exceptions with custom response."""
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(
                error=f"HTTP_{exc.status_code}",
                message=str(exc.detail),
            ).model_dump(),
        )

    @app.get("/", tags=["info"])
    async def root():
        """Root endpoint with API info."""
        return {
            "name": "Lift Timeline API",
            "version": API_VERSION,
            "docs": "/docs",
        }

    @app.get("/health", response_model=HealthResponse, tags=["info"])
    def health_check():
        """Health check endpoint."""
        try:
            with db.cursor() as cur:
                cur.execute("SELECT 1").fetchone()
            database_ok = True
        except Exception as e:
            logger.warning(f"Health check database query failed: {e}")
            database_ok = False

        return HealthResponse(
            status="healthy" if database_ok else "degraded",
            database=database_ok,
            version=API_VERSION,
        )

    @app.get("/api/resorts", response_model=list[ResortInfo], tags=["resorts"])
    def list_resorts():
        """List all ski resorts."""
        return [
            ResortInfo(id=r.id, name=r.name, map_url=r.map_url)
            for r in db.get_resorts()
        ]

    @app.get(
        "/api/lift-logs/{resort_id}",
        response_model=TimelineResponse,
        responses={
            400: {"model": ErrorResponse, "description": "Invalid request"},
            500: {"model": ErrorResponse, "description": "Server error"},
        },
        tags=["timelines"],
    )
    def get_lift_logs(
        resort_id: int,
        date: Optional[str] = Query(default=None, description="Local date (YYYY-MM-DD)"),
    ):
        """Get every lift's timeline for a resort on one day.

        Completed days are served from cache; the current day is recomputed
        at most once per grid cell.
        """
        if not date:
            raise HTTPException(status_code=400, detail="Date parameter is required")

        try:
            parse_date_str(date)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        now = utc_now()
        try:
            result = service.get_timeline(resort_id, date, now)
        except Exception as e:
            logger.error(f"Failed to build timelines for resort {resort_id} on {date}: {e}")
            raise HTTPException(
                status_code=500,
                detail="Failed to fetch lift logs",
            )

        return TimelineResponse(
            resort_id=resort_id,
            date=date,
            hours=result.hours,
            segments_by_lift=result.segments_by_lift,
            is_complete=service.is_complete(date, now),
        )

    return app
