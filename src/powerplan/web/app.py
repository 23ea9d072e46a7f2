"""FastAPI application for the powerplan JSON API."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..db.engine import get_db_path, init_db
from ..errors import (
    InvalidEnrollmentState,
    InvalidTransition,
    NoActiveSession,
    NotEnrolled,
    NotFound,
    PowerplanError,
    SessionAlreadyInProgress,
    StaleStateError,
    ValidationError,
)
from .routers import enrollment, maxes, progressions, state_machines, workouts

log = logging.getLogger(__name__)

# Checked in order; first match wins
ERROR_STATUS = [
    (NotFound, 404),
    (NotEnrolled, 404),
    (InvalidTransition, 409),
    (InvalidEnrollmentState, 409),
    (SessionAlreadyInProgress, 409),
    (NoActiveSession, 409),
    (StaleStateError, 409),
    (ValidationError, 422),
]


def status_for(error: PowerplanError) -> int:
    """Get the HTTP status code for an error."""
    for error_type, status_code in ERROR_STATUS:
        if isinstance(error, error_type):
            return status_code
    return 400


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler - runs on startup and shutdown."""
    # Startup: Initialize database
    db_path = get_db_path()
    if not db_path.exists():
        await init_db()
    yield


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="powerplan",
        description="Strength program resolution and progression API",
        version="0.1.0",
        lifespan=lifespan,
    )

    @app.exception_handler(PowerplanError)
    async def powerplan_error_handler(request: Request, exc: PowerplanError):
        """Render powerplan errors as JSON."""
        status_code = status_for(exc)
        log.info("%s %s -> %d %s", request.method, request.url.path, status_code, exc.code)
        return JSONResponse(status_code=status_code, content={"error": exc.to_dict()})

    # Include routers
    app.include_router(workouts.router)
    app.include_router(progressions.router)
    app.include_router(enrollment.router)
    app.include_router(maxes.router)
    app.include_router(state_machines.router)

    @app.get("/health")
    async def health():
        """Liveness check."""
        return {"status": "ok"}

    return app
