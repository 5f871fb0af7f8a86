"""LabTrack FastAPI Application.

Entry point for the backend server. In ``embedded`` real-time mode this
process hosts the SSE hub; in ``remote`` mode events are POSTed to the
real-time process configured by REALTIME_FALLBACK_URL.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from labtrack.api.deps import set_dependencies
from labtrack.api.handlers import install_error_handlers
from labtrack.api.health import router as health_router
from labtrack.api.v1.notifications import router as notifications_router
from labtrack.api.v1.realtime import router as realtime_router
from labtrack.api.v1.task_requests import router as task_requests_router
from labtrack.api.v1.tasks import router as tasks_router
from labtrack.config import settings
from labtrack.db.database import create_db_and_tables
from labtrack.db.unit_of_work import UnitOfWork
from labtrack.middleware.auth import AccessTokenAuthMiddleware
from labtrack.realtime.bus import build_bus, set_bus
from labtrack.realtime.hub import realtime_hub

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    # Startup: create tables
    create_db_and_tables()

    hub = realtime_hub if settings.realtime_mode == "embedded" else None
    bus = build_bus(settings, hub)
    set_bus(bus)
    set_dependencies(uow_factory=UnitOfWork, hub=hub)
    logger.info("Real-time delivery: %s", bus.mode)

    yield

    # Shutdown: flush in-flight events, then close streams
    await bus.drain(timeout=settings.realtime_timeout_seconds)
    if hub is not None:
        await hub.disconnect_all()
    set_bus(None)


app = FastAPI(
    title="LabTrack",
    description="Research project tracker: task requests, progress and real-time updates",
    version="0.1.0",
    lifespan=lifespan,
)

# Middleware (order matters: last added = outermost)
app.add_middleware(AccessTokenAuthMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.cors_origins.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-User-Id"],
)

install_error_handlers(app)


# Global exception handler — prevent internal details from leaking
@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    # Let FastAPI handle HTTPExceptions normally (preserves status codes like 404, 503)
    if isinstance(exc, HTTPException):
        raise exc
    logger.error("Unhandled exception on %s %s: %s", request.method, request.url.path, exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": "InternalError", "message": "Internal server error."},
    )


# Routes
app.include_router(health_router)
app.include_router(task_requests_router)
app.include_router(tasks_router)
app.include_router(notifications_router)
app.include_router(realtime_router)


@app.get("/")
async def root():
    return {"name": "LabTrack", "version": "0.1.0", "status": "running"}
