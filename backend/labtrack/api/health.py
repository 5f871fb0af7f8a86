"""Health check endpoint.

Checks: SQLite/SQL database connectivity, real-time delivery mode and the
number of live SSE sessions in this process.
"""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import text

from labtrack.config import settings

router = APIRouter()

VERSION = "0.1.0"


class HealthStatus(BaseModel):
    status: str  # "healthy" | "degraded" | "unhealthy"
    version: str
    checks: dict[str, dict]
    dependencies: dict[str, str]  # Simplified view for frontend
    timestamp: datetime


@router.get("/health", response_model=HealthStatus)
async def health_check() -> HealthStatus:
    checks: dict[str, dict] = {}
    overall_healthy = True
    has_warning = False

    # 1. Database
    try:
        from labtrack.db.database import engine
        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
            if engine.dialect.name == "sqlite":
                wal = conn.execute(text("PRAGMA journal_mode")).fetchone()
                detail = f"journal_mode={wal[0]}"
            else:
                detail = engine.dialect.name
            checks["database"] = {"status": "ok", "detail": detail}
    except Exception as e:
        checks["database"] = {"status": "error", "detail": str(e)[:200]}
        overall_healthy = False

    # 2. Real-time delivery
    from labtrack.api.deps import current_hub
    from labtrack.realtime.bus import get_bus

    bus = get_bus()
    hub = current_hub()
    if bus is None:
        checks["realtime"] = {"status": "warning", "detail": "bus not initialized"}
        has_warning = True
    elif bus.mode == "embedded" and hub is not None:
        checks["realtime"] = {
            "status": "ok",
            "detail": f"embedded, {hub.subscriber_count} session(s), {bus.pending_count} pending",
        }
    else:
        checks["realtime"] = {
            "status": "ok",
            "detail": f"remote → {settings.realtime_fallback_url}, {bus.pending_count} pending",
        }

    # 3. Auth
    if settings.auth_secret:
        checks["auth"] = {"status": "ok", "detail": "signed access tokens"}
    else:
        checks["auth"] = {"status": "warning", "detail": "AUTH_SECRET not set (dev mode, X-User-Id trusted)"}
        has_warning = True

    dependencies = {name: check["status"] for name, check in checks.items()}

    if overall_healthy:
        status = "degraded" if has_warning else "healthy"
    else:
        status = "unhealthy"

    return HealthStatus(
        status=status,
        version=VERSION,
        checks=checks,
        dependencies=dependencies,
        timestamp=datetime.now(timezone.utc),
    )
