"""Health check endpoints."""

from typing import Any

from fastapi import APIRouter
from sqlalchemy import text

from taskme.api.v1.websocket import manager
from taskme.config import get_settings
from taskme.db.session import DBSession

router = APIRouter()
settings = get_settings()


@router.get("/health")
async def health_check() -> dict[str, str]:
    """Basic health check."""
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
    }


@router.get("/health/ready")
async def readiness_check(db: DBSession) -> dict[str, Any]:
    """Readiness: database connectivity, push mode and live socket count."""
    checks: dict[str, str] = {}

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = "healthy"
    except Exception as e:
        checks["database"] = f"unhealthy: {str(e)}"

    # Without FCM credentials pushes are only logged; reported, not fatal
    checks["push"] = "fcm" if settings.push_enabled else "logging"

    return {
        "status": "healthy" if checks["database"] == "healthy" else "unhealthy",
        "version": settings.app_version,
        "checks": checks,
        "websocket_connections": manager.connection_count(),
        "reminders": {
            "scan_interval_seconds": settings.reminder_scan_interval_seconds,
            "window_seconds": settings.reminder_window_seconds,
        },
    }
