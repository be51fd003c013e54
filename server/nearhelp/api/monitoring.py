"""Health check and monitoring endpoints."""

from __future__ import annotations

from fastapi import APIRouter

router = APIRouter(prefix="/api/v1")


@router.get("/health")
async def health() -> dict:
    """Basic health check."""
    from nearhelp.main import get_config, get_stats

    config = get_config()
    snapshot = get_stats().snapshot()
    return {
        "status": "ok",
        "version": "0.1.0",
        "uptime_seconds": snapshot["uptime_seconds"],
        "storage_backend": config.storage.backend,
        "storage_errors": snapshot["storage_errors"],
    }


@router.get("/stats")
async def stats() -> dict:
    """Engine counters plus the number of users who reported a position
    within the active window (``active_users.window_seconds``)."""
    from nearhelp.main import get_stats

    return get_stats().snapshot()
