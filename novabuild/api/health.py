# novabuild/api/health.py
"""
Health check endpoints.
"""
from datetime import datetime, timezone
from fastapi import APIRouter, Request

from novabuild import db

router = APIRouter(tags=["Health"])


@router.get("/healthz")
async def healthz():
    """Simple health check."""
    return {"ok": True, "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get("/api/health")
async def api_health(request: Request):
    """API health check with store and build status."""
    supervisor = getattr(request.app.state, "supervisor", None)
    hub = getattr(request.app.state, "hub", None)
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": db.status().as_dict(),
        "activeBuilds": len(supervisor.running_projects()) if supervisor else 0,
        "watchedProjects": len(hub.watched_projects()) if hub else 0,
    }
