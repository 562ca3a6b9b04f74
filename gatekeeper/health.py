"""Health endpoint."""

from __future__ import annotations

import time

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
async def health(request: Request):
    """Liveness plus a summary of the in-memory admission state."""
    started_at = getattr(request.app.state, "started_at", time.time())
    return {
        "status": "ok",
        "uptime_seconds": round(time.time() - started_at, 3),
        "tracked_clients": len(request.app.state.rate_limiter),
        "blacklisted": request.app.state.blacklist.stats().total_blacklisted,
    }
