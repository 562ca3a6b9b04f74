"""Admin endpoints for the blacklist and rate limiter."""

from __future__ import annotations

import platform
import time
from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request

from gatekeeper.admission.blacklist import IPBlacklist
from gatekeeper.admission.rate_window import SlidingWindowRateLimiter
from gatekeeper.api.auth import enforce_admin_rate_limit, require_admin_key
from gatekeeper.api.routing import SanitizedRoute
from gatekeeper.models.admin import (
    BlacklistAdd,
    BlacklistStatus,
    KeyActivityOut,
    RateLimitStatus,
)

logger = structlog.get_logger()

router = APIRouter(
    prefix="/api/admin",
    tags=["admin"],
    route_class=SanitizedRoute,
    dependencies=[Depends(enforce_admin_rate_limit), Depends(require_admin_key)],
)


def get_blacklist(request: Request) -> IPBlacklist:
    return request.app.state.blacklist


def get_rate_limiter(request: Request) -> SlidingWindowRateLimiter:
    return request.app.state.rate_limiter


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _blacklist_status(blacklist: IPBlacklist) -> BlacklistStatus:
    stats = blacklist.stats()
    return BlacklistStatus(
        total_blacklisted=stats.total_blacklisted,
        blacklisted_ips=stats.blacklisted_ips,
        total_whitelisted=stats.total_whitelisted,
        whitelisted_ips=stats.whitelisted_ips,
    )


def _rate_limit_status(limiter: SlidingWindowRateLimiter, top_n: int) -> RateLimitStatus:
    stats = limiter.stats(top_n=top_n)
    return RateLimitStatus(
        total_ips=stats.total_keys,
        active_ips=stats.active_keys,
        max_requests=limiter.max_requests,
        window_seconds=int(limiter.window_seconds),
        top_ips=[
            KeyActivityOut(
                ip=item.key,
                requests=item.requests,
                last_request_time=datetime.fromtimestamp(item.last_request, tz=timezone.utc),
            )
            for item in stats.top_keys
        ],
    )


# --- Blacklist ---

@router.get("/blacklist", response_model=BlacklistStatus)
async def list_blacklist(blacklist: IPBlacklist = Depends(get_blacklist)):
    """Current blacklist and whitelist contents."""
    return _blacklist_status(blacklist)


@router.post("/blacklist")
async def add_to_blacklist(body: BlacklistAdd, blacklist: IPBlacklist = Depends(get_blacklist)):
    """Add an address to the blacklist."""
    if not body.ip:
        raise HTTPException(status_code=400, detail="IP address is required")
    was_added = blacklist.add(body.ip)
    return {
        "message": "IP added to blacklist" if was_added else "IP already blacklisted",
        "ip": body.ip,
        "was_added": was_added,
        "timestamp": _now_iso(),
    }


@router.delete("/blacklist/{ip}")
async def remove_from_blacklist(ip: str, blacklist: IPBlacklist = Depends(get_blacklist)):
    """Remove an address from the blacklist."""
    was_removed = blacklist.remove(ip)
    return {
        "message": "IP removed from blacklist" if was_removed else "IP not found in blacklist",
        "ip": ip,
        "was_removed": was_removed,
        "timestamp": _now_iso(),
    }


@router.delete("/blacklist")
async def clear_blacklist(blacklist: IPBlacklist = Depends(get_blacklist)):
    """Remove every blacklist entry. The whitelist is untouched."""
    return {"cleared": blacklist.clear(), "timestamp": _now_iso()}


# --- Rate limiting ---

@router.get("/rate-limit-status", response_model=RateLimitStatus)
async def rate_limit_status(request: Request, limiter: SlidingWindowRateLimiter = Depends(get_rate_limiter)):
    """Tracked/active client counts and the busiest clients."""
    return _rate_limit_status(limiter, request.app.state.settings.rate_limit_top_n)


@router.post("/rate-limit/reset/{ip}")
async def reset_rate_limit(ip: str, limiter: SlidingWindowRateLimiter = Depends(get_rate_limiter)):
    """Forget the sliding-window record for one client."""
    was_reset = limiter.reset(ip)
    return {
        "message": "Rate limit reset for IP" if was_reset else "No rate limit data found for IP",
        "ip": ip,
        "was_reset": was_reset,
        "timestamp": _now_iso(),
    }


# --- Combined ---

@router.get("/stats")
async def system_stats(
    request: Request,
    blacklist: IPBlacklist = Depends(get_blacklist),
    limiter: SlidingWindowRateLimiter = Depends(get_rate_limiter),
):
    """Process info plus blacklist and rate limit statistics."""
    started_at = getattr(request.app.state, "started_at", time.time())
    return {
        "server": {
            "uptime_seconds": round(time.time() - started_at, 3),
            "python_version": platform.python_version(),
            "platform": platform.platform(),
        },
        "security": {
            "blacklist": _blacklist_status(blacklist).model_dump(),
            "rate_limit": _rate_limit_status(limiter, request.app.state.settings.rate_limit_top_n).model_dump(mode="json"),
        },
        "timestamp": _now_iso(),
    }
