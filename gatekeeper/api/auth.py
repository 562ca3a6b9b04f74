"""Admin API protection: API key check and per-client admin rate limit."""

from __future__ import annotations

import hmac

import structlog
from fastapi import HTTPException, Request, Security
from fastapi.security import APIKeyHeader

logger = structlog.get_logger()

_api_key_header = APIKeyHeader(name="Authorization", auto_error=False)


async def require_admin_key(request: Request, api_key: str | None = Security(_api_key_header)) -> str:
    """Validate the admin API key from the Authorization header.

    Expects format: 'Bearer <key>'
    """
    settings = request.app.state.settings

    if not settings.admin_api_key:
        raise HTTPException(status_code=500, detail="Admin API key not configured on server")

    if not api_key:
        raise HTTPException(status_code=401, detail="Authorization header required")

    # Strip 'Bearer ' prefix if present
    token = api_key
    if token.lower().startswith("bearer "):
        token = token[7:]

    if not hmac.compare_digest(token.encode(), settings.admin_api_key.encode()):
        logger.warning("admin_key_rejected", client_key=getattr(request.state, "client_key", None))
        raise HTTPException(status_code=403, detail="Invalid API key")

    return token


async def enforce_admin_rate_limit(request: Request) -> None:
    """Apply the admin-only sliding window on top of the global limiter."""
    limiter = request.app.state.admin_rate_limiter
    client_key = getattr(request.state, "client_key", None) or "0.0.0.0"
    result = limiter.admit(client_key)
    if not result.allowed:
        logger.warning("admin_rate_limit_exceeded", client_key=client_key, retry_after=result.retry_after)
        raise HTTPException(
            status_code=429,
            detail="Admin rate limit exceeded",
            headers={"Retry-After": str(result.retry_after)},
        )
