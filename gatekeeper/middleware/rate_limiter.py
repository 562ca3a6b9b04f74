"""In-memory sliding-window rate limiter middleware."""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from starlette.datastructures import MutableHeaders
from starlette.requests import Request

from gatekeeper.admission.rate_window import AdmitResult, SlidingWindowRateLimiter
from gatekeeper.middleware.pipeline import Denial, Middleware, RequestContext

logger = structlog.get_logger()


def _iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


class RateLimiter(Middleware):
    """Per-client sliding-window admission control.

    - Keyed by the derived client key (see gatekeeper.admission.client_key)
    - Denied requests are not recorded
    - Injects X-RateLimit-* headers on every response, admitted or not
    """

    def __init__(self, limiter: SlidingWindowRateLimiter) -> None:
        self.limiter = limiter

    async def process_request(self, request: Request, context: RequestContext) -> Denial | None:
        result: AdmitResult = self.limiter.admit(context.client_key)

        context.extra["rate_limit_max"] = result.limit
        context.extra["rate_limit_remaining"] = result.remaining
        context.extra["rate_limit_reset"] = int(result.reset_at)

        if result.allowed:
            return None

        logger.warning(
            "rate_limit_exceeded",
            client_key=context.client_key,
            max=result.limit,
            retry_after=result.retry_after,
            request_id=context.request_id,
        )
        return Denial(
            status_code=429,
            reason="rate_limit_exceeded",
            message="Too many requests from this IP, please try again later",
            metadata={
                "limit": result.limit,
                "remaining": result.remaining,
                "resetAt": _iso(result.reset_at),
                "retryAfterSeconds": result.retry_after,
                "windowSeconds": int(self.limiter.window_seconds),
            },
            headers={"Retry-After": str(result.retry_after)},
        )

    async def process_response(self, headers: MutableHeaders, context: RequestContext) -> None:
        """Inject X-RateLimit-* headers."""
        if "rate_limit_max" in context.extra:
            headers["X-RateLimit-Limit"] = str(context.extra["rate_limit_max"])
            headers["X-RateLimit-Remaining"] = str(context.extra["rate_limit_remaining"])
            headers["X-RateLimit-Reset"] = str(context.extra["rate_limit_reset"])
