"""Background sweep of stale sliding-window records.

Used when ``rate_limit_sweep_mode`` is ``background``: the limiter's inline
random sweep is disabled and this loop bounds memory on a fixed schedule.
"""

from __future__ import annotations

import asyncio

import structlog

from gatekeeper.admission.rate_window import SlidingWindowRateLimiter

logger = structlog.get_logger()

# Minimum sweep interval to prevent tight loops (seconds)
_MIN_SWEEP_INTERVAL = 1.0


async def run_rate_limit_sweeper(limiter: SlidingWindowRateLimiter, interval_seconds: float) -> None:
    """Periodically call ``limiter.sweep()``.

    Runs forever until cancelled. Errors are logged but never crash the loop.
    """
    interval = max(_MIN_SWEEP_INTERVAL, interval_seconds)
    logger.info("rate_limit_sweeper_started", interval_seconds=interval)
    while True:
        await asyncio.sleep(interval)
        try:
            removed = limiter.sweep()
            logger.debug("rate_limit_sweeper_tick", removed=removed, tracked=len(limiter))
        except Exception:
            logger.exception("rate_limit_sweeper_error")
