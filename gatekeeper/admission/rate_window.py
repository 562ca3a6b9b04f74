"""In-memory sliding-window-log rate limiter.

Each client key owns a deque of admission timestamps. On every check the
deque is trimmed to the trailing window, then the request is either appended
(admitted) or rejected with the time until the oldest entry expires.

Stale keys are removed by ``sweep``. By default a sweep is triggered with a
small probability after each admitted request; callers that prefer a fixed
schedule set ``sweep_probability=0`` and run ``gatekeeper.jobs.rate_limit_sweeper``.
"""

from __future__ import annotations

import math
import random
import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field

import structlog

logger = structlog.get_logger()

DEFAULT_MAX_REQUESTS = 1000
DEFAULT_WINDOW_SECONDS = 600.0  # 10 minutes
DEFAULT_SWEEP_PROBABILITY = 0.01
DEFAULT_TOP_N = 10


@dataclass(frozen=True)
class AdmitResult:
    """Outcome of a single admission check."""

    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    retry_after: int | None = None


@dataclass(frozen=True)
class KeyActivity:
    key: str
    requests: int
    last_request: float


@dataclass(frozen=True)
class RateLimitStats:
    total_keys: int
    active_keys: int
    top_keys: list[KeyActivity] = field(default_factory=list)


class SlidingWindowRateLimiter:
    """Per-key sliding-window log, safe for concurrent use.

    A single lock guards the key map; the trim-check-append sequence for a key
    runs entirely under it, so concurrent callers can never over-admit.
    """

    def __init__(
        self,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        *,
        sweep_probability: float = DEFAULT_SWEEP_PROBABILITY,
        clock: Callable[[], float] = time.time,
        rng: Callable[[], float] = random.random,
    ) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_requests = max_requests
        self.window_seconds = float(window_seconds)
        self.sweep_probability = sweep_probability
        self._clock = clock
        self._rng = rng
        self._records: dict[str, deque[float]] = {}
        self._lock = threading.Lock()

    def _trim(self, timestamps: deque[float], window_start: float) -> None:
        while timestamps and timestamps[0] <= window_start:
            timestamps.popleft()

    def admit(self, client_key: str, now: float | None = None) -> AdmitResult:
        """Record and admit a request for *client_key*, or deny it."""
        if now is None:
            now = self._clock()
        window_start = now - self.window_seconds
        reset_at = window_start + self.window_seconds

        with self._lock:
            timestamps = self._records.get(client_key)
            if timestamps is None:
                timestamps = deque()
                self._records[client_key] = timestamps
            self._trim(timestamps, window_start)

            if len(timestamps) >= self.max_requests:
                oldest = timestamps[0]
                retry_after = max(1, math.ceil(oldest + self.window_seconds - now))
                result = AdmitResult(
                    allowed=False,
                    limit=self.max_requests,
                    remaining=0,
                    reset_at=reset_at,
                    retry_after=retry_after,
                )
            else:
                timestamps.append(now)
                result = AdmitResult(
                    allowed=True,
                    limit=self.max_requests,
                    remaining=self.max_requests - len(timestamps),
                    reset_at=reset_at,
                )

        if result.allowed and self.sweep_probability > 0 and self._rng() < self.sweep_probability:
            self.sweep(now)
        return result

    def reset(self, client_key: str) -> bool:
        """Forget *client_key*. Returns True if a record existed."""
        with self._lock:
            existed = self._records.pop(client_key, None) is not None
        logger.info("rate_limit_reset", client_key=client_key, existed=existed)
        return existed

    def sweep(self, now: float | None = None) -> int:
        """Remove records with no timestamp inside the window."""
        if now is None:
            now = self._clock()
        cutoff = now - self.window_seconds
        with self._lock:
            stale = [key for key, ts in self._records.items() if not ts or ts[-1] <= cutoff]
            for key in stale:
                del self._records[key]
        if stale:
            logger.info("rate_limit_sweep", removed=len(stale))
        return len(stale)

    def stats(self, top_n: int = DEFAULT_TOP_N, now: float | None = None) -> RateLimitStats:
        """Aggregate view over all tracked keys. O(total keys)."""
        if now is None:
            now = self._clock()
        window_start = now - self.window_seconds
        activity: list[KeyActivity] = []
        with self._lock:
            total = len(self._records)
            for key, timestamps in self._records.items():
                self._trim(timestamps, window_start)
                if timestamps:
                    activity.append(KeyActivity(key=key, requests=len(timestamps), last_request=timestamps[-1]))
        activity.sort(key=lambda a: (-a.requests, a.key))
        return RateLimitStats(total_keys=total, active_keys=len(activity), top_keys=activity[:top_n])

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
