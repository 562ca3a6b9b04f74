"""Background rate limit sweeper tests."""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock, patch

import pytest

from gatekeeper.admission.rate_window import SlidingWindowRateLimiter
from gatekeeper.jobs.rate_limit_sweeper import run_rate_limit_sweeper


def _sleep_then_cancel(ticks: int):
    """Fake asyncio.sleep that lets *ticks* iterations run, then cancels."""
    calls = []

    async def fake_sleep(seconds):
        calls.append(seconds)
        if len(calls) > ticks:
            raise asyncio.CancelledError

    return fake_sleep, calls


@pytest.mark.asyncio
async def test_sweeper_removes_stale_keys():
    now = [1000.0]
    limiter = SlidingWindowRateLimiter(10, 10, sweep_probability=0.0, clock=lambda: now[0])
    limiter.admit("old")
    now[0] += 11
    limiter.admit("new")

    fake_sleep, _ = _sleep_then_cancel(1)
    with patch("gatekeeper.jobs.rate_limit_sweeper.asyncio.sleep", fake_sleep):
        with pytest.raises(asyncio.CancelledError):
            await run_rate_limit_sweeper(limiter, 60)

    assert len(limiter) == 1


@pytest.mark.asyncio
async def test_sweeper_enforces_minimum_interval():
    limiter = SlidingWindowRateLimiter(sweep_probability=0.0)
    fake_sleep, calls = _sleep_then_cancel(0)
    with patch("gatekeeper.jobs.rate_limit_sweeper.asyncio.sleep", fake_sleep):
        with pytest.raises(asyncio.CancelledError):
            await run_rate_limit_sweeper(limiter, 0)

    assert calls == [1.0]


@pytest.mark.asyncio
async def test_sweeper_survives_errors():
    limiter = MagicMock()
    limiter.sweep.side_effect = [RuntimeError("boom"), 0]
    limiter.__len__.return_value = 0

    fake_sleep, _ = _sleep_then_cancel(2)
    with patch("gatekeeper.jobs.rate_limit_sweeper.asyncio.sleep", fake_sleep):
        with pytest.raises(asyncio.CancelledError):
            await run_rate_limit_sweeper(limiter, 5)

    assert limiter.sweep.call_count == 2


def test_background_mode_disables_inline_sweep(make_client):
    c = make_client(rate_limit_sweep_mode="background", rate_limit_sweep_interval_seconds=3600)
    assert c.app.state.rate_limiter.sweep_probability == 0.0
    assert c.get("/health").status_code == 200


def test_inline_mode_keeps_probability(make_client):
    c = make_client(rate_limit_sweep_probability=0.5)
    assert c.app.state.rate_limiter.sweep_probability == 0.5
