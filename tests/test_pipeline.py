"""Admission pipeline chain order tests."""

from __future__ import annotations

import json

import pytest
from starlette.datastructures import MutableHeaders
from starlette.responses import Response

from gatekeeper.middleware.pipeline import Denial, Middleware, MiddlewarePipeline, RequestContext


class TrackingMiddleware(Middleware):
    """Middleware that records its execution order."""

    def __init__(self, name: str, order_log: list[str]):
        self._name = name
        self._order_log = order_log

    @property
    def name(self) -> str:
        return self._name

    async def process_request(self, request, context):
        self._order_log.append(f"req:{self._name}")
        return None

    async def process_response(self, headers, context):
        self._order_log.append(f"resp:{self._name}")


class DenyingMiddleware(Middleware):
    """Middleware that short-circuits the pipeline with a Denial."""

    async def process_request(self, request, context):
        return Denial(status_code=403, reason="access_denied", message="Access denied")


class RawResponseMiddleware(Middleware):
    async def process_request(self, request, context):
        return Response(content="blocked", status_code=418)


@pytest.mark.asyncio
async def test_middleware_executes_in_order():
    """Request middleware runs forward, response middleware runs reverse."""
    order_log: list[str] = []
    pipeline = MiddlewarePipeline()
    pipeline.add(TrackingMiddleware("first", order_log))
    pipeline.add(TrackingMiddleware("second", order_log))
    pipeline.add(TrackingMiddleware("third", order_log))

    context = RequestContext()
    await pipeline.process_request(None, context)
    assert order_log == ["req:first", "req:second", "req:third"]

    order_log.clear()
    await pipeline.process_response(MutableHeaders(), context)
    assert order_log == ["resp:third", "resp:second", "resp:first"]


@pytest.mark.asyncio
async def test_middleware_can_be_disabled():
    """Disabled middleware is skipped."""
    order_log: list[str] = []
    pipeline = MiddlewarePipeline()
    pipeline.add(TrackingMiddleware("first", order_log))
    pipeline.add(TrackingMiddleware("second", order_log), enabled=False)
    pipeline.add(TrackingMiddleware("third", order_log))

    await pipeline.process_request(None, RequestContext())
    assert order_log == ["req:first", "req:third"]


@pytest.mark.asyncio
async def test_middleware_can_be_toggled():
    """Middleware can be enabled/disabled at runtime."""
    order_log: list[str] = []
    pipeline = MiddlewarePipeline()
    pipeline.add(TrackingMiddleware("first", order_log))
    pipeline.add(TrackingMiddleware("second", order_log))

    await pipeline.process_request(None, RequestContext())
    assert len(order_log) == 2

    order_log.clear()
    pipeline.set_enabled("second", False)
    await pipeline.process_request(None, RequestContext())
    assert order_log == ["req:first"]


@pytest.mark.asyncio
async def test_denial_stops_pipeline_and_renders_json():
    """A Denial stops further processing and becomes a structured JSON response."""
    order_log: list[str] = []
    pipeline = MiddlewarePipeline()
    pipeline.add(TrackingMiddleware("first", order_log))
    pipeline.add(DenyingMiddleware())
    pipeline.add(TrackingMiddleware("third", order_log))

    result = await pipeline.process_request(None, RequestContext())
    assert result.status_code == 403
    assert json.loads(result.body) == {"error": "access_denied", "message": "Access denied", "details": {}}
    assert order_log == ["req:first"]


@pytest.mark.asyncio
async def test_raw_response_short_circuits():
    pipeline = MiddlewarePipeline()
    pipeline.add(RawResponseMiddleware())

    result = await pipeline.process_request(None, RequestContext())
    assert result.status_code == 418


@pytest.mark.asyncio
async def test_empty_pipeline():
    """Empty pipeline processes request and response without error."""
    pipeline = MiddlewarePipeline()
    context = RequestContext()

    assert await pipeline.process_request(None, context) is None
    headers = MutableHeaders()
    await pipeline.process_response(headers, context)
    assert list(headers.items()) == []


@pytest.mark.asyncio
async def test_set_enabled_unknown_name():
    """set_enabled with unknown name is a no-op (doesn't crash)."""
    pipeline = MiddlewarePipeline()
    pipeline.set_enabled("nonexistent", False)


def test_request_context_default_values():
    ctx = RequestContext()
    assert ctx.client_key == ""
    assert ctx.extra == {}
    assert len(ctx.request_id) == 8


# --- Exception handling tests ---


class CrashingRequestMiddleware(Middleware):
    async def process_request(self, request, context):
        raise RuntimeError("middleware exploded")


class CrashingResponseMiddleware(Middleware):
    async def process_request(self, request, context):
        return None

    async def process_response(self, headers, context):
        raise RuntimeError("response handler exploded")


@pytest.mark.asyncio
async def test_request_middleware_exception_returns_500():
    """A crash is an internal error, distinguishable from a denial."""
    order_log: list[str] = []
    pipeline = MiddlewarePipeline()
    pipeline.add(TrackingMiddleware("before", order_log))
    pipeline.add(CrashingRequestMiddleware())
    pipeline.add(TrackingMiddleware("after", order_log))

    result = await pipeline.process_request(None, RequestContext())

    assert result.status_code == 500
    assert json.loads(result.body)["error"] == "internal_error"
    assert order_log == ["req:before"]


@pytest.mark.asyncio
async def test_response_middleware_exception_skipped():
    order_log: list[str] = []
    pipeline = MiddlewarePipeline()
    pipeline.add(TrackingMiddleware("first", order_log))
    pipeline.add(CrashingResponseMiddleware())
    pipeline.add(TrackingMiddleware("third", order_log))

    await pipeline.process_response(MutableHeaders(), RequestContext())

    assert order_log == ["resp:third", "resp:first"]


# --- Pipeline build order tests ---


class TestBuildPipelineOrder:
    """Verify _build_pipeline() registers middleware in the correct order."""

    def _names(self):
        from gatekeeper.admission.blacklist import IPBlacklist
        from gatekeeper.admission.rate_window import SlidingWindowRateLimiter
        from gatekeeper.config.loader import GatekeeperSettings
        from gatekeeper.main import _build_pipeline

        pipeline = _build_pipeline(GatekeeperSettings(), IPBlacklist(), SlidingWindowRateLimiter())
        return pipeline, pipeline.names

    def test_pipeline_order(self):
        _, names = self._names()
        assert names == ["BlacklistGuard", "RateLimiter", "RequestSanitizer"]

    def test_all_middleware_enabled_by_default(self):
        pipeline, names = self._names()
        for name in names:
            assert pipeline._enabled.get(name) is True
