"""Ordered admission chain framework."""

from __future__ import annotations

import abc
from dataclasses import dataclass, field
from typing import Any
from uuid import uuid4

import structlog
from starlette.datastructures import MutableHeaders
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

logger = structlog.get_logger()


@dataclass
class RequestContext:
    """Mutable context passed through the admission pipeline."""

    request_id: str = ""
    client_key: str = ""
    extra: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.request_id:
            self.request_id = uuid4().hex[:8]


@dataclass
class Denial:
    """A first-class negative admission outcome (not an error)."""

    status_code: int
    reason: str
    message: str
    metadata: dict[str, Any] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)

    def to_response(self) -> Response:
        return JSONResponse(
            status_code=self.status_code,
            content={"error": self.reason, "message": self.message, "details": self.metadata},
            headers=self.headers,
        )


class Middleware(abc.ABC):
    """Base class for steps in the admission pipeline."""

    @property
    def name(self) -> str:
        return self.__class__.__name__

    @abc.abstractmethod
    async def process_request(self, request: Request, context: RequestContext) -> Denial | Response | None:
        """Process an incoming request.

        Return None to continue the pipeline, or a Denial/Response to short-circuit.
        """
        ...

    async def process_response(self, headers: MutableHeaders, context: RequestContext) -> None:
        """Adjust outgoing response headers. Override if needed."""
        return None


class MiddlewarePipeline:
    """Ordered list of middleware. Executes request handlers forward, response handlers in reverse."""

    def __init__(self) -> None:
        self._middleware: list[Middleware] = []
        self._enabled: dict[str, bool] = {}

    def add(self, middleware: Middleware, enabled: bool = True) -> None:
        """Add a middleware to the end of the pipeline."""
        self._middleware.append(middleware)
        self._enabled[middleware.name] = enabled
        logger.info("middleware_registered", name=middleware.name, enabled=enabled)

    def set_enabled(self, name: str, enabled: bool) -> None:
        """Enable or disable a middleware by name."""
        if name in self._enabled:
            self._enabled[name] = enabled

    @property
    def names(self) -> list[str]:
        return [mw.name for mw in self._middleware]

    async def process_request(self, request: Request, context: RequestContext) -> Response | None:
        """Run request through all enabled middleware in order.

        Returns a Response if any middleware short-circuits, otherwise None.
        A middleware that raises yields a 500 so internal failures stay
        distinguishable from denials.
        """
        for mw in self._middleware:
            if not self._enabled.get(mw.name, True):
                continue
            try:
                result = await mw.process_request(request, context)
            except Exception:
                logger.exception("middleware_request_error", middleware=mw.name)
                return JSONResponse(
                    status_code=500,
                    content={"error": "internal_error", "message": "Internal server error"},
                )
            if isinstance(result, Denial):
                logger.info("middleware_short_circuit", middleware=mw.name, reason=result.reason)
                return result.to_response()
            if isinstance(result, Response):
                logger.info("middleware_short_circuit", middleware=mw.name)
                return result
        return None

    async def process_response(self, headers: MutableHeaders, context: RequestContext) -> None:
        """Run response headers through all enabled middleware in reverse order.

        Individual middleware exceptions are caught so one broken middleware
        doesn't corrupt the response.
        """
        for mw in reversed(self._middleware):
            if not self._enabled.get(mw.name, True):
                continue
            try:
                await mw.process_response(headers, context)
            except Exception:
                logger.exception("middleware_response_error", middleware=mw.name)
