"""ASGI host for the admission pipeline.

Derives the client key, runs the pipeline, and either sends the short-circuit
response or forwards the (possibly rewritten) request to the wrapped app.
Response hooks run over the headers of both kinds of response.
"""

from __future__ import annotations

import structlog
from starlette.datastructures import MutableHeaders
from starlette.requests import Request
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from gatekeeper.admission.client_key import client_key_from_request
from gatekeeper.middleware.pipeline import MiddlewarePipeline, RequestContext

logger = structlog.get_logger()


def _rewrite_scope(scope: Scope, context: RequestContext) -> Scope:
    """Apply sanitizer rewrites recorded on the context to a copy of *scope*."""
    query_string = context.extra.get("query_string")
    header_overrides: dict[str, str] = context.extra.get("header_overrides", {})
    modified_body = context.extra.get("modified_body")
    if query_string is None and not header_overrides and modified_body is None:
        return scope

    scope = dict(scope)
    if query_string is not None:
        scope["query_string"] = query_string

    headers = MutableHeaders(raw=list(scope["headers"]))
    for name, value in header_overrides.items():
        headers[name] = value
    if modified_body is not None:
        headers["content-length"] = str(len(modified_body))
    scope["headers"] = headers.raw
    return scope


def _replay_receive(receive: Receive, context: RequestContext) -> Receive:
    """Replay the body the sanitizer consumed, then fall through to *receive*."""
    body = context.extra.get("modified_body", context.extra.get("raw_body"))
    if body is None:
        return receive

    replayed = False

    async def replay() -> Message:
        nonlocal replayed
        if not replayed:
            replayed = True
            return {"type": "http.request", "body": body, "more_body": False}
        return await receive()

    return replay


class AdmissionMiddleware:
    """Pure ASGI middleware running the Guard -> Limiter -> Sanitizer chain."""

    def __init__(self, app: ASGIApp, pipeline: MiddlewarePipeline) -> None:
        self.app = app
        self.pipeline = pipeline

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope, receive)
        context = RequestContext(client_key=client_key_from_request(request))
        request.state.client_key = context.client_key

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=context.request_id,
            client_key=context.client_key,
        )

        short_circuit = await self.pipeline.process_request(request, context)
        if short_circuit is not None:
            short_circuit.headers["x-request-id"] = context.request_id
            await self.pipeline.process_response(short_circuit.headers, context)
            await short_circuit(scope, receive, send)
            return

        async def send_with_headers(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                headers["x-request-id"] = context.request_id
                await self.pipeline.process_response(headers, context)
            await send(message)

        await self.app(
            _rewrite_scope(scope, context),
            _replay_receive(receive, context),
            send_with_headers,
        )
