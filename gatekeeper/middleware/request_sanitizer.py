"""Request sanitizer middleware: last step of the admission chain.

Never denies. Rewrites are recorded on the context and applied by
``AdmissionMiddleware`` before the request reaches the app:

- ``modified_body``: sanitized JSON or form body
- ``raw_body``: original body bytes, replayed when the body was read but unchanged
- ``query_string``: sanitized, re-encoded query string
- ``header_overrides``: sanitized values for the configured headers
"""

from __future__ import annotations

import json
from urllib.parse import parse_qsl, urlencode

import structlog
from starlette.requests import Request

from gatekeeper.admission.sanitize import deep_sanitize, sanitize_pairs, sanitize_string
from gatekeeper.middleware.pipeline import Middleware, RequestContext

logger = structlog.get_logger()

_JSON_TYPES = ("application/json",)
_FORM_TYPES = ("application/x-www-form-urlencoded",)

DEFAULT_SANITIZE_HEADERS = ("user-agent", "referer", "x-forwarded-for")


def _media_type(request: Request) -> str:
    return request.headers.get("content-type", "").split(";")[0].strip().lower()


class RequestSanitizer(Middleware):
    """Deep-sanitize query parameters, JSON/form bodies and selected headers."""

    def __init__(
        self,
        sanitize_headers: tuple[str, ...] | list[str] = DEFAULT_SANITIZE_HEADERS,
        log_payloads: bool = False,
    ) -> None:
        self.sanitize_headers = tuple(h.lower() for h in sanitize_headers)
        self.log_payloads = log_payloads

    async def process_request(self, request: Request, context: RequestContext) -> None:
        self._sanitize_query(request, context)
        self._sanitize_headers(request, context)

        media_type = _media_type(request)
        if media_type in _JSON_TYPES:
            await self._sanitize_json_body(request, context)
        elif media_type in _FORM_TYPES:
            await self._sanitize_form_body(request, context)
        return None

    def _sanitize_query(self, request: Request, context: RequestContext) -> None:
        query = request.url.query
        if not query:
            return
        pairs = parse_qsl(query, keep_blank_values=True)
        cleaned = sanitize_pairs(pairs)
        if cleaned != pairs:
            context.extra["query_string"] = urlencode(cleaned).encode("ascii")

    def _sanitize_headers(self, request: Request, context: RequestContext) -> None:
        overrides = {}
        for name in self.sanitize_headers:
            value = request.headers.get(name)
            if value is None:
                continue
            cleaned = sanitize_string(value)
            if cleaned != value:
                overrides[name] = cleaned
        if overrides:
            context.extra["header_overrides"] = overrides

    async def _sanitize_json_body(self, request: Request, context: RequestContext) -> None:
        body = await request.body()
        context.extra["raw_body"] = body
        if not body:
            return
        try:
            payload = json.loads(body)
        except (ValueError, UnicodeDecodeError, RecursionError):
            logger.debug("sanitizer_body_not_json", request_id=context.request_id)
            return

        sanitized = deep_sanitize(payload)
        if self.log_payloads:
            logger.debug("request_body_sanitized", original=payload, sanitized=sanitized)
        if sanitized != payload:
            context.extra["modified_body"] = json.dumps(sanitized).encode("utf-8")

    async def _sanitize_form_body(self, request: Request, context: RequestContext) -> None:
        body = await request.body()
        context.extra["raw_body"] = body
        if not body:
            return
        try:
            pairs = parse_qsl(body.decode("utf-8"), keep_blank_values=True)
        except UnicodeDecodeError:
            logger.debug("sanitizer_form_not_utf8", request_id=context.request_id)
            return

        cleaned = sanitize_pairs(pairs)
        if self.log_payloads:
            logger.debug("request_form_sanitized", original=pairs, sanitized=cleaned)
        if cleaned != pairs:
            context.extra["modified_body"] = urlencode(cleaned).encode("utf-8")
