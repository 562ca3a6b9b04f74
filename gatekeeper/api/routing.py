"""Route-level sanitization and field validation helpers."""

from __future__ import annotations

from collections.abc import Callable, Coroutine, Mapping
from typing import Any

import structlog
from fastapi import HTTPException, Request
from fastapi.routing import APIRoute
from starlette.responses import Response

from gatekeeper.admission.field_rules import FieldRule, validate_fields
from gatekeeper.admission.sanitize import deep_sanitize

logger = structlog.get_logger()


class SanitizedRoute(APIRoute):
    """APIRoute that sanitizes path parameters after routing.

    Query and body are handled by the admission pipeline; path parameters only
    exist once a route has matched.
    """

    def get_route_handler(self) -> Callable[[Request], Coroutine[Any, Any, Response]]:
        original_handler = super().get_route_handler()

        async def sanitized_handler(request: Request) -> Response:
            path_params = request.scope.get("path_params")
            if path_params:
                request.scope["path_params"] = deep_sanitize(path_params)
            return await original_handler(request)

        return sanitized_handler


class FieldValidationError(HTTPException):
    def __init__(self, errors: list[str]) -> None:
        super().__init__(status_code=400, detail="Validation failed")
        self.errors = errors


def require_valid_fields(rules: Mapping[str, FieldRule]) -> Callable[[Request], Coroutine[Any, Any, None]]:
    """Build a dependency that rejects bodies violating *rules* with a 400."""

    async def _validate(request: Request) -> None:
        try:
            payload = await request.json()
        except (ValueError, RecursionError):
            payload = {}
        if not isinstance(payload, dict):
            payload = {}
        errors = validate_fields(rules, payload)
        if errors:
            logger.info("field_validation_failed", path=request.url.path, errors=len(errors))
            raise FieldValidationError(errors)

    return _validate
