"""Demo endpoints behind the admission pipeline."""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends, Request

from gatekeeper.admission.field_rules import FieldKind, FieldRule
from gatekeeper.api.routing import SanitizedRoute, require_valid_fields

logger = structlog.get_logger()

router = APIRouter(prefix="/api", tags=["public"], route_class=SanitizedRoute)

CONTACT_RULES: dict[str, FieldRule] = {
    "name": FieldRule(required=True, kind=FieldKind.name, min_length=2, max_length=50),
    "email": FieldRule(required=True, kind=FieldKind.email),
    "message": FieldRule(required=True, min_length=10, max_length=1000),
}


@router.get("/public")
async def public(request: Request):
    """Echo the caller identity as seen by the admission pipeline."""
    return {
        "message": "Public endpoint accessed successfully",
        "ip": getattr(request.state, "client_key", None),
        "user_agent": request.headers.get("user-agent"),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/public/info")
async def info():
    return {
        "name": "Gatekeeper",
        "endpoints": [
            "GET /api/public",
            "GET /api/public/info",
            "POST /api/contact",
            "GET /api/admin/blacklist",
        ],
    }


@router.post("/contact", dependencies=[Depends(require_valid_fields(CONTACT_RULES))])
async def contact(request: Request):
    """Accept a contact form whose body already passed sanitization and validation."""
    payload = await request.json()
    logger.info("contact_submitted", email=payload["email"])
    return {
        "message": "Contact form submitted successfully",
        "submitted_at": datetime.now(timezone.utc).isoformat(),
        "name": payload["name"],
        "email": payload["email"],
        "message_length": len(payload["message"]),
    }


@router.post("/echo")
async def echo(request: Request):
    """Return the sanitized JSON body and query parameters as received."""
    try:
        body = await request.json()
    except (ValueError, RecursionError):
        body = None
    return {"body": body, "query": dict(request.query_params)}


@router.get("/items/{item_id}")
async def get_item(item_id: str):
    """Path-parameter echo; the value arrives sanitized."""
    return {"item_id": item_id}
