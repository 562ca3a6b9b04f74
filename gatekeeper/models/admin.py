"""Pydantic models for the admin API."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class BlacklistAdd(BaseModel):
    """Request body for blacklisting an address.

    ``ip`` is untyped so malformed values reach the format check and come back
    as a 400 with the offending value instead of a schema error.
    """

    ip: Any = None


class KeyActivityOut(BaseModel):
    ip: str
    requests: int
    last_request_time: datetime


class RateLimitStatus(BaseModel):
    total_ips: int
    active_ips: int
    max_requests: int
    window_seconds: int
    top_ips: list[KeyActivityOut] = Field(default_factory=list)


class BlacklistStatus(BaseModel):
    total_blacklisted: int
    blacklisted_ips: list[str]
    total_whitelisted: int
    whitelisted_ips: list[str]
