"""Admission-control core: blacklist guard, sliding-window limiter, sanitizer."""

from gatekeeper.admission.blacklist import BlacklistStats, IPBlacklist
from gatekeeper.admission.client_key import UNKNOWN_CLIENT, client_key_from_request, derive_client_key
from gatekeeper.admission.errors import AdmissionError, InvalidAddressFormat, WhitelistConflict
from gatekeeper.admission.field_rules import FieldKind, FieldRule, validate_fields
from gatekeeper.admission.rate_window import AdmitResult, KeyActivity, RateLimitStats, SlidingWindowRateLimiter
from gatekeeper.admission.sanitize import deep_sanitize, sanitize_string

__all__ = [
    "AdmissionError",
    "AdmitResult",
    "BlacklistStats",
    "FieldKind",
    "FieldRule",
    "IPBlacklist",
    "InvalidAddressFormat",
    "KeyActivity",
    "RateLimitStats",
    "SlidingWindowRateLimiter",
    "UNKNOWN_CLIENT",
    "WhitelistConflict",
    "client_key_from_request",
    "deep_sanitize",
    "derive_client_key",
    "sanitize_string",
    "validate_fields",
]
