"""Errors raised by administrative admission-control operations.

Denials from the guard and the limiter are not errors; they are returned as
values. Only malformed administrative input ends up here.
"""

from __future__ import annotations


class AdmissionError(Exception):
    """Base class for caller-facing admission-control errors."""

    status_code = 400
    error_code = "admission_error"


class InvalidAddressFormat(AdmissionError):
    """Address is not a plausible IPv4 or IPv6 string."""

    error_code = "invalid_address_format"

    def __init__(self, address: object) -> None:
        self.address = address
        super().__init__(f"Invalid IP address format: {address!r}")


class WhitelistConflict(AdmissionError):
    """Address is whitelisted and therefore cannot be blacklisted."""

    error_code = "whitelist_conflict"

    def __init__(self, address: str) -> None:
        self.address = address
        super().__init__(f"Cannot blacklist whitelisted IP: {address}")
