"""Client identity derivation for admission control."""

from __future__ import annotations

from starlette.requests import Request

UNKNOWN_CLIENT = "0.0.0.0"


def derive_client_key(
    trusted: str | None = None,
    forwarded_for: str | None = None,
    real_ip: str | None = None,
    peer: str | None = None,
) -> str:
    """Pick the first available identity source.

    Precedence: trusted address, first X-Forwarded-For entry, X-Real-IP,
    transport peer, then ``UNKNOWN_CLIENT``.
    """
    if trusted:
        return trusted
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    if real_ip:
        return real_ip
    if peer:
        return peer
    return UNKNOWN_CLIENT


def client_key_from_request(request: Request) -> str:
    """Derive the client key for a Starlette request.

    A trusted-proxy layer in front of the app may pre-resolve the address
    into ``request.state.trusted_client_ip``.
    """
    trusted = getattr(request.state, "trusted_client_ip", None)
    return derive_client_key(
        trusted=trusted,
        forwarded_for=request.headers.get("x-forwarded-for"),
        real_ip=request.headers.get("x-real-ip"),
        peer=request.client.host if request.client else None,
    )
