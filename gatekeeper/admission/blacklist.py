"""In-memory IP blacklist with a whitelist override."""

from __future__ import annotations

import re
import threading
from collections.abc import Iterable
from dataclasses import dataclass, field

import structlog

from gatekeeper.admission.errors import InvalidAddressFormat, WhitelistConflict

logger = structlog.get_logger()

# Format checks only, not real address validation. Always fullmatch: "$"
# alone also matches before a trailing newline.
_IPV4_RE = re.compile(r"^(\d{1,3}\.){3}\d{1,3}$")
_IPV6_RE = re.compile(r"^[0-9a-fA-F:]+$")


def is_plausible_address(address: object) -> bool:
    """Return True if *address* looks like an IPv4 or IPv6 string."""
    if not address or not isinstance(address, str):
        return False
    return bool(_IPV4_RE.fullmatch(address) or _IPV6_RE.fullmatch(address))


def _require_address(address: object) -> str:
    if not is_plausible_address(address):
        raise InvalidAddressFormat(address)
    return address  # type: ignore[return-value]


@dataclass(frozen=True)
class BlacklistStats:
    total_blacklisted: int
    blacklisted_ips: list[str] = field(default_factory=list)
    total_whitelisted: int = 0
    whitelisted_ips: list[str] = field(default_factory=list)


class IPBlacklist:
    """Blacklist/whitelist sets guarded by a single lock.

    Whitelist membership always wins over blacklist membership, and a
    whitelisted address can never be added to the blacklist.
    """

    def __init__(self, blacklist: Iterable[str] = (), whitelist: Iterable[str] = ()) -> None:
        self._lock = threading.Lock()
        # Whitelist seeds are trusted as-is; they may include mapped forms
        # like ::ffff:127.0.0.1 that the blacklist format check rejects.
        self._whitelist: set[str] = {ip for ip in whitelist if ip}
        self._blacklist: set[str] = set()
        for ip in blacklist:
            ip = _require_address(ip)
            if ip in self._whitelist:
                logger.warning("blacklist_seed_skipped", ip=ip, reason="whitelisted")
                continue
            self._blacklist.add(ip)

    def admit(self, client_key: str) -> bool:
        """Return False only for blacklisted, non-whitelisted keys."""
        with self._lock:
            if client_key in self._whitelist:
                return True
            return client_key not in self._blacklist

    def is_blacklisted(self, address: str) -> bool:
        with self._lock:
            return address in self._blacklist

    def is_whitelisted(self, address: str) -> bool:
        with self._lock:
            return address in self._whitelist

    def add(self, address: str) -> bool:
        """Blacklist *address*. Returns True if it was not already present.

        Raises InvalidAddressFormat or WhitelistConflict; neither changes state.
        """
        address = _require_address(address)
        with self._lock:
            if address in self._whitelist:
                raise WhitelistConflict(address)
            was_added = address not in self._blacklist
            self._blacklist.add(address)
        logger.info("blacklist_added" if was_added else "blacklist_already_present", ip=address)
        return was_added

    def remove(self, address: str) -> bool:
        """Remove *address* from the blacklist. Returns True if it was present."""
        address = _require_address(address)
        with self._lock:
            was_removed = address in self._blacklist
            self._blacklist.discard(address)
        logger.info("blacklist_removed" if was_removed else "blacklist_not_found", ip=address)
        return was_removed

    def clear(self) -> int:
        """Drop every blacklist entry, returning how many were removed."""
        with self._lock:
            count = len(self._blacklist)
            self._blacklist.clear()
        logger.info("blacklist_cleared", count=count)
        return count

    def stats(self) -> BlacklistStats:
        with self._lock:
            blacklisted = sorted(self._blacklist)
            whitelisted = sorted(self._whitelist)
        return BlacklistStats(
            total_blacklisted=len(blacklisted),
            blacklisted_ips=blacklisted,
            total_whitelisted=len(whitelisted),
            whitelisted_ips=whitelisted,
        )
