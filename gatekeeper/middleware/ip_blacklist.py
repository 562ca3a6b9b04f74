"""Blacklist guard middleware: first step of the admission chain."""

from __future__ import annotations

import structlog
from starlette.requests import Request

from gatekeeper.admission.blacklist import IPBlacklist
from gatekeeper.middleware.pipeline import Denial, Middleware, RequestContext

logger = structlog.get_logger()


class BlacklistGuard(Middleware):
    """Reject blacklisted client keys with a generic 403.

    The denial carries no metadata so the caller cannot tell why it was blocked.
    """

    def __init__(self, blacklist: IPBlacklist) -> None:
        self.blacklist = blacklist

    async def process_request(self, request: Request, context: RequestContext) -> Denial | None:
        if self.blacklist.admit(context.client_key):
            return None

        logger.warning("ip_blocked", client_key=context.client_key, path=request.url.path)
        return Denial(status_code=403, reason="access_denied", message="Access denied")
