"""ASGI middleware guarding the management API with a Bearer token."""

from __future__ import annotations

import hmac

from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Receive, Scope, Send

from autoreply.audit.event_log import EventLog
from autoreply.models import LogEventType

# Only the management API requires the admin token
PROTECTED_PREFIXES = ("/api/",)
BEARER_PREFIX = "Bearer "


class AuthMiddleware:
    """Rejects ``/api/`` requests that lack the admin token.

    401 when the header is missing or not a Bearer credential, 403 when the
    token is wrong. Every rejection is recorded in the event log by reason,
    never with the offered token.
    """

    def __init__(
        self,
        app: ASGIApp,
        token: str,
        event_log: EventLog | None = None,
    ) -> None:
        self.app = app
        self._token = token.encode()
        self.event_log = event_log

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or not scope["path"].startswith(PROTECTED_PREFIXES):
            await self.app(scope, receive, send)
            return

        request = Request(scope)
        rejection = self._check(request.headers.get("authorization", ""))
        if rejection is None:
            await self.app(scope, receive, send)
            return

        status_code, reason = rejection
        self._record_rejection(request, reason)
        message = "Access denied" if status_code == 403 else "Authentication required"
        await JSONResponse({"error": message}, status_code=status_code)(scope, receive, send)

    def _check(self, auth_header: str) -> tuple[int, str] | None:
        """Return ``(status, reason)`` for a rejected header, None if accepted."""
        if not auth_header:
            return 401, "missing_token"
        if not auth_header.startswith(BEARER_PREFIX):
            return 401, "invalid_format"
        offered = auth_header[len(BEARER_PREFIX):].encode()
        if not hmac.compare_digest(offered, self._token):
            return 403, "invalid_token"
        return None

    def _record_rejection(self, request: Request, reason: str) -> None:
        if self.event_log is None:
            return
        self.event_log.log(LogEventType.ERROR, {
            "msg": "Admin authentication failed",
            "action": f"{request.method} {request.url.path}",
            "sourceIp": request.client.host if request.client else None,
            "reason": reason,
        })
