"""HTTP middleware for BedHeat."""

from __future__ import annotations

import hmac
import logging
from pathlib import Path

from starlette.responses import PlainTextResponse
from starlette.types import ASGIApp, Receive, Scope, Send

logger = logging.getLogger(__name__)

_VERSION_FILE = Path(__file__).resolve().parents[2] / "VERSION"
_VERSION = _VERSION_FILE.read_text().strip() if _VERSION_FILE.exists() else "unknown"


class CronSecretMiddleware:
    """Bearer-secret authentication for the cron trigger.

    Requests under ``protected_prefix`` need ``Authorization: Bearer
    <secret>``. With no secret configured those paths are closed entirely;
    every other path passes through untouched.
    """

    def __init__(self, app: ASGIApp, *, secret: str, protected_prefix: str) -> None:
        self.app = app
        self._secret = secret
        self._expected = f"Bearer {secret}".encode()
        self._prefix = protected_prefix.rstrip("/")
        if not secret:
            logger.warning("No cron secret configured - %s is disabled", self._prefix)

    def _is_protected(self, path: str) -> bool:
        return path == self._prefix or path.startswith(f"{self._prefix}/")

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or not self._is_protected(scope.get("path", "/")):
            await self.app(scope, receive, send)
            return

        # Compare raw bytes; compare_digest rejects non-ASCII str operands.
        headers = dict(scope.get("headers", []))
        auth_header = headers.get(b"authorization", b"")
        if self._secret and hmac.compare_digest(auth_header, self._expected):
            await self.app(scope, receive, send)
            return

        response = PlainTextResponse("Unauthorized", status_code=401)
        await response(scope, receive, send)
