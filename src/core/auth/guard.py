"""Per-request checks for the HTTP surface."""

from __future__ import annotations

import hmac
import logging
from typing import Mapping, NamedTuple

from starlette.requests import Request
from starlette.responses import JSONResponse

from .settings import AuthSettings

logger = logging.getLogger("edit-assistant-server")


class Denial(NamedTuple):
    status_code: int
    reason: str


def _header(headers: Mapping[str, str], name: str) -> str | None:
    for key, value in headers.items():
        if key.lower() == name:
            return value
    return None


def presented_key(headers: Mapping[str, str]) -> str | None:
    """The key sent as ``X-API-Key`` or as an ``Authorization: Bearer`` token."""
    api_key = (_header(headers, "x-api-key") or "").strip()
    if api_key:
        return api_key
    scheme, _, credentials = (_header(headers, "authorization") or "").partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return None


def _mask(value: str) -> str:
    return value[:4] + "***"


def denial_response(denial: Denial) -> JSONResponse:
    return JSONResponse(
        {"success": False, "error": "unauthorized", "details": denial.reason},
        status_code=denial.status_code,
    )


class AuthGuard:
    def __init__(self, settings: AuthSettings) -> None:
        self.settings = settings

    def evaluate(self, client_host: str | None, headers: Mapping[str, str]) -> Denial | None:
        """Return why the caller is refused, or None to let it through.

        403 for a peer outside the allowlist or a wrong key, 401 for no key.
        """
        if not self.settings.enabled:
            return None

        peer = client_host or "unknown"
        if not self.settings.admits(client_host):
            logger.warning("Refused %s: address not in allowlist", peer)
            return Denial(403, "IP not allowed")

        expected = self.settings.token
        if not expected:
            return None

        provided = presented_key(headers)
        if provided is None:
            logger.warning("Refused %s: no API key", peer)
            return Denial(401, "Missing API key")
        if not hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
            logger.warning("Refused %s: API key %s does not match", peer, _mask(provided))
            return Denial(403, "Invalid API key")
        return None

    def check_http(self, request: Request) -> JSONResponse | None:
        client_host = request.client.host if request.client else None
        denial = self.evaluate(client_host, request.headers)
        return None if denial is None else denial_response(denial)


def verify_http_request(request: Request, settings: AuthSettings) -> JSONResponse | None:
    return AuthGuard(settings).check_http(request)
