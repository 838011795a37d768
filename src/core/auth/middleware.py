"""Starlette middleware factory enforcing the auth guard."""

from __future__ import annotations

from typing import Iterable, Type

from starlette.middleware.base import BaseHTTPMiddleware

from .guard import AuthGuard
from .settings import AuthSettings

PUBLIC_PATHS: tuple[str, ...] = ("/health",)


def build_http_auth_guard(
    settings: AuthSettings,
    public_paths: Iterable[str] = PUBLIC_PATHS,
) -> Type[BaseHTTPMiddleware]:
    """Create a middleware class that guards every path except ``public_paths``."""

    guard = AuthGuard(settings)
    exempt = frozenset(public_paths)

    class HttpAuthGuard(BaseHTTPMiddleware):
        async def dispatch(self, request, call_next):
            if request.url.path not in exempt:
                failure = guard.check_http(request)
                if failure is not None:
                    return failure
            return await call_next(request)

    return HttpAuthGuard
