"""Optional API-key and IP-allowlist protection for the HTTP service."""

from .guard import AuthGuard, Denial, denial_response, presented_key, verify_http_request
from .middleware import PUBLIC_PATHS, build_http_auth_guard
from .settings import (
    DEFAULT_ALLOWED_IPS,
    ApiKeyStore,
    AuthSettings,
    build_auth_settings,
    get_api_key_path,
    load_or_create_api_key,
    parse_allowlist,
)

__all__ = [
    "ApiKeyStore",
    "AuthGuard",
    "AuthSettings",
    "DEFAULT_ALLOWED_IPS",
    "Denial",
    "PUBLIC_PATHS",
    "build_auth_settings",
    "build_http_auth_guard",
    "denial_response",
    "get_api_key_path",
    "load_or_create_api_key",
    "parse_allowlist",
    "presented_key",
    "verify_http_request",
]
