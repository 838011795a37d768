"""Centralized configuration for the edit assistant.

Loads settings from a .env file (if present) next to this module, then
falls back to environment variables, then to hardcoded defaults.

Usage in other modules:
    from edit_generator.config import cfg

    timeout = cfg.provider_timeout_seconds
    cap     = cfg.context_max_chars

Provider credentials are deliberately NOT exposed here: the provider registry
reads them from the environment mapping it is given, so tests can inject one.
"""
from __future__ import annotations

import os
from pathlib import Path

# ---------------------------------------------------------------------------
# .env loader (no dependency on python-dotenv)
# ---------------------------------------------------------------------------

_ENV_DIR = Path(__file__).resolve().parent


def _load_dotenv(directory: Path = _ENV_DIR) -> None:
    """Parse a .env file and inject values into os.environ.

    Only sets a variable if it is NOT already present in the environment,
    so real env vars always win.
    """
    env_file = directory / ".env"
    if not env_file.is_file():
        return
    for line in env_file.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, _, value = line.partition("=")
        key = key.strip()
        value = value.strip().strip("'\"")
        if key and key not in os.environ:
            os.environ[key] = value


_load_dotenv()


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, str(default)))
    except ValueError:
        return default


def _env_positive_int(name: str, default: int) -> int:
    value = _env_int(name, default)
    return value if value > 0 else default


def _env_float(name: str, default: float) -> float:
    try:
        value = float(os.environ.get(name, str(default)))
    except ValueError:
        return default
    return value if value > 0 else default


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# ---------------------------------------------------------------------------
# Config class
# ---------------------------------------------------------------------------


class _Config:
    """Read-only configuration object. All values resolve at access time so
    they pick up any later changes to os.environ."""

    # ── HTTP server ──────────────────────────────────────────────────

    @property
    def host(self) -> str:
        return os.environ.get("EDIT_ASSISTANT_HOST", "127.0.0.1")

    @property
    def port(self) -> int:
        return _env_int("EDIT_ASSISTANT_PORT", 8080)

    @property
    def max_body_bytes(self) -> int:
        """Largest accepted request body (the scene tree can be big)."""
        return _env_positive_int("EDIT_ASSISTANT_MAX_BODY_BYTES", 10 * 1024 * 1024)

    @property
    def log_level(self) -> str:
        return os.environ.get("LOG_LEVEL", "INFO")

    # ── Auth guard ───────────────────────────────────────────────────

    @property
    def auth_enabled(self) -> bool:
        return _env_bool("EDIT_ASSISTANT_AUTH_ENABLED")

    @property
    def api_key(self) -> str | None:
        return os.environ.get("EDIT_ASSISTANT_API_KEY") or None

    @property
    def allowed_ips(self) -> list[str]:
        raw = os.environ.get("EDIT_ASSISTANT_ALLOWED_IPS", "")
        return [part.strip() for part in raw.split(",") if part.strip()]

    # ── Providers ────────────────────────────────────────────────────

    @property
    def provider_timeout_seconds(self) -> float:
        """Timeout applied to each outbound provider call."""
        return _env_float("PROVIDER_TIMEOUT_SECONDS", 60.0)

    @property
    def site_url(self) -> str:
        return os.environ.get("SITE_URL", "https://your-app.com")

    @property
    def site_name(self) -> str:
        return os.environ.get("SITE_NAME", "Roblox AI Assistant")

    # ── Request limits ───────────────────────────────────────────────

    @property
    def context_max_chars(self) -> int:
        """Hard cap on the scene digest embedded in each prompt."""
        return _env_positive_int("CONTEXT_MAX_CHARS", 6000)

    @property
    def max_scene_nodes(self) -> int:
        return _env_positive_int("MAX_SCENE_NODES", 100_000)


cfg = _Config()
