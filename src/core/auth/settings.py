"""Who may call the HTTP service: allowlisted networks and the shared API key."""

from __future__ import annotations

import ipaddress
import logging
import os
import secrets
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence, Union

logger = logging.getLogger("edit-assistant-server")

DEFAULT_ALLOWED_IPS: tuple[str, ...] = ("127.0.0.1/32", "::1/128")
WILDCARD = "*"
API_KEY_FILENAME = "api_key"

Network = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]


@dataclass(frozen=True)
class AuthSettings:
    enabled: bool = False
    token: str | None = None
    networks: tuple[Network, ...] = ()
    allow_any: bool = False

    def admits(self, host: str | None) -> bool:
        """True when ``host`` falls inside the allowlist.

        Peers that are not IP addresses (unix sockets, test clients) only get
        through a ``*`` allowlist.
        """
        if self.allow_any:
            return True
        if not host:
            return False
        try:
            address = ipaddress.ip_address(host)
        except ValueError:
            return False
        return any(address in network for network in self.networks)

    @property
    def allowlist_label(self) -> str:
        if self.allow_any:
            return WILDCARD
        return ", ".join(str(network) for network in self.networks)


def parse_allowlist(entries: Sequence[str] | None) -> tuple[tuple[Network, ...], bool]:
    """Parse IP / CIDR strings into networks plus a wildcard flag.

    Blank entries are ignored and an empty list means loopback only. Raises
    ValueError naming the first entry that is not an address or network.
    """
    cleaned = [entry.strip() for entry in entries or () if entry and entry.strip()]
    if not cleaned:
        cleaned = list(DEFAULT_ALLOWED_IPS)

    networks: list[Network] = []
    for entry in cleaned:
        if entry == WILDCARD:
            continue
        try:
            networks.append(ipaddress.ip_network(entry, strict=False))
        except ValueError:
            raise ValueError(f"Invalid allowed IP entry: {entry!r}") from None
    return tuple(networks), WILDCARD in cleaned


def build_auth_settings(
    *,
    enabled: bool = False,
    token: str | None = None,
    allowed_ips: Sequence[str] | None = None,
) -> AuthSettings:
    """Resolve the guard configuration.

    An enabled guard always carries a key: without an explicit one the
    persisted key is loaded, or generated on first use.
    """
    networks, allow_any = parse_allowlist(allowed_ips)
    key = token.strip() if token and token.strip() else None
    if enabled and key is None:
        key = load_or_create_api_key()
    return AuthSettings(enabled=enabled, token=key, networks=networks, allow_any=allow_any)


def _data_dir() -> Path:
    if sys.platform == "win32":
        return Path(os.environ.get("LOCALAPPDATA") or Path.home() / "AppData" / "Local") / "EditAssistant"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "EditAssistant"
    return Path(os.environ.get("XDG_DATA_HOME") or Path.home() / ".local" / "share") / "edit-assistant"


def get_api_key_path() -> Path:
    home = os.environ.get("EDIT_ASSISTANT_HOME")
    return (Path(home) if home else _data_dir()) / API_KEY_FILENAME


class ApiKeyStore:
    """The generated API key, kept on disk so restarts reuse it."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or get_api_key_path()

    def read(self) -> str | None:
        try:
            value = self.path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        except OSError:
            logger.warning("Could not read API key file %s", self.path, exc_info=True)
            return None
        return value or None

    def write(self, key: str) -> None:
        # A key that cannot be stored still guards this process.
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(key, encoding="utf-8")
            if os.name == "posix":
                os.chmod(self.path, 0o600)
        except OSError:
            logger.warning("Could not persist API key to %s", self.path, exc_info=True)
            return
        logger.info("Stored new API key in %s", self.path)

    def load_or_create(self) -> str:
        existing = self.read()
        if existing:
            logger.info("Using API key from %s", self.path)
            return existing
        key = secrets.token_urlsafe(32)
        self.write(key)
        return key


def load_or_create_api_key() -> str:
    return ApiKeyStore().load_or_create()
