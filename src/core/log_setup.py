"""Process-wide logging configuration."""
from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"


def configure_logging(level: str = "INFO", log_file: str | None = None) -> None:
    """Install a single stderr (or file) handler on the root logger.

    stdout is left alone so CLI commands can print JSON on it.
    """
    handlers: list[logging.Handler] = []
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    else:
        handlers.append(logging.StreamHandler(sys.stderr))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )
    # httpx logs every request URL at INFO; Google keys travel in the query string.
    logging.getLogger("httpx").setLevel(logging.WARNING)
