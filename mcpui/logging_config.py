"""Logging setup for the CLI and embedding applications."""

from __future__ import annotations

import logging
import sys
from typing import List

from mcpui.config import Config

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

# httpx logs every key set request at INFO.
_QUIET_LOGGERS = ("httpx", "httpcore")


def _level(name: str) -> int:
    level = logging.getLevelName(str(name).upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging(config: Config) -> None:
    """Log to the configured file, and also to stderr in debug mode."""
    level = _level(config.logging.log_level)
    formatter = logging.Formatter(LOG_FORMAT)

    log_file = config.logging.log_file.expanduser()
    log_file.parent.mkdir(parents=True, exist_ok=True)

    handlers: List[logging.Handler] = [logging.FileHandler(log_file, encoding="utf-8")]
    if config.developer.debug_mode:
        handlers.append(logging.StreamHandler(sys.stderr))
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    logging.getLogger(__name__).info(
        "Logging initialized level=%s file=%s debug=%s",
        logging.getLevelName(level),
        log_file,
        config.developer.debug_mode,
    )
