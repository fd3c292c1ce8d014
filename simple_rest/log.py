"""Logging helpers for simple-rest."""

from __future__ import annotations

import logging
import os

PACKAGE_LOGGER = "simple_rest"
DEFAULT_LOG_LEVEL = os.getenv("SIMPLE_REST_LOG_LEVEL", "WARNING").upper()


def setup_logging(level: str | None = None) -> None:
    """Configure standard logging for script use."""
    effective_level = (level or DEFAULT_LOG_LEVEL).upper()
    logging.basicConfig(
        level=getattr(logging, effective_level, logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
    )


def set_debug(enabled: bool = True) -> None:
    """Turn debug output for the whole package on or off."""
    logging.getLogger(PACKAGE_LOGGER).setLevel(logging.DEBUG if enabled else logging.NOTSET)


def debug_enabled() -> bool:
    return logging.getLogger(PACKAGE_LOGGER).isEnabledFor(logging.DEBUG)


__all__ = ["debug_enabled", "set_debug", "setup_logging"]
