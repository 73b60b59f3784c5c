"""
Package logging for ndpa_tools.

- Single logger hierarchy rooted at `ndpa_tools`.
- No root/global logging mutations that could leak into the host application.
"""

import logging
from typing import Optional

BASE_LOGGER_NAME = "ndpa_tools"

_LOGGING_CONFIGURED: bool = False


def _base_logger() -> logging.Logger:
    return logging.getLogger(BASE_LOGGER_NAME)


def _logger_name(name: Optional[str]) -> str:
    if name in (None, "", BASE_LOGGER_NAME):
        return BASE_LOGGER_NAME
    if name.startswith(BASE_LOGGER_NAME + "."):
        return name
    return f"{BASE_LOGGER_NAME}.{name}"


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Return a logger inside the package hierarchy.

    Args:
        name: Module name (``__name__``) or a short suffix such as ``"cli"``.
    """
    return logging.getLogger(_logger_name(name))


def configure_logging(level: int = logging.INFO, debug: bool = False) -> None:
    """Install one stream handler on the package logger (idempotent)."""
    global _LOGGING_CONFIGURED

    base = _base_logger()
    if not _LOGGING_CONFIGURED and not base.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter(
                "[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            ))
        base.addHandler(handler)
    base.propagate = False
    base.setLevel(logging.DEBUG if debug else level)
    _LOGGING_CONFIGURED = True
