"""
BioNova-X - Logging
====================
Pre-configured logger factory shared by every BioNova-X module.

Each line carries the id of the HTTP request it was emitted under
(``req=-`` outside a request).  The request middleware in
``bionova.src.main`` binds the id; everything downstream, including the
body of a streamed chat response, logs under it.

Logging verbosity is driven by ``settings.ENV``:
  • ``"dev"``  → DEBUG level  (maximum detail)
  • ``"prod"`` → WARNING level (errors & warnings only)

Usage:
    from bionova.src.utils.logger import get_logger
    logger = get_logger(__name__)
    logger.info("[CACHE] Hit for key %s", key)
"""

import logging
import sys
from contextvars import ContextVar, Token

from bionova.config.settings import settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | req=%(request_id)s | %(message)s"

_ENV_LEVEL_MAP = {
    "dev": logging.DEBUG,
    "prod": logging.WARNING,
}
_DEFAULT_LEVEL = _ENV_LEVEL_MAP.get(settings.ENV, logging.INFO)

_request_id: ContextVar[str] = ContextVar("bionova_request_id", default="-")


# ── Request correlation ────────────────────────────────────────────────

def bind_request_id(request_id: str) -> Token:
    """Tag log lines in the current context with *request_id*."""
    return _request_id.set(request_id)


def reset_request_id(token: Token) -> None:
    _request_id.reset(token)


def current_request_id() -> str:
    return _request_id.get()


class RequestIdFilter(logging.Filter):
    """Copy the bound request id onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id.get()
        return True


# ── Factory ────────────────────────────────────────────────────────────

def get_logger(name: str) -> logging.Logger:
    """
    Create and return a named logger with the BioNova-X formatter.

    Args:
        name:  Typically ``__name__`` of the calling module.

    Returns:
        A configured ``logging.Logger`` instance, level from ``settings.ENV``.
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        logger.setLevel(_DEFAULT_LEVEL)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(_DEFAULT_LEVEL)
        console_handler.addFilter(RequestIdFilter())
        console_handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(console_handler)

        logger.propagate = False

    return logger
