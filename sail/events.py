from __future__ import annotations

import logging
import sys

logger = logging.getLogger("sail")

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


def configure_logging(verbose: bool = False) -> None:
    """Send diagnostics to stderr. Safe to call more than once."""
    for h in list(logger.handlers):
        logger.removeHandler(h)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)


def log_event(level: str, message: str, application: str | None = None, service: str | None = None) -> None:
    if application and service:
        message = f"[{application}/{service}] {message}"
    elif application:
        message = f"[{application}] {message}"
    logger.log(_LEVELS.get(level.upper(), logging.INFO), message)
