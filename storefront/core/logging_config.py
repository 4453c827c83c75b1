"""Logging setup for the storefront client."""

import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: str = "INFO", stream=None) -> logging.Logger:
    """
    Configure the ``storefront`` logger hierarchy.

    Safe to call more than once: an existing console handler is reused.
    """
    logger = logging.getLogger("storefront")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    if not any(getattr(h, "_storefront_console", False) for h in logger.handlers):
        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._storefront_console = True
        logger.addHandler(handler)

    return logger
