"""
Shared helpers: logging setup and currency arithmetic.
"""

from __future__ import annotations

import logging
import math
import os
import sys
from typing import Optional

LOGGER_NAME = "autovalue"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """
    Configure and return the package logger.

    Safe to call from every module; the stream handler is attached once.

    Args:
        level: Log level name. Defaults to the LOG_LEVEL env var, then INFO.
    """
    logger = logging.getLogger(LOGGER_NAME)
    level_name = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    logger.setLevel(getattr(logging, level_name, logging.INFO))

    # Other handlers (test capture, host app) may already be attached
    if not any(h.get_name() == LOGGER_NAME for h in logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.set_name(LOGGER_NAME)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.propagate = False

    return logger


def round_half_up(value: float) -> int:
    """Round to the nearest whole dollar, halves rounding up."""
    return int(math.floor(value + 0.5))


def format_money(value: float) -> str:
    """Format a dollar amount with thousands separators, e.g. $12,345."""
    if float(value).is_integer():
        return f"${int(value):,}"
    return f"${value:,.2f}"


def mask_secret(text: str, secret: Optional[str]) -> str:
    """Replace every occurrence of a secret (API key) with ***."""
    if not secret:
        return text
    return text.replace(secret, "***")
