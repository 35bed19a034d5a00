"""Process-wide logging setup for the placement service and engine."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from bedwise.utils.config import get_settings


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

_handler_installed = False


def configure_logging(level: Optional[str] = None) -> None:
    """Install the stdout handler once and apply the requested level.

    Modules call `get_logger` at import time, before the app factory knows
    its settings, so an explicit `level` is re-applied to the root logger on
    every call. Without one the level comes from `BEDWISE_LOG_LEVEL`.
    """
    global _handler_installed
    resolved_level = (level or get_settings().log_level).upper()

    if not _handler_installed:
        logging.basicConfig(level=resolved_level, format=LOG_FORMAT, stream=sys.stdout)
        _handler_installed = True
    elif level is not None:
        logging.getLogger().setLevel(resolved_level)


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name)
