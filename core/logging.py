"""Application logging helpers.

One stream handler per named logger with a fixed format. The level comes
from the ``LOG_LEVEL`` environment variable (default INFO).
"""
from __future__ import annotations

import logging
import os
import threading

_LOCK = threading.Lock()
_FORMAT = "[bookswap] %(asctime)s %(levelname)s %(name)s %(message)s"


def log_level_name() -> str:
    return os.getenv("LOG_LEVEL", "INFO").upper()


def get_logger(name: str = "bookswap") -> logging.Logger:
    logger = logging.getLogger(name)
    with _LOCK:
        if not any(getattr(h, "_bookswap", False) for h in logger.handlers):
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter(_FORMAT))
            handler._bookswap = True  # type: ignore[attr-defined]
            logger.addHandler(handler)
            logger.setLevel(getattr(logging, log_level_name(), logging.INFO))
            logger.propagate = False
    return logger


__all__ = ["get_logger", "log_level_name"]
