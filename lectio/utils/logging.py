"""Application logging helpers.

Lightweight singleton logger honoring the level from
`lectio.config.log_level_name()`.
"""
from __future__ import annotations

import logging
import threading
from typing import Optional

from lectio import config as app_config

_LOCK = threading.Lock()
_PRIMARY: Optional[logging.Logger] = None


def get_logger(name: str = "lectio") -> logging.Logger:
    global _PRIMARY
    if name == "lectio" and _PRIMARY is not None:
        return _PRIMARY
    with _LOCK:
        if name == "lectio" and _PRIMARY is not None:
            return _PRIMARY
        logger = logging.getLogger(name)
        level_name = app_config.log_level_name()
        level = getattr(logging, level_name, logging.INFO)
        logger.setLevel(level)
        if not any(isinstance(h, logging.StreamHandler) for h in logger.handlers):
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter("[lectio] %(asctime)s %(levelname)s %(name)s %(message)s"))
            logger.addHandler(handler)
        logger.propagate = False
        if name == "lectio":
            _PRIMARY = logger
        return logger


__all__ = ["get_logger"]
