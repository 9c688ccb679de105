from __future__ import annotations

import logging
import os
from typing import Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
BASE_LOGGER_NAME = "campus_attendance"


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    resolved = getattr(logging, level_name, logging.INFO)

    logger = logging.getLogger(BASE_LOGGER_NAME)
    logger.setLevel(resolved)

    # Avoid duplicate console handlers when the app factory runs more than once.
    if not any(isinstance(h, logging.StreamHandler) for h in logger.handlers):
        ch = logging.StreamHandler()
        ch.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(ch)
    for h in logger.handlers:
        h.setLevel(resolved)

    logger.propagate = False
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    base = logging.getLogger(BASE_LOGGER_NAME)
    if not name:
        return base
    if name.startswith(BASE_LOGGER_NAME + "."):
        name = name[len(BASE_LOGGER_NAME) + 1:]
    return base.getChild(name)
