"""
Logging setup shared by services and background jobs.
"""

import logging
import sys

from pointwise.core.config import get_settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logger(name: str) -> logging.Logger:
    """Return a module logger with a single stream handler attached."""
    log = logging.getLogger(name)
    if not log.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        log.addHandler(handler)
        log.propagate = False
    log.setLevel(logging.DEBUG if get_settings().DEBUG else logging.INFO)
    return log


logger = setup_logger("pointwise")
