"""
Logging setup shared by every module.
"""

import logging
import sys

from plancal.core.config import get_settings

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def setup_logger(name: str) -> logging.Logger:
    """
    Get a logger with the application handler attached.

    Args:
        name: Logger name, usually the caller's __name__

    Returns:
        Configured logger
    """
    log = logging.getLogger(name)
    if not log.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        log.addHandler(handler)
    log.setLevel(get_settings().LOG_LEVEL.upper())
    return log


logger = setup_logger("plancal")
