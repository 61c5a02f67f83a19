"""
Logging setup - one console handler for every "linecal.*" logger.

Modules never configure handlers themselves. They call
logging.getLogger("linecal.<area>") and this module attaches a single
stdout handler to the "linecal" parent logger at startup.
"""

import logging
import sys

ROOT_LOGGER_NAME = "linecal"

LOG_FORMAT = "[%(asctime)s] %(levelname)s [%(name)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: str = "INFO") -> logging.Logger:
    """
    Configure the application logger hierarchy.

    Safe to call more than once (e.g. from tests creating several apps):
    the handler is only added the first time.

    Args:
        level: Log level name ("DEBUG", "INFO", ...)

    Returns:
        The configured "linecal" logger
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level.upper())

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(handler)

    return logger
