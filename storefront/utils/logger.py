"""
Package-wide logging for storefront.

Every module logs through a child of the "storefront" logger so the UI layer
can route or silence the whole core in one place. The level comes from
STOREFRONT_LOG_LEVEL (falling back to LOG_LEVEL, then INFO).
"""
import logging
import os
import sys
from typing import Optional, TextIO

ROOT_NAME = "storefront"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_LEVEL = (os.getenv("STOREFRONT_LOG_LEVEL") or os.getenv("LOG_LEVEL") or "INFO").upper()
logger = logging.getLogger(ROOT_NAME)


def _handler(stream: TextIO) -> logging.Handler:
    handler = logging.StreamHandler(stream)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    return handler


def configure_logging(level: Optional[str] = None, stream: Optional[TextIO] = None) -> logging.Logger:
    """
    (Re)attach the single console handler and set the level.

    Called once at import with the environment defaults; call again to send
    records elsewhere (e.g. a log file opened by the host app).
    """
    level = (level or LOG_LEVEL).upper()
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
    logger.addHandler(_handler(stream or sys.stdout))
    logger.setLevel(level)
    # Records stop here; the root logger would print them a second time
    logger.propagate = False
    return logger


if not logger.handlers:
    configure_logging()


def get_logger(name: str = None) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Optional component name, appended to 'storefront'
              ("gateway" -> "storefront.gateway")

    Returns:
        Logger instance
    """
    if name:
        return logging.getLogger(f"{ROOT_NAME}.{name}")
    return logger
