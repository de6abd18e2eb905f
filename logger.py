"""
Logging for the storefront.

Every module logs under the "parisa" namespace through get_logger(). The
namespace gets one stdout handler when this module is imported;
configure_logging() can be called again to change the level or the stream.
"""
import logging
import os
import sys
from typing import IO, Optional

ROOT_NAME = "parisa"
LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

logger = logging.getLogger(ROOT_NAME)


def configure_logging(level: Optional[str] = None, stream: Optional[IO[str]] = None) -> logging.Logger:
    """Replace the storefront handler; level defaults to LOG_LEVEL, stream to stdout."""
    level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(level)
    # uvicorn configures the root logger; keep our lines from printing twice
    logger.propagate = False
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    return logger.getChild(name) if name else logger


configure_logging()
