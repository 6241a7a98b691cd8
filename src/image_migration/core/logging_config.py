"""Centralized logging configuration for the image migration pipeline."""

import os
import sys
import logging
from typing import Optional

DEFAULT_LOGGER_NAME = "image-migration"

STRUCTURED_FORMAT = (
    "%(asctime)s | %(name)s | %(levelname)-8s | "
    "%(filename)s:%(lineno)d | %(funcName)s() | %(message)s"
)
SIMPLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logger(
    name: str = DEFAULT_LOGGER_NAME,
    level: Optional[str] = None,
    format_type: str = "structured",
) -> logging.Logger:
    """
    Setup a logger configured from arguments or environment variables.

    Args:
        name: Logger name (defaults to "image-migration")
        level: Log level override (defaults to env var or INFO for loggers
            that have no level yet)
        format_type: Logging format ("structured" or "simple")

    Returns:
        Configured logger instance

    Environment Variables:
        LOG_LEVEL: Set logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        LOG_FORMAT: Set format type ("structured" or "simple")
    """
    logger = logging.getLogger(name)

    if level:
        logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    elif logger.level == logging.NOTSET and not name.startswith(f"{DEFAULT_LOGGER_NAME}."):
        env_level = os.getenv("LOG_LEVEL", "INFO").upper()
        logger.setLevel(getattr(logging, env_level, logging.INFO))
    # Pipeline children stay at NOTSET and follow the "image-migration" level

    # Avoid duplicate handlers
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)

        env_format = os.getenv("LOG_FORMAT", format_type).lower()
        if env_format == "structured":
            formatter = logging.Formatter(STRUCTURED_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
        else:
            formatter = logging.Formatter(SIMPLE_FORMAT)

        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.propagate = False
    return logger


def get_logger(name: str = DEFAULT_LOGGER_NAME) -> logging.Logger:
    """
    Get a logger instance with consistent configuration.

    Child names are nested under the pipeline logger, so
    ``get_logger("uploader")`` returns ``image-migration.uploader``.
    """
    if name != DEFAULT_LOGGER_NAME and not name.startswith(DEFAULT_LOGGER_NAME):
        name = f"{DEFAULT_LOGGER_NAME}.{name}"
    if name != DEFAULT_LOGGER_NAME:
        setup_logger(DEFAULT_LOGGER_NAME)
    return setup_logger(name)


def set_debug(enabled: bool) -> None:
    """
    Switch the pipeline loggers to DEBUG.

    Child loggers created later inherit the level from "image-migration".
    """
    if not enabled:
        return
    logging.getLogger(DEFAULT_LOGGER_NAME).setLevel(logging.DEBUG)
    for name in list(logging.root.manager.loggerDict):
        if not name.startswith(f"{DEFAULT_LOGGER_NAME}."):
            continue
        child = logging.getLogger(name)
        if child.level != logging.NOTSET:
            child.setLevel(logging.DEBUG)
