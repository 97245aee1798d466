"""Logging configuration helpers."""

import logging
from collections.abc import Iterable

PACKAGE_LOGGER = "nutrition_planner"
LOG_FORMAT = "%(asctime)s %(levelname)s: %(name)s: %(message)s"

# Supabase talks to PostgREST over httpx; each request logs at INFO.
CLIENT_LOGGERS = ("httpx", "httpcore", "hpack")


def configure_logging(
    level: str = "INFO", client_loggers: Iterable[str] = CLIENT_LOGGERS
) -> logging.Logger:
    """Configure the package logger and quiet the database client's loggers.

    Client loggers stay at WARNING unless the package runs at DEBUG.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level.upper())
    client_level = logging.DEBUG if logger.level == logging.DEBUG else logging.WARNING
    for name in client_loggers:
        logging.getLogger(name).setLevel(client_level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.propagate = False
    return logger
