"""Logging setup for the imposters service."""

import logging

from imposters.config import settings


def configure_logging(level: str = None) -> logging.Logger:
    """Configure root logging once and return the package logger."""
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    return logging.getLogger("imposters")
