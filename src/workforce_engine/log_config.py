"""Logging setup shared by the API and the CLI entry point."""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install a single stream handler on the package logger."""
    logger = logging.getLogger("workforce_engine")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)

    # SQL echo is controlled by the engine, not by our level
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
