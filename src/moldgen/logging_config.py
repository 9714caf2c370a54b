"""Logging setup for the ``moldgen`` logger namespace."""

from __future__ import annotations

import logging
import sys

_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: int = logging.INFO, log_file: str | None = None) -> logging.Logger:
    """Configure the package logger with a stderr handler and an optional file handler.

    Args:
        level: Logging level (e.g. ``logging.DEBUG``).
        log_file: Optional path that receives the same records.

    Returns:
        The configured ``moldgen`` logger.
    """
    logger = logging.getLogger("moldgen")
    logger.setLevel(level)

    # Re-running setup (tests, repeated CLI calls) must not stack handlers
    if logger.hasHandlers():
        logger.handlers.clear()

    formatter = logging.Formatter(_FORMAT, datefmt="%H:%M:%S")

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode="w", encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.debug("Logging initialized.")
    return logger
