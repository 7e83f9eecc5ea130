"""Loguru console sink for the CLI and batch runs."""

import sys

from loguru import logger


def setup_logger(level: str = "INFO") -> None:
    """Replace the default sink with a formatted stderr sink at ``level``."""
    logger.remove()
    logger.add(
        sys.stderr,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        ),
        level=level,
        colorize=True,
    )
