"""Centralized logging configuration."""

import sys

from loguru import logger

from .config import LOG_DIR, LOG_LEVEL

log_format = " | ".join(
    (
        "<lk>{time:YYYY-MM-DD HH:mm:ss.SSS}</>",
        "<lvl>{level:<8}</>",
        "<c>{name}::{function}:{line}</>",
        "{message}",
    )
)

# Drop loguru's default handler so every sink shares one format
logger.remove()
logger.add(sys.stdout, format=log_format, level=LOG_LEVEL)

if LOG_DIR:
    logger.add(
        f"{LOG_DIR}/{{time:YYYY-MM-DD}}.log",
        format=log_format,
        level=LOG_LEVEL,
        rotation="1 day",
        retention="30 days",
        compression="zip",
        enqueue=True,
    )

__all__ = ["logger"]
