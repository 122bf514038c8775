"""
Logging configuration
"""
import sys
from typing import Optional

from loguru import logger

from .config import Settings, get_settings


def configure_logging(settings: Optional[Settings] = None) -> None:
    """
    Configure loguru sinks for the subgraph process
    """
    settings = settings or get_settings()

    # Remove default logger
    logger.remove()

    if settings.environment == "production":
        # JSON lines for log aggregators
        logger.add(
            sys.stdout,
            level=settings.log_level,
            serialize=True,
            backtrace=False,
            diagnose=False,
        )
    else:
        logger.add(
            sys.stdout,
            format=settings.log_format,
            level=settings.log_level,
            colorize=settings.is_development,
            backtrace=True,
            diagnose=settings.is_development,
        )

    if settings.log_file:
        logger.add(
            settings.log_file,
            format=settings.log_format,
            level=settings.log_level,
            rotation=settings.log_rotation,
            retention=settings.log_retention,
            compression="gz",
            backtrace=True,
            diagnose=False,  # Don't include local variables in file logs
        )

    logger.info(f"Logging configured for {settings.environment} environment")
