"""
Logging configuration.

Configures the loguru logger: a stderr sink at the configured level and an
optional rotating file sink.
"""

import sys

from loguru import logger

from app.config.settings import Settings, settings as default_settings


def setup_logging(config: Settings | None = None) -> None:
    """Configure logger sinks from settings."""
    config = config or default_settings

    logger.remove()
    logger.add(
        sys.stderr,
        level=config.log_level,
        backtrace=config.debug,
        diagnose=config.debug,
    )

    if config.log_file:
        logger.add(
            config.log_file,
            rotation="1 day",
            retention="7 days",
            level=config.log_level,
            encoding="utf-8",
        )

    logger.info(
        f"Logging configured: level={config.log_level} "
        f"environment={config.environment}"
    )
