"""
Initialization - Logging Module.

Configures loguru logger for the service.
Sets up log rotation and retention policies.
"""

from loguru import logger


def setup_logging(level: str | None = None, log_file: str | None = None) -> None:
    """Configure logger with file rotation."""
    from mlm_app.config.settings import settings

    logger.add(
        log_file or settings.log_file,
        rotation="1 day",
        retention="7 days",
        level=level or settings.log_level,
        encoding="utf-8",
    )

    logger.info(
        "Starting MLM referral backend...",
        extra={"environment": settings.environment},
    )
