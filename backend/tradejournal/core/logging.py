import sys
from pathlib import Path

from loguru import logger

from tradejournal.core.config import settings


def setup_logging():
    log_settings = settings.logging
    logger.remove()
    
    # Console Handler
    logger.add(
        sys.stderr,
        format=log_settings.format,
        level=log_settings.level,
        colorize=True,
    )
    
    # File Handler (JSON for structured logging)
    if log_settings.file_enabled:
        Path(log_settings.file_path).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_settings.file_path,
            rotation=log_settings.file_rotation,
            retention=log_settings.file_retention,
            compression="zip",
            serialize=True,
            level=log_settings.level,
        )
        
        # Error File Handler
        logger.add(
            str(Path(log_settings.file_path).with_suffix(".error.log")),
            rotation=log_settings.file_rotation,
            retention=log_settings.file_retention,
            level="ERROR",
            backtrace=True,
            diagnose=settings.is_development,
        )

    logger.info("Logging initialized")
