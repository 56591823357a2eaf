"""Centralized logging configuration for the Reminder Scheduler service.

Each component logs to its own rotating file under settings.LOG_DIR and to
the console. Level and file output are driven by settings so the worker,
the API server and the test suite can share one setup.
"""

import logging
from logging.handlers import RotatingFileHandler
import os

from config import settings

LOG_FORMAT = '[%(asctime)s] %(levelname)s %(name)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

NOISY_LOGGERS = ('uvicorn', 'uvicorn.access', 'fastapi', 'sqlalchemy', 'httpx', 'twilio')


def setup_logger(name: str, log_file: str = 'service.log') -> logging.Logger:
    """Setup a component logger.

    Args:
        name: Logger name (usually __name__)
        log_file: Log file name under LOG_DIR (e.g., 'scheduler.log', 'api.log')

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Avoid duplicate handlers
    if logger.handlers:
        return logger

    level = logging.getLevelName(settings.LOG_LEVEL.upper())
    logger.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    if settings.LOG_TO_FILE:
        os.makedirs(settings.LOG_DIR, exist_ok=True)
        # 10MB per file, keep 5 backups
        file_handler = RotatingFileHandler(
            os.path.join(settings.LOG_DIR, log_file),
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding='utf-8'
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger


def quiet_third_party_loggers():
    """Reduce third-party library noise."""
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


# Auto-configure on import
quiet_third_party_loggers()
