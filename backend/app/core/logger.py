"""
Custom logging configuration.

Responsibilities:
- Setup structured logging
- Configure log levels and formats
- Output logs to console and file
"""

import logging
import sys

from app.core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
ROOT_LOGGER_NAME = "arshare"


def setup_logger(level: str = None, log_file: str = None) -> logging.Logger:
    """Configures the application logger."""
    app_logger = logging.getLogger(ROOT_LOGGER_NAME)
    app_logger.setLevel((level or settings.LOG_LEVEL).upper())

    if app_logger.handlers:
        return app_logger

    formatter = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    app_logger.addHandler(console)

    log_file = log_file or settings.LOG_FILE
    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        app_logger.addHandler(file_handler)

    return app_logger


def get_logger(name: str) -> logging.Logger:
    """Child logger of the application logger, e.g. ``arshare.app.routes.share``."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


logger = setup_logger()
