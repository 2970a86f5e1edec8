"""Centralized logging configuration for the application."""
import logging
import os
from logging.handlers import RotatingFileHandler

from app.core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(log_dir: str | None = None, level: str | None = None) -> None:
    """Configure root logging with a console handler and, when a log
    directory is configured, rotating files for everything, errors only
    and authentication events.
    """
    log_dir = log_dir if log_dir is not None else settings.LOG_DIR
    level_value = logging.getLevelName((level or settings.LOG_LEVEL).upper())
    if not isinstance(level_value, int):
        level_value = logging.INFO

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(level_value)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level_value)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if not log_dir:
        return

    os.makedirs(log_dir, exist_ok=True)

    app_file_handler = RotatingFileHandler(
        os.path.join(log_dir, "app.log"),
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=10,
        encoding="utf-8",
    )
    app_file_handler.setLevel(level_value)
    app_file_handler.setFormatter(formatter)
    root_logger.addHandler(app_file_handler)

    error_file_handler = RotatingFileHandler(
        os.path.join(log_dir, "error.log"),
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=5,
        encoding="utf-8",
    )
    error_file_handler.setLevel(logging.ERROR)
    error_file_handler.setFormatter(formatter)
    root_logger.addHandler(error_file_handler)

    # login, 2fa and wallet events
    auth_logger = logging.getLogger("auth")
    auth_file_handler = RotatingFileHandler(
        os.path.join(log_dir, "auth.log"),
        maxBytes=5 * 1024 * 1024,  # 5MB
        backupCount=10,
        encoding="utf-8",
    )
    auth_file_handler.setLevel(logging.INFO)
    auth_file_handler.setFormatter(formatter)
    auth_logger.addHandler(auth_file_handler)

    logging.info("Logging initialized - files written to '%s'", log_dir)
