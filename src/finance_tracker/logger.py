"""Logging configuration for the finance tracker.

Sets up logging to both file (with date-based naming) and console.
Library modules log through ``logging.getLogger(__name__)``, which
places them under the ``finance_tracker`` logger configured here.
"""

import logging
from datetime import date
from typing import Optional

from finance_tracker.config.settings import AppSettings

LOGGER_NAME = "finance_tracker"


def setup_logging(settings: AppSettings, console: bool = True) -> logging.Logger:
    """Set up application logging with file and console handlers.

    Args:
        settings: Application settings containing log level and directory.
        console: Also log to stderr.

    Returns:
        Configured logger instance.
    """
    settings.log_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(settings.log_level)

    # Clear any existing handlers (in case this is called multiple times)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    detailed_formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    console_formatter = logging.Formatter("%(levelname)s - %(message)s")

    # File handler - logs to finance-tracker-{date}.log
    log_file_path = settings.log_dir / f"finance-tracker-{date.today().isoformat()}.log"
    file_handler = logging.FileHandler(log_file_path)
    file_handler.setLevel(settings.log_level)
    file_handler.setFormatter(detailed_formatter)
    logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(settings.log_level)
        console_handler.setFormatter(console_formatter)
        logger.addHandler(console_handler)

    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get the application logger, or one of its children.

    Args:
        name: Child name, e.g. "cli" for ``finance_tracker.cli``.

    Returns:
        Logger instance.
    """
    if not name:
        return logging.getLogger(LOGGER_NAME)
    if name.startswith(LOGGER_NAME):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_NAME}.{name}")
