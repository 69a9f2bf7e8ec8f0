"""
Logging Utilities

This module sets up logging for the registration package with a consistent
format, and applies the level/file settings from the application config to
every logger created through ``setup_logger``.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Union

PACKAGE_LOGGER_NAME = "rigid_registration"

CONSOLE_FORMAT = '%(asctime)s | %(levelname)s | %(name)s | %(message)s'
FILE_FORMAT = '%(asctime)s | %(levelname)s | %(processName)s[%(process)d] | %(name)s | %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logger(name: str,
                 level: int = logging.INFO,
                 log_file: Optional[str] = None) -> logging.Logger:
    """
    Set up a logger with consistent formatting.

    Loggers inside the package (``rigid_registration.*``) get no handlers of
    their own; they propagate to the package logger, which owns the console
    handler. Any other name gets its own console handler.

    Args:
        name: Logger name (usually __name__)
        level: Logging level (default: logging.INFO)
        log_file: Optional log file path. If provided, logs will be written to this file

    Returns:
        Configured logger instance
    """
    if name != PACKAGE_LOGGER_NAME and name.startswith(PACKAGE_LOGGER_NAME + "."):
        _ensure_handlers(logging.getLogger(PACKAGE_LOGGER_NAME), level, log_file)
        return logging.getLogger(name)

    logger = logging.getLogger(name)
    _ensure_handlers(logger, level, log_file)
    return logger


def _ensure_handlers(logger: logging.Logger, level: int, log_file: Optional[str]) -> None:
    # Avoid adding multiple handlers
    if logger.handlers:
        return

    logger.setLevel(level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(console_handler)

    if log_file:
        _add_file_handler(logger, log_file)


def _add_file_handler(logger: logging.Logger, log_file: Union[str, Path]) -> None:
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    file_handler = logging.FileHandler(log_path)
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(file_handler)


def configure_logging(level: Union[int, str] = logging.INFO,
                      log_file: Optional[str] = None) -> logging.Logger:
    """
    Apply a level (and optional log file) to the package logger tree.

    Args:
        level: Logging level as int or name ("DEBUG", "INFO", ...)
        log_file: Optional path of a log file to add

    Returns:
        The package logger
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            raise ValueError(f"Unknown logging level: {level}")

    logger = setup_logger(PACKAGE_LOGGER_NAME, level=level)
    logger.setLevel(level)

    if log_file:
        target = str(Path(log_file).resolve())
        already = any(
            isinstance(h, logging.FileHandler) and h.baseFilename == target
            for h in logger.handlers
        )
        if not already:
            _add_file_handler(logger, log_file)

    return logger
