"""
Logging Utilities

This module sets up logging for the project. Every module obtains its logger
through setup_logger(__name__) so that console formatting is consistent and
the CLI can adjust verbosity for the whole package in one call.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Union

PACKAGE_LOGGER_PREFIX = "scan_registration"

_CONSOLE_FORMAT = '%(asctime)s | %(levelname)s | %(name)s | %(message)s'
_FILE_FORMAT = '%(asctime)s | %(levelname)s | %(processName)s[%(process)d] | %(name)s | %(message)s'
_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def _coerce_level(level: Union[int, str]) -> int:
    if isinstance(level, str):
        return getattr(logging, level.upper(), logging.INFO)
    return int(level)


def setup_logger(name: str,
                 level: Union[int, str] = logging.INFO,
                 log_file: Optional[str] = None) -> logging.Logger:
    """
    Set up a logger with consistent formatting.

    Args:
        name: Logger name (usually __name__)
        level: Logging level, as an int or a name such as "DEBUG" (default: INFO)
        log_file: Optional log file path. If provided, logs will be written to this file

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Avoid adding multiple handlers
    if logger.handlers:
        return logger

    level = _coerce_level(level)
    logger.setLevel(level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(_CONSOLE_FORMAT, datefmt=_DATE_FORMAT))
    logger.addHandler(console_handler)

    if log_file:
        add_file_handler(logger, log_file, level)

    return logger


def add_file_handler(logger: logging.Logger, log_file: str, level: Union[int, str] = logging.INFO) -> None:
    """Attach a detailed file handler to an existing logger."""
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    file_handler = logging.FileHandler(log_path)
    file_handler.setLevel(_coerce_level(level))
    file_handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_DATE_FORMAT))
    logger.addHandler(file_handler)


def set_log_level(level: Union[int, str], log_file: Optional[str] = None) -> None:
    """
    Apply a level (and optionally a shared log file) to every package logger.

    Module loggers are created at import time with the default level, so the
    CLI calls this once the configuration is known.
    """
    level = _coerce_level(level)
    manager = logging.Logger.manager
    for name, logger in list(manager.loggerDict.items()):
        if not isinstance(logger, logging.Logger):
            continue
        if not name.startswith(PACKAGE_LOGGER_PREFIX) and name != "__main__":
            continue
        logger.setLevel(level)
        for handler in logger.handlers:
            handler.setLevel(level)
        if log_file and not any(isinstance(h, logging.FileHandler) for h in logger.handlers):
            add_file_handler(logger, log_file, level)
