"""Centralized logging configuration for the markov_wfc package.

Usage:
    from markov_wfc.logging_config import setup_logging
    setup_logging(logging.INFO)  # Call once at startup

All markov_wfc.* loggers write to the console; a rotating log file can be added.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
import sys

from markov_wfc import constants

ROOT_LOGGER_NAME = "markov_wfc"


def setup_logging(level: int = logging.INFO, log_file: Path | str | None = None) -> logging.Logger:
    """Configures the package logger.

    Calling this again replaces the previously installed handlers.

    Args:
        level: Level for console and file output. Defaults to logging.INFO.
        log_file: Optional path of a rotating log file. Defaults to None (console only).

    Returns:
        The configured package logger.
    """
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(level)

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(fmt=constants.LOG_FORMAT, datefmt=constants.LOG_DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file is not None:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=constants.LOG_FILE_MAX_BYTES,
            backupCount=constants.LOG_FILE_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # Don't propagate to the root logger to avoid duplicate output.
    root_logger.propagate = False

    return root_logger
