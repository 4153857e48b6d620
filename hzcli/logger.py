"""Logging configuration for the hzcli flashcard manager."""

import logging
import sys
from pathlib import Path

import config


def setup_logger(
    name: str = "hzcli",
    log_file: str | None = config.LOG_FILE,
    level: int = logging.INFO,
    logs_dir: Path = config.LOGS_DIR,
) -> logging.Logger:
    """
    Set up and return a configured logger.

    Args:
        name: Logger name
        log_file: Log file name inside logs_dir. If None, only logs to the console.
        level: Logging level
        logs_dir: Directory holding the log file

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Clear existing handlers to avoid duplicates
    logger.handlers.clear()

    if log_file is not None:
        logs_dir.mkdir(parents=True, exist_ok=True)

        # File handler - captures everything, including debug I/O traces
        file_handler = logging.FileHandler(logs_dir / log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logger.addHandler(file_handler)
        logger.setLevel(min(level, logging.DEBUG))

    # Console handler - for user-facing output
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(console_handler)

    return logger


def get_logger(name: str = "hzcli") -> logging.Logger:
    """
    Get an existing logger by name.

    Args:
        name: Logger name

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
