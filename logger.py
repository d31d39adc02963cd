"""Logging configuration for the OpenRouter credit monitor."""

import logging
import sys
from datetime import datetime
from pathlib import Path

from config import LOG_DIR

LOGGER_NAME = "credit_monitor"


def setup_logging() -> logging.Logger:
    """Set up logging to both file and console."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.INFO)

    # Clear any existing handlers
    logger.handlers.clear()

    # File handler - dated log file
    log_file = LOG_DIR / f"{datetime.now().strftime('%Y-%m-%d')}.log"
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.INFO)
    file_formatter = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    file_handler.setFormatter(file_formatter)
    logger.addHandler(file_handler)

    # Console handler (only if not running as background)
    if sys.stdout is not None and sys.stdout.isatty():
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.INFO)
        console_formatter = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(message)s",
            datefmt="%H:%M:%S"
        )
        console_handler.setFormatter(console_formatter)
        logger.addHandler(console_handler)

    return logger


def log_event(event: str, level: int = logging.INFO, **details) -> None:
    """Write a structured diagnostic event.

    The record carries ``event_name`` and ``event_details`` attributes so
    handlers and tests can match on the event rather than the text.

    Args:
        event: Event name, e.g. "api_call_start"
        level: Logging level for the record
        **details: Key/value details rendered as "k=v, k=v"
    """
    rendered = ", ".join(f"{key}={value}" for key, value in details.items())
    message = f"{event} | {rendered}" if rendered else event
    logger.log(
        level,
        message,
        extra={"event_name": event, "event_details": dict(details)}
    )


def delete_log_files(log_dir: Path = LOG_DIR) -> int:
    """Delete the monitor's dated log files.

    Returns:
        Number of files removed
    """
    removed = 0
    for log_file in sorted(log_dir.glob("*.log")):
        try:
            log_file.unlink()
            removed += 1
        except OSError as e:
            logger.warning(f"Failed to delete log file {log_file}: {e}")
    return removed


# Global logger instance
logger = setup_logging()
