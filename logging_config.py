"""
Structured logging configuration for the comp-grading project.

This module provides a centralized way to configure logging across the application
with different log levels and output files for different concerns.
"""

import logging
import logging.handlers
from pathlib import Path
from typing import List, Optional, Set

# Define logger names for different concerns
GRADING_LOGGER = "comp_grading.grading"
LIFECYCLE_LOGGER = "comp_grading.lifecycle"
ERROR_LOGGER = "comp_grading.errors"
DEBUG_LOGGER = "comp_grading.debug"

DEFAULT_LOG_DIR = Path("output_dev/grading_logs")

LOG_FILES: List[str] = [
    "grading_events.log",
    "lifecycle_events.log",
    "warnings_errors.log",
    "debug_detail.log",
    "combined.log",
]

# Standard log format with module name and line number
LOG_FORMAT = "%(asctime)s - %(name)s:%(lineno)d - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

MAX_BYTES = 10 * 1024 * 1024
BACKUP_COUNT = 5

# Track if logging is already configured and log files
_LOGGING_CONFIGURED = False
_log_files_created: Set[Path] = set()
_handlers: List[logging.Handler] = []


def clear_logs(log_dir: Path) -> None:
    """
    Clear all log files in the specified directory.

    Args:
        log_dir: Directory containing log files to clear
    """
    for name in LOG_FILES:
        log_file = log_dir / name
        if log_file.exists():
            try:
                log_file.unlink()
            except OSError as e:
                print(f"Warning: Could not delete {log_file}: {e}")


def _file_handler(path: Path, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        filename=path,
        maxBytes=MAX_BYTES,
        backupCount=BACKUP_COUNT,
        encoding='utf-8',
        mode='a'
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    _log_files_created.add(path)
    _handlers.append(handler)
    return handler


def _attach(logger_name: str, handler: logging.Handler, level: int) -> None:
    named_logger = logging.getLogger(logger_name)
    for h in named_logger.handlers[:]:
        named_logger.removeHandler(h)
    named_logger.setLevel(level)
    named_logger.addHandler(handler)
    named_logger.propagate = True  # Allow to bubble up to root


def setup_logging(log_dir: Path, debug: bool = False, clear_existing: bool = True) -> None:
    """
    Configure structured logging for the application.

    Creates separate log files for different concerns:
    - grading_events.log: Structure loads and recalculations (INFO+)
    - lifecycle_events.log: Draft, promote, archive, duplicate and delete events (INFO+)
    - warnings_errors.log: Warnings and errors (WARNING+)
    - debug_detail.log: Detailed debug information (DEBUG, only if debug=True)
    - combined.log: Combined log of all messages (INFO+)

    Args:
        log_dir: Directory where log files will be stored
        debug: If True, enables debug logging and creates debug_detail.log
        clear_existing: If True, clears existing log files before starting
    """
    global _LOGGING_CONFIGURED

    if _LOGGING_CONFIGURED:
        return

    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    if clear_existing:
        clear_logs(log_dir)

    # Remove all handlers from the root logger before setup
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    root_logger.setLevel(logging.DEBUG if debug else logging.INFO)

    # Formatters
    file_formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)
    console_formatter = logging.Formatter("%(levelname)-8s %(message)s")

    # Console handler (for warnings and above)
    console = logging.StreamHandler()
    console.setLevel(logging.WARNING)
    console.setFormatter(console_formatter)
    root_logger.addHandler(console)
    _handlers.append(console)

    root_logger.addHandler(_file_handler(log_dir / "combined.log", logging.INFO, file_formatter))
    root_logger.addHandler(_file_handler(log_dir / "warnings_errors.log", logging.WARNING, file_formatter))

    _attach(
        GRADING_LOGGER,
        _file_handler(log_dir / "grading_events.log", logging.INFO, file_formatter),
        logging.DEBUG if debug else logging.INFO,
    )
    _attach(
        LIFECYCLE_LOGGER,
        _file_handler(log_dir / "lifecycle_events.log", logging.INFO, file_formatter),
        logging.INFO,
    )

    if debug:
        debug_handler = _file_handler(log_dir / "debug_detail.log", logging.DEBUG, file_formatter)
        # Every package module logs below comp_grading, so the whole package feeds this file
        _attach("comp_grading", debug_handler, logging.DEBUG)
        logging.getLogger(DEBUG_LOGGER).setLevel(logging.DEBUG)

    _LOGGING_CONFIGURED = True


def reset_logging() -> None:
    """Close and detach every handler installed by ``setup_logging``."""
    global _LOGGING_CONFIGURED

    for handler in _handlers:
        for name in (None, "comp_grading", GRADING_LOGGER, LIFECYCLE_LOGGER):
            logging.getLogger(name).removeHandler(handler)
        handler.close()
    _handlers.clear()
    _log_files_created.clear()
    _LOGGING_CONFIGURED = False


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a properly configured logger instance.

    Args:
        name: Logger name (e.g., __name__). If None, returns root logger.

    Returns:
        Configured logger instance
    """
    if not _LOGGING_CONFIGURED:
        setup_logging(DEFAULT_LOG_DIR, debug=False)
    return logging.getLogger(name)
