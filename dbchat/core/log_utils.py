"""
Logging Utilities

Provides consistent formatted console logging with colored tags and timestamps.
When a log directory is configured, every line is mirrored to ``pipeline.log``
so training and query runs can be reviewed after the fact.

Format: HH:MM:SS AM/PM | Tag Name          |  Message

Thread-safe: Uses a lock to prevent concurrent stdout writes.
"""

import os
import threading
from datetime import datetime
from typing import Optional

# ANSI color codes
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
CYAN = "\033[96m"
RESET = "\033[0m"

# Tag column width for alignment (longest tag "Schema Extractor" = 16, +2)
TAG_WIDTH = 18

_log_lock = threading.Lock()

_LOG_PIPELINE_FILE = "pipeline.log"
_log_dir: Optional[str] = os.getenv("DBCHAT_LOG_DIR") or None
_debug_enabled = os.getenv("DBCHAT_DEBUG", "").lower() in ("1", "true", "yes")

# Last date written, for daily rotation
_last_write_date = None


def configure_log_dir(log_dir: Optional[str]) -> None:
    """Set (or clear) the directory that receives pipeline.log."""
    global _log_dir, _last_write_date
    _log_dir = log_dir or None
    _last_write_date = None


def set_debug(enabled: bool) -> None:
    """Toggle output of log_debug() lines."""
    global _debug_enabled
    _debug_enabled = enabled


def _rotate_if_stale(filepath: str) -> None:
    """Truncate the log file if it was last written on a previous day."""
    if os.path.exists(filepath):
        file_mtime = datetime.fromtimestamp(os.path.getmtime(filepath))
        if file_mtime.date() < datetime.now().date():
            with open(filepath, 'w', encoding='utf-8') as f:
                f.write("")


def _write_to_file(message: str) -> None:
    global _last_write_date
    if not _log_dir:
        return
    try:
        os.makedirs(_log_dir, exist_ok=True)
        filepath = os.path.join(_log_dir, _LOG_PIPELINE_FILE)

        today = datetime.now().date()
        if _last_write_date != today:
            _rotate_if_stale(filepath)
            _last_write_date = today

        with open(filepath, 'a', encoding='utf-8') as f:
            f.write(message + "\n")
    except OSError:
        pass  # A broken log file must never fail a query


def log_message(tag: str, message: str, color: str = GREEN, level: str = "INFO") -> None:
    """
    Print a formatted log message and mirror it to the pipeline log.

    Args:
        tag: The tag to display (e.g., "Embedding Store")
        message: The log message
        color: ANSI color code for the tag (default: GREEN)
        level: Log level for file output (INFO, WARNING, ERROR, DEBUG)
    """
    timestamp = datetime.now().strftime("%I:%M:%S %p")
    padded_tag = tag[:TAG_WIDTH].ljust(TAG_WIDTH)

    console_msg = f"{timestamp} {color}| {padded_tag}|{RESET}  {message}"
    file_msg = f"{timestamp} | {padded_tag}|  {level}: {message}"

    with _log_lock:
        print(console_msg)
        _write_to_file(file_msg)


def log_info(tag: str, message: str) -> None:
    """Log an info message in cyan."""
    log_message(tag, message, CYAN, "INFO")


def log_success(tag: str, message: str) -> None:
    """Log a completed step in green."""
    log_message(tag, message, GREEN, "INFO")


def log_warning(tag: str, message: str) -> None:
    """Log a warning message in yellow."""
    log_message(tag, message, YELLOW, "WARNING")


def log_error(tag: str, message: str) -> None:
    """Log an error message in red."""
    log_message(tag, message, RED, "ERROR")


def log_debug(tag: str, message: str) -> None:
    """Log a debug message (no color), only when debug output is enabled."""
    if _debug_enabled:
        log_message(tag, message, RESET, "DEBUG")
