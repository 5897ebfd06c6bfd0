"""
Core utilities for dbchat.
"""
from .log_utils import (
    configure_log_dir,
    log_debug,
    log_error,
    log_info,
    log_success,
    log_warning,
    set_debug,
)

__all__ = [
    "configure_log_dir",
    "log_debug",
    "log_error",
    "log_info",
    "log_success",
    "log_warning",
    "set_debug",
]
