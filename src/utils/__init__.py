"""
Utility functions for the cfg.bin Text Editor.
"""

from .logging import (
    log_error,
    log_warning,
    update_log_file_path,
    get_log_file,
    init_log_file,
)
from .formatting import format_size, format_address, parse_address

__all__ = [
    "log_error",
    "log_warning",
    "update_log_file_path",
    "get_log_file",
    "init_log_file",
    "format_size",
    "format_address",
    "parse_address",
]
