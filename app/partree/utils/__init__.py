"""Utility modules for partree.

This module exports commonly used utility functions.
"""

from partree.utils.formatting import (
    console,
    create_file_table,
    err_console,
    format_file_row,
    format_status,
    print_error,
    print_info,
    print_success,
    print_warning,
)
from partree.utils.shell import command_exists, stream_command

__all__ = [
    "command_exists",
    "console",
    "create_file_table",
    "err_console",
    "format_file_row",
    "format_status",
    "print_error",
    "print_info",
    "print_success",
    "print_warning",
    "stream_command",
]
