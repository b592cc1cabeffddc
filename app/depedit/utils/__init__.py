"""Utility modules for depedit.

This module exports commonly used utility functions.
"""

from depedit.utils.formatting import (
    console,
    create_settings_table,
    err_console,
    print_error,
    print_info,
    print_success,
    print_warning,
)

__all__ = [
    "console",
    "create_settings_table",
    "err_console",
    "print_error",
    "print_info",
    "print_success",
    "print_warning",
]
