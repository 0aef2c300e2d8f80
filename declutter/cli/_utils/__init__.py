"""CLI utilities for formatting."""

from .formatting import (
    console,
    err_console,
    print_error,
    print_stats,
    print_success,
    print_table,
    print_warning,
    truncate,
)

__all__ = [
    "console",
    "err_console",
    "print_table",
    "print_stats",
    "print_error",
    "print_success",
    "print_warning",
    "truncate",
]
