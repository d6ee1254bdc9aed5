"""Utility modules for specstorm."""

from .output import (
    NullSink,
    end_unit,
    flush_delimiter,
    print_status,
    write_stdout,
)

__all__ = [
    "NullSink",
    "end_unit",
    "flush_delimiter",
    "print_status",
    "write_stdout",
]
