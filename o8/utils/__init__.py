"""
O8 Utilities Module

Helper functions for timestamps and display formatting.
"""

from o8.utils.helpers import (
    format_timestamp,
    parse_timestamp,
    format_duration,
    format_file_size,
)

__all__ = [
    "format_timestamp",
    "parse_timestamp",
    "format_duration",
    "format_file_size",
]
