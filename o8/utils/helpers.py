"""
O8 Helper Functions

Utility functions for timestamps and human-readable formatting.
"""

from datetime import datetime, timezone
import re
from typing import Optional


def format_timestamp(dt: Optional[datetime] = None) -> str:
    """
    Format a datetime as ISO 8601 in UTC with millisecond precision.

    The ``+00:00`` offset is rendered as ``Z`` so timestamps match the
    declaration wire format.

    Args:
        dt: Datetime to format. If None, uses current UTC time.

    Returns:
        str: e.g. ``2025-01-31T12:00:00.000Z``
    """
    if dt is None:
        dt = datetime.now(timezone.utc)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(timestamp: str) -> datetime:
    """
    Parse an ISO 8601 timestamp string.

    Args:
        timestamp: ISO 8601 formatted timestamp

    Returns:
        datetime: Parsed datetime object with timezone
    """
    # Handle 'Z' suffix
    if timestamp.endswith('Z'):
        timestamp = timestamp[:-1] + '+00:00'
    # fromisoformat before 3.11 only takes 3 or 6 fractional digits
    timestamp = re.sub(r"\.(\d{1,6})(?!\d)", lambda m: "." + m.group(1).ljust(6, "0"), timestamp, count=1)
    parsed = datetime.fromisoformat(timestamp)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_duration(ms: int) -> str:
    """
    Format a duration in milliseconds as ``m:ss`` or ``h:mm:ss``.

    Args:
        ms: Duration in milliseconds

    Returns:
        str: Human-readable duration
    """
    seconds = int(ms) // 1000
    minutes = seconds // 60
    hours = minutes // 60

    if hours > 0:
        return f"{hours}:{minutes % 60:02d}:{seconds % 60:02d}"
    return f"{minutes}:{seconds % 60:02d}"


def format_file_size(size: float) -> str:
    """
    Convert bytes to human-readable format.

    Args:
        size: Size in bytes

    Returns:
        str: Human-readable size string
    """
    for unit in ['B', 'KB', 'MB']:
        if size < 1024:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GB"
