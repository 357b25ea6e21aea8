# Helpers - Utility Functions
# Small time and formatting helpers shared by the connection layer

"""
Helpers Module

Provides utility functions for:
- Wall-clock timestamps in milliseconds
- Timestamp formatting
- Duration formatting for log lines
"""

import time
from datetime import datetime, timezone


def now_ms() -> int:
    """Current wall-clock time as Unix milliseconds"""
    return int(time.time() * 1000)


def ms_to_seconds(value_ms: float) -> float:
    """Convert a millisecond interval to seconds for the event loop"""
    return max(value_ms, 0) / 1000.0


def format_timestamp(timestamp_ms: int) -> str:
    """
    Convert millisecond timestamp to readable string

    Args:
        timestamp_ms: Unix timestamp in milliseconds

    Returns:
        Formatted datetime string (YYYY-MM-DD HH:MM:SS UTC)
    """
    dt = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
    return dt.strftime('%Y-%m-%d %H:%M:%S UTC')


def format_duration(duration_ms: float) -> str:
    """
    Format a millisecond duration for humans

    Args:
        duration_ms: Duration in milliseconds

    Returns:
        "850ms", "2.25s" or "1m 30s"
    """
    if duration_ms < 1000:
        return f"{duration_ms:.0f}ms"
    seconds = duration_ms / 1000
    if seconds < 60:
        return f"{seconds:.2f}".rstrip('0').rstrip('.') + "s"
    minutes, rest = divmod(int(seconds), 60)
    return f"{minutes}m {rest}s"


def truncate(text, limit: int = 100) -> str:
    """Shorten a payload for log output"""
    text = text if isinstance(text, str) else repr(text)
    if len(text) <= limit:
        return text
    return text[:limit] + "..."
