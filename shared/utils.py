"""
Shared utility functions for tablebridge.
"""
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Dict, List
from urllib.parse import urlsplit, urlunsplit
from uuid import UUID


def calculate_progress_percentage(completed: int, total: int) -> int:
    """
    Calculate an integer progress percentage, rounding halves up.

    Args:
        completed: Number of completed items
        total: Total number of items

    Returns:
        Progress percentage clamped to 0-100; 0 when total is 0
    """
    if total <= 0 or completed <= 0:
        return 0
    # Integer form of floor(completed / total * 100 + 0.5)
    percentage = (200 * completed + total) // (2 * total)
    return min(percentage, 100)


def calculate_throughput(rows_processed: int, duration_seconds: float) -> float:
    """
    Calculate throughput in rows per second.

    Args:
        rows_processed: Number of rows processed
        duration_seconds: Duration in seconds

    Returns:
        Rows per second
    """
    if duration_seconds <= 0:
        return 0.0
    return round(rows_processed / duration_seconds, 2)


def format_duration(seconds: float) -> str:
    """
    Format duration in human-readable format.

    Args:
        seconds: Duration in seconds

    Returns:
        Formatted string (e.g., "2h 30m 15s")
    """
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = int(seconds % 60)

    parts = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    if secs > 0 or not parts:
        parts.append(f"{secs}s")

    return " ".join(parts)


def redact_dsn(connection_string: str) -> str:
    """
    Mask the password in a database URI for logging.

    Example: ``postgres://app:secret@db:5432/x`` → ``postgres://app:***@db:5432/x``
    """
    try:
        parts = urlsplit(connection_string.strip())
    except ValueError:
        return "<unparseable connection string>"
    if not parts.password:
        return urlunsplit(parts)
    netloc = parts.netloc.rsplit("@", 1)[1]
    user = parts.username or ""
    return urlunsplit(parts._replace(netloc=f"{user}:***@{netloc}"))


def to_json_value(value: Any) -> Any:
    """
    Convert one driver-native value into something JSON can carry.

    Decimals become strings so no precision is lost, binary values become
    hex, temporal values become ISO-8601.
    """
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, timedelta):
        return value.total_seconds()
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, set):
        return sorted(to_json_value(v) for v in value)
    if isinstance(value, (list, tuple)):
        return [to_json_value(v) for v in value]
    if isinstance(value, dict):
        return {str(k): to_json_value(v) for k, v in value.items()}
    return str(value)


def jsonable_rows(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Shape fetched rows for a JSON response, keeping column order."""
    return [{column: to_json_value(value) for column, value in row.items()} for row in rows]
