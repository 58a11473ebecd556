"""
Window arithmetic on UTC wall-clock time.

Window identifiers are derived from the clock rather than read from the
market-data source, so discovery and voting assume the source uses the same
fixed, epoch-aligned boundaries.
"""

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """Current wall-clock time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_epoch_seconds(ts: datetime) -> int:
    """Convert a datetime to whole epoch seconds, treating naive values as UTC."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return int(ts.timestamp())


def window_start(now: datetime, window_seconds: int) -> datetime:
    """
    Start of the fixed window containing ``now``.

    Args:
        now: Reference time
        window_seconds: Window length

    Returns:
        UTC datetime aligned to a multiple of the window length
    """
    epoch = to_epoch_seconds(now)
    start = epoch - (epoch % window_seconds)
    return datetime.fromtimestamp(start, tz=timezone.utc)


def window_id(start: datetime, prefix: str) -> str:
    """Identifier for the window starting at ``start``."""
    return f"{prefix}-{to_epoch_seconds(start)}"


def window_epoch(target_window_id: str, prefix: str) -> Optional[int]:
    """Start epoch encoded in a window id, None if the id is not of ``prefix``."""
    head, sep, tail = target_window_id.rpartition("-")
    if not sep or head != prefix or not tail.isdigit():
        return None
    return int(tail)


def elapsed_in_window(now: datetime, window_seconds: int) -> float:
    """Seconds elapsed since the start of the window containing ``now``."""
    return time_elapsed_seconds(window_start(now, window_seconds), now)


def previous_window_starts(now: datetime, window_seconds: int, count: int) -> list[datetime]:
    """
    Starts of the ``count`` windows preceding the current one, newest first.

    The current window itself is excluded because it cannot have resolved.
    """
    current = to_epoch_seconds(window_start(now, window_seconds))
    return [
        datetime.fromtimestamp(current - i * window_seconds, tz=timezone.utc)
        for i in range(1, count + 1)
    ]


def format_market_time(ts: datetime) -> str:
    """ISO8601 representation used in snapshots and logs."""
    return ts.isoformat()


def time_elapsed_seconds(start_time: datetime, end_time: Optional[datetime] = None) -> float:
    """
    Calculate elapsed time in seconds between two timestamps.

    Args:
        start_time: Start timestamp
        end_time: End timestamp, defaults to current wall-clock time

    Returns:
        Elapsed time in seconds
    """
    if end_time is None:
        end_time = utc_now()
    if end_time.tzinfo is None:
        end_time = end_time.replace(tzinfo=timezone.utc)
    if start_time.tzinfo is None:
        start_time = start_time.replace(tzinfo=timezone.utc)

    return (end_time - start_time).total_seconds()
