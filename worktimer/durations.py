"""
Duration arithmetic for work sessions. Pure functions, no database access.
All instants are normalized to aware UTC datetimes before subtracting.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional, Union

Timestamp = Union[datetime, str]

_MINUTE = timedelta(minutes=1)
_MILLISECOND = timedelta(milliseconds=1)


def to_utc(value: Timestamp) -> datetime:
    """Parse/normalize a timestamp to aware UTC. Naive values are taken as UTC.

    Raises ValueError for anything that isn't a datetime or an ISO-8601 string.
    """
    if isinstance(value, str):
        text = value.strip()
        # fromisoformat only accepts a trailing "Z" from 3.11 on
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            value = datetime.fromisoformat(text)
        except ValueError:
            raise ValueError(f"Malformed timestamp: {value!r}") from None
    if not isinstance(value, datetime):
        raise ValueError(f"Expected a datetime or ISO-8601 string, got {type(value).__name__}")
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def elapsed_ms(start: Timestamp, now: Timestamp) -> int:
    return (to_utc(now) - to_utc(start)) // _MILLISECOND


def session_minutes(start: Timestamp, end: Timestamp) -> int:
    """Whole minutes between start and end, floored."""
    return (to_utc(end) - to_utc(start)) // _MINUTE


def total_minutes(pairs: Iterable[tuple[Optional[Timestamp], Optional[Timestamp]]]) -> int:
    """Sum of session_minutes over the pairs that have an end.

    A pair with an end but no start is malformed and raises ValueError.
    """
    total = 0
    for start, end in pairs:
        if end is None:
            continue
        if start is None:
            raise ValueError("Closed session has no start time")
        total += session_minutes(start, end)
    return total


def session_duration_ms(start: Timestamp, end: Optional[Timestamp]) -> int:
    if end is None:
        return 0
    return elapsed_ms(start, end)


def format_elapsed(milliseconds: int) -> str:
    """HH:MM:SS when at least an hour has passed, else MM:SS."""
    total_seconds = max(0, int(milliseconds) // 1000)
    hours, rest = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rest, 60)
    if hours > 0:
        return f"{hours:02d}:{minutes:02d}:{seconds:02d}"
    return f"{minutes:02d}:{seconds:02d}"
