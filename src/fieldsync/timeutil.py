"""Local-time helpers.

Task dates, shift windows and event timestamps are stored as naive
datetimes in the configured local timezone, so a worker's 07:00-15:00
shift compares directly against stored timestamps.
"""

from datetime import date, datetime, time, timedelta
from typing import Optional
from zoneinfo import ZoneInfo


def local_now(timezone: str) -> datetime:
    """Return the current wall-clock time in ``timezone`` as a naive datetime."""
    return datetime.now(ZoneInfo(timezone)).replace(tzinfo=None, microsecond=0)


def parse_hhmm(value: str) -> time:
    """Parse ``HH:MM`` into a time."""
    hours, minutes = value.split(":")[:2]
    return time(int(hours), int(minutes))


def shift_window(day: date, start: time, end: time) -> tuple[datetime, datetime]:
    """Return the shift window for ``day`` as a pair of datetimes."""
    return datetime.combine(day, start), datetime.combine(day, end)


def shift_length_minutes(start: time, end: time) -> int:
    return (end.hour * 60 + end.minute) - (start.hour * 60 + start.minute)


def minutes(delta: timedelta) -> float:
    return delta.total_seconds() / 60


def clip(start: datetime, end: datetime, lower: datetime, upper: datetime) -> Optional[tuple[datetime, datetime]]:
    """Clip ``[start, end]`` to ``[lower, upper]``; None if nothing remains."""
    clipped_start = max(start, lower)
    clipped_end = min(end, upper)
    if clipped_start >= clipped_end:
        return None
    return clipped_start, clipped_end
