"""Date/time parsing helpers and an injectable clock.

All pickup arithmetic uses naive local farmstand time.
"""

from datetime import date, datetime, time
from typing import Callable

Clock = Callable[[], datetime]

_TIME_FORMATS = ("%H:%M", "%H:%M:%S")


def system_clock() -> datetime:
    """Current local time, truncated to whole seconds."""
    return datetime.now().replace(microsecond=0)


def parse_date(value: str) -> date:
    """Parse a YYYY-MM-DD string; raises ValueError."""
    return datetime.strptime(value.strip(), "%Y-%m-%d").date()


def parse_time(value: str) -> time:
    """Parse HH:MM or HH:MM:SS; raises ValueError."""
    for fmt in _TIME_FORMATS:
        try:
            return datetime.strptime(value.strip(), fmt).time()
        except ValueError:
            continue
    raise ValueError(f"Invalid time format: {value!r}")


def format_slot(day: date | None, at: time | None) -> str:
    if day is None or at is None:
        return "unscheduled"
    return f"{day.isoformat()} {at.strftime('%H:%M')}"
