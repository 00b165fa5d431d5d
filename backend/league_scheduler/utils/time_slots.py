"""
TimeSlot helpers.

A time slot is never stored. It is a start point on a given day, either on
the fixed manual grid (08:00 to 22:00 every 30 minutes by default) or on the
auto-scheduler's candidate list (window start in game-duration steps).
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterator, List

from league_scheduler.config import DEFAULT_DAY_END, DEFAULT_DAY_START, GRID_STEP_MINUTES


@dataclass(frozen=True)
class TimeSlot:
    day: date
    hour: int
    minute: int

    @property
    def starts_at(self) -> datetime:
        return datetime.combine(self.day, time(self.hour, self.minute))

    @property
    def label(self) -> str:
        return format_time_label(self.hour, self.minute)

    def to_dict(self) -> dict:
        return {
            "hour": self.hour,
            "minute": self.minute,
            "label": self.label,
            "starts_at": self.starts_at.isoformat(),
        }


def minutes_since_midnight(value: time) -> int:
    return value.hour * 60 + value.minute


def format_time_label(hour: int, minute: int) -> str:
    """12-hour display label, e.g. 8:00 AM, 12:30 PM."""
    period = "PM" if hour >= 12 else "AM"
    display_hour = hour - 12 if hour > 12 else (12 if hour == 0 else hour)
    return f"{display_hour}:{minute:02d} {period}"


def grid_time_slots(
    day: date,
    start: time = DEFAULT_DAY_START,
    end: time = DEFAULT_DAY_END,
    step_minutes: int = GRID_STEP_MINUTES,
) -> List[TimeSlot]:
    """
    Points of the manual scheduling grid, both ends included.

    With the defaults this is 8:00 AM … 10:00 PM, 29 points.
    """
    if step_minutes <= 0:
        raise ValueError("step_minutes must be positive")
    slots = []
    current = minutes_since_midnight(start)
    last = minutes_since_midnight(end)
    while current <= last:
        slots.append(TimeSlot(day=day, hour=current // 60, minute=current % 60))
        current += step_minutes
    return slots


def candidate_start_times(window_start: datetime, window_end: datetime, duration_minutes: int) -> Iterator[datetime]:
    """
    Start times the auto-scheduler tries, ascending.

    Steps are one game long; a start is offered only if the whole game fits,
    so a game ending exactly at window end is included.
    """
    if duration_minutes <= 0:
        return
    step = timedelta(minutes=duration_minutes)
    current = window_start
    while current + step <= window_end:
        yield current
        current += step
