# backend/slotengine/services/slots/types.py
"""
Domain types for availability rules and slots.

Times are kept as minutes since midnight; "HH:MM" strings only
appear at the storage and API boundaries.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from .config import minutes_to_time_str


SLOT_AVAILABLE = "available"
SLOT_BOOKED = "booked"
SLOT_CANCELLED = "cancelled"

LEAVE_FULL = "full"
LEAVE_BREAK = "break"
LEAVE_TYPES = (LEAVE_FULL, LEAVE_BREAK)


def weekday_index(dt: date) -> int:
    """Weekday with 0 = Sunday, 1 = Monday, ... 6 = Saturday."""
    return (dt.weekday() + 1) % 7


@dataclass(frozen=True, order=True)
class TimeWindow:
    """Half-open interval [start, end) in minutes since midnight."""
    start: int
    end: int

    def overlaps(self, other: "TimeWindow") -> bool:
        return self.start < other.end and other.start < self.end

    def contains(self, other: "TimeWindow") -> bool:
        return self.start <= other.start and other.end <= self.end

    @property
    def duration(self) -> int:
        return self.end - self.start

    def as_strings(self) -> tuple[str, str]:
        return minutes_to_time_str(self.start), minutes_to_time_str(self.end)


@dataclass(frozen=True)
class CustomDay:
    """Date-specific override of the recurring rule."""
    date: date
    leave_type: str
    breaks: tuple[TimeWindow, ...] = ()
    reason: Optional[str] = None


@dataclass(frozen=True)
class AvailabilityRule:
    """
    Recurring availability of one provider.

    Attributes:
        days_of_week: Weekday indices (0 = Sunday) accepting bookings
        working_hours: Daily working window
        slot_duration: Default slot length in minutes
        breaks: Recurring daily exclusion windows, sorted
        custom_days: Overrides keyed by date
        effective_from: First date the rule applies to (inclusive)
        effective_to: Last date the rule applies to (inclusive)
    """
    days_of_week: frozenset[int]
    working_hours: TimeWindow
    slot_duration: int
    breaks: tuple[TimeWindow, ...] = ()
    custom_days: dict[date, CustomDay] = field(default_factory=dict)
    effective_from: Optional[date] = None
    effective_to: Optional[date] = None

    def custom_day(self, dt: date) -> Optional[CustomDay]:
        return self.custom_days.get(dt)

    def is_effective(self, dt: date) -> bool:
        if self.effective_from is not None and dt < self.effective_from:
            return False
        if self.effective_to is not None and dt > self.effective_to:
            return False
        return True
