# backend/slotengine/services/slots/config.py
"""
Scheduling configuration and time helpers.
"""

import re
from dataclasses import dataclass
from functools import lru_cache


MINUTES_PER_DAY = 24 * 60

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})$")


@dataclass(frozen=True)
class SchedulingConfig:
    """
    Configuration for the slot engine.

    Attributes:
        past_buffer_minutes: Slots starting before now + buffer are flagged is_past
        preview_cache_ttl_seconds: Redis TTL for cached month previews
        max_slot_duration_minutes: Upper bound for rule and custom slot durations
        event_queue: Redis list that receives slot events
    """
    past_buffer_minutes: int = 5
    preview_cache_ttl_seconds: int = 300
    max_slot_duration_minutes: int = MINUTES_PER_DAY
    event_queue: str = "events:p2p"

    def __post_init__(self):
        """Validate configuration."""
        if self.past_buffer_minutes < 0:
            raise ValueError(f"past_buffer_minutes must be >= 0, got {self.past_buffer_minutes}")
        if not 0 < self.max_slot_duration_minutes <= MINUTES_PER_DAY:
            raise ValueError(
                f"max_slot_duration_minutes must be in 1..{MINUTES_PER_DAY}, "
                f"got {self.max_slot_duration_minutes}"
            )


def time_str_to_minutes(value: str) -> int:
    """
    Convert "HH:MM" to minutes since midnight.

    "24:00" is accepted as the end of the day.
    Raises ValueError on anything else.
    """
    match = _TIME_RE.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise ValueError(f"invalid time {value!r}, expected HH:MM")
    hour, minute = int(match.group(1)), int(match.group(2))
    if minute > 59 or hour > 24 or (hour == 24 and minute != 0):
        raise ValueError(f"invalid time {value!r}, expected HH:MM")
    return hour * 60 + minute


def minutes_to_time_str(minutes: int) -> str:
    """Convert minutes since midnight to "HH:MM"."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def normalize_time_str(value: str) -> str:
    """Normalize "9:00" → "09:00"."""
    return minutes_to_time_str(time_str_to_minutes(value))


@lru_cache
def get_scheduling_config() -> SchedulingConfig:
    """
    Get scheduling configuration (singleton).
    """
    return SchedulingConfig()
