"""
Shared test helpers.
"""

from datetime import date

from slotengine.services.slots import build_rule


# Fixed future dates (2030-01-01 is a Tuesday)
SATURDAY = date(2030, 1, 5)
MONDAY = date(2030, 1, 7)
TUESDAY = date(2030, 1, 8)
WEDNESDAY = date(2030, 1, 9)
RULE_SAVED_ON = date(2030, 1, 1)

WEEKDAYS = [1, 2, 3, 4, 5]  # Mon-Fri, 0 = Sunday

PROVIDER_ID = 1


def make_rule(**overrides):
    """Mon-Fri 09:00-12:00, 30 min slots, break 10:00-10:30."""
    params = {
        "days_of_week": WEEKDAYS,
        "start_time": "09:00",
        "end_time": "12:00",
        "slot_duration": 30,
        "breaks": [{"start": "10:00", "end": "10:30"}],
        "custom_days": [],
    }
    params.update(overrides)
    return build_rule(**params)


def starts(slots):
    """Start times of slot rows or slot dicts."""
    return [s["start"] if isinstance(s, dict) else s.start for s in slots]


def statuses(slots):
    return {
        (s["start"] if isinstance(s, dict) else s.start): (s["status"] if isinstance(s, dict) else s.status)
        for s in slots
    }
