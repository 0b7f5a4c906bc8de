# backend/slotengine/services/slots/validation.py
"""
Availability rule parsing and validation.

build_rule() is the single entry point for turning raw values
(API payload or stored row) into an AvailabilityRule. It raises
ValidationError naming the first violated invariant.
"""

from datetime import date
from typing import Any, Iterable, Mapping

from .config import get_scheduling_config, time_str_to_minutes
from .errors import ValidationError
from .types import LEAVE_BREAK, LEAVE_TYPES, AvailabilityRule, CustomDay, TimeWindow


def parse_time(value: Any, field_name: str) -> int:
    """Parse "HH:MM" into minutes or raise ValidationError."""
    try:
        return time_str_to_minutes(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a time in HH:MM format, got {value!r}")


def parse_date(value: Any, field_name: str) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a date in YYYY-MM-DD format, got {value!r}")


def parse_window(raw: Mapping[str, Any], field_name: str) -> TimeWindow:
    """Parse {"start": "HH:MM", "end": "HH:MM"} into a non-empty TimeWindow."""
    if not isinstance(raw, Mapping):
        raise ValidationError(f"{field_name} must be an object with start and end")
    start = parse_time(raw.get("start"), f"{field_name}.start")
    end = parse_time(raw.get("end"), f"{field_name}.end")
    if start >= end:
        raise ValidationError(f"{field_name}: start must be before end")
    return TimeWindow(start, end)


def parse_windows(raw_windows: Iterable[Mapping[str, Any]] | None, field_name: str) -> tuple[TimeWindow, ...]:
    windows = [
        parse_window(raw, f"{field_name}[{i}]")
        for i, raw in enumerate(raw_windows or [])
    ]
    return tuple(sorted(windows))


def parse_custom_day(raw: Mapping[str, Any], field_name: str) -> CustomDay:
    if not isinstance(raw, Mapping):
        raise ValidationError(f"{field_name} must be an object")
    day = parse_date(raw.get("date"), f"{field_name}.date")
    leave_type = raw.get("leave_type")
    if leave_type not in LEAVE_TYPES:
        raise ValidationError(
            f"{field_name}.leaveType must be one of {', '.join(LEAVE_TYPES)}, got {leave_type!r}"
        )
    breaks = parse_windows(raw.get("breaks"), f"{field_name}.breaks")
    if leave_type == LEAVE_BREAK and not breaks:
        raise ValidationError(f"{field_name}: break leave needs at least one window")
    return CustomDay(date=day, leave_type=leave_type, breaks=breaks, reason=raw.get("reason"))


def build_rule(
    *,
    days_of_week: Iterable[Any],
    start_time: Any,
    end_time: Any,
    slot_duration: Any,
    breaks: Iterable[Mapping[str, Any]] | None = None,
    custom_days: Iterable[Mapping[str, Any]] | None = None,
    effective_from: Any = None,
    effective_to: Any = None,
) -> AvailabilityRule:
    """Parse raw values into an AvailabilityRule and validate it."""
    config = get_scheduling_config()

    if isinstance(slot_duration, bool) or not isinstance(slot_duration, int) or slot_duration <= 0:
        raise ValidationError("slotDuration must be a positive number of minutes")
    if slot_duration > config.max_slot_duration_minutes:
        raise ValidationError(
            f"slotDuration must not exceed {config.max_slot_duration_minutes} minutes"
        )

    days: set[int] = set()
    for day in days_of_week or []:
        if isinstance(day, bool) or not isinstance(day, int) or not 0 <= day <= 6:
            raise ValidationError(f"daysOfWeek entries must be weekday indices 0-6, got {day!r}")
        days.add(day)

    start = parse_time(start_time, "startTime")
    end = parse_time(end_time, "endTime")
    if start >= end:
        raise ValidationError("startTime must be before endTime")
    working_hours = TimeWindow(start, end)

    parsed_breaks = parse_windows(breaks, "breaks")
    for i, window in enumerate(parsed_breaks):
        if not working_hours.contains(window):
            raise ValidationError(f"breaks[{i}] must lie within startTime and endTime")
        if i and parsed_breaks[i - 1].overlaps(window):
            raise ValidationError(f"breaks[{i}] overlaps another break")

    overrides: dict[date, CustomDay] = {}
    for i, raw in enumerate(custom_days or []):
        custom = parse_custom_day(raw, f"customDays[{i}]")
        if custom.date in overrides:
            raise ValidationError(f"customDays has more than one entry for {custom.date.isoformat()}")
        overrides[custom.date] = custom

    eff_from = parse_date(effective_from, "effectiveFrom") if effective_from else None
    eff_to = parse_date(effective_to, "effectiveTo") if effective_to else None
    if eff_from and eff_to and eff_from > eff_to:
        raise ValidationError("effectiveFrom must not be after effectiveTo")

    return AvailabilityRule(
        days_of_week=frozenset(days),
        working_hours=working_hours,
        slot_duration=slot_duration,
        breaks=parsed_breaks,
        custom_days=overrides,
        effective_from=eff_from,
        effective_to=eff_to,
    )


def rule_to_dict(rule: AvailabilityRule) -> dict:
    """Inverse of build_rule(): plain values with "HH:MM" strings."""
    start, end = rule.working_hours.as_strings()
    return {
        "days_of_week": sorted(rule.days_of_week),
        "start_time": start,
        "end_time": end,
        "slot_duration": rule.slot_duration,
        "breaks": [window_to_dict(w) for w in rule.breaks],
        "custom_days": [
            custom_day_to_dict(rule.custom_days[d]) for d in sorted(rule.custom_days)
        ],
        "effective_from": rule.effective_from,
        "effective_to": rule.effective_to,
    }


def window_to_dict(window: TimeWindow) -> dict:
    start, end = window.as_strings()
    return {"start": start, "end": end}


def custom_day_to_dict(custom: CustomDay) -> dict:
    return {
        "date": custom.date,
        "leave_type": custom.leave_type,
        "breaks": [window_to_dict(w) for w in custom.breaks],
        "reason": custom.reason,
    }


def validate_rule(rule: AvailabilityRule) -> AvailabilityRule:
    """Re-check an already built rule (round-trips through build_rule)."""
    return build_rule(**rule_to_dict(rule))
