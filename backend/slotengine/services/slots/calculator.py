# backend/slotengine/services/slots/calculator.py
"""
Slot materialization: (rule, month) → candidate slots per date.

Pure and deterministic. The rule is applied as an ordered pipeline,
each stage a transform over the previous stage's candidates:

  1. effective window     (date outside rule validity → nothing)
  2. full-day leave       (custom day with leaveType=full → nothing)
  3. working day          (weekday not in daysOfWeek → nothing)
  4. recurring breaks     (drop candidates overlapping a break)
  5. custom-day breaks    (drop candidates overlapping extra windows)

Every surviving candidate is an available slot.

Does NOT contain:
✗ Bookings (live state is in the ledger)
✗ Custom-duration slots (created by ad-hoc edits, stored in the ledger)
"""

import calendar
from datetime import date
from typing import Callable

from .types import LEAVE_BREAK, LEAVE_FULL, AvailabilityRule, TimeWindow, weekday_index


Stage = Callable[[AvailabilityRule, date, list[TimeWindow]], list[TimeWindow]]


def materialize(
    rule: AvailabilityRule,
    year: int,
    month: int,
) -> list[tuple[date, list[TimeWindow]]]:
    """
    Materialize every calendar date of a month.

    Returns:
        List of (date, ordered slot windows), one entry per day of the month.
    """
    days_in_month = calendar.monthrange(year, month)[1]
    return [
        (day, materialize_date(rule, day))
        for day in (date(year, month, d) for d in range(1, days_in_month + 1))
    ]


def materialize_date(rule: AvailabilityRule, target_date: date) -> list[TimeWindow]:
    """Run the pipeline for one date. Empty list = no slots."""
    candidates = _candidate_grid(rule)
    for stage in PIPELINE:
        if not candidates:
            break
        candidates = stage(rule, target_date, candidates)
    return candidates


# ── Candidate grid ───────────────────────────────────────────────────────


def _candidate_grid(rule: AvailabilityRule) -> list[TimeWindow]:
    """
    Fixed-size slots from startTime while start + slotDuration <= endTime.

    A trailing remainder shorter than slotDuration is dropped.
    """
    step = rule.slot_duration
    end = rule.working_hours.end
    return [
        TimeWindow(t, t + step)
        for t in range(rule.working_hours.start, end - step + 1, step)
    ]


# ── Pipeline stages ──────────────────────────────────────────────────────


def _effective_window(rule: AvailabilityRule, target_date: date, candidates: list[TimeWindow]) -> list[TimeWindow]:
    return candidates if rule.is_effective(target_date) else []


def _full_day_leave(rule: AvailabilityRule, target_date: date, candidates: list[TimeWindow]) -> list[TimeWindow]:
    custom = rule.custom_day(target_date)
    if custom is not None and custom.leave_type == LEAVE_FULL:
        return []
    return candidates


def _working_day(rule: AvailabilityRule, target_date: date, candidates: list[TimeWindow]) -> list[TimeWindow]:
    return candidates if weekday_index(target_date) in rule.days_of_week else []


def _recurring_breaks(rule: AvailabilityRule, target_date: date, candidates: list[TimeWindow]) -> list[TimeWindow]:
    return exclude_windows(candidates, rule.breaks)


def _custom_day_breaks(rule: AvailabilityRule, target_date: date, candidates: list[TimeWindow]) -> list[TimeWindow]:
    custom = rule.custom_day(target_date)
    if custom is None or custom.leave_type != LEAVE_BREAK:
        return candidates
    return exclude_windows(candidates, custom.breaks)


PIPELINE: tuple[Stage, ...] = (
    _effective_window,
    _full_day_leave,
    _working_day,
    _recurring_breaks,
    _custom_day_breaks,
)


# ── Helpers ──────────────────────────────────────────────────────────────


def exclude_windows(
    candidates: list[TimeWindow],
    exclusions: tuple[TimeWindow, ...] | list[TimeWindow],
) -> list[TimeWindow]:
    """Drop candidates intersecting any exclusion (half-open semantics)."""
    if not exclusions:
        return candidates
    return [
        cand for cand in candidates
        if not any(cand.overlaps(ex) for ex in exclusions)
    ]
