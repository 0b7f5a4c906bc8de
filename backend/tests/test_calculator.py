"""
Unit tests for slot materialization.
"""

from datetime import date

from slotengine.services.slots import materialize, materialize_date
from slotengine.services.slots.calculator import exclude_windows
from slotengine.services.slots.config import time_str_to_minutes
from slotengine.services.slots.types import TimeWindow, weekday_index

from tests.utils import MONDAY, SATURDAY, WEDNESDAY, make_rule


def as_strings(windows):
    return [w.as_strings() for w in windows]


class TestWeekdayIndex:
    def test_sunday_is_zero(self):
        assert weekday_index(date(2030, 1, 6)) == 0
        assert weekday_index(MONDAY) == 1
        assert weekday_index(SATURDAY) == 6


class TestMaterializeDate:
    def test_recurring_break_removes_overlapping_slot(self):
        slots = materialize_date(make_rule(), MONDAY)

        assert as_strings(slots) == [
            ("09:00", "09:30"),
            ("09:30", "10:00"),
            ("10:30", "11:00"),
            ("11:00", "11:30"),
            ("11:30", "12:00"),
        ]

    def test_non_working_day_has_no_slots(self):
        assert materialize_date(make_rule(), SATURDAY) == []

    def test_full_override_clears_working_day(self):
        rule = make_rule(custom_days=[{"date": WEDNESDAY, "leave_type": "full"}])

        assert materialize_date(rule, WEDNESDAY) == []
        assert len(materialize_date(rule, MONDAY)) == 5

    def test_break_override_adds_one_off_windows(self):
        rule = make_rule(custom_days=[{
            "date": MONDAY,
            "leave_type": "break",
            "breaks": [{"start": "11:00", "end": "12:00"}],
        }])

        starts = [w.as_strings()[0] for w in materialize_date(rule, MONDAY)]
        assert starts == ["09:00", "09:30", "10:30"]

    def test_trailing_partial_slot_is_dropped(self):
        rule = make_rule(start_time="09:00", end_time="10:40", slot_duration=30, breaks=[])

        assert as_strings(materialize_date(rule, MONDAY)) == [
            ("09:00", "09:30"),
            ("09:30", "10:00"),
            ("10:00", "10:30"),
        ]

    def test_slot_ending_at_break_start_is_kept(self):
        rule = make_rule(start_time="09:00", end_time="11:00", slot_duration=60,
                         breaks=[{"start": "10:00", "end": "10:15"}])

        assert as_strings(materialize_date(rule, MONDAY)) == [("09:00", "10:00")]

    def test_outside_effective_window_has_no_slots(self):
        rule = make_rule(effective_from=date(2030, 1, 8), effective_to=date(2030, 1, 31))

        assert materialize_date(rule, MONDAY) == []
        assert len(materialize_date(rule, WEDNESDAY)) == 5

    def test_whole_day_window(self):
        rule = make_rule(start_time="00:00", end_time="24:00", slot_duration=60, breaks=[])

        slots = materialize_date(rule, MONDAY)
        assert len(slots) == 24
        assert slots[-1].as_strings() == ("23:00", "24:00")


class TestMaterializeMonth:
    def test_one_entry_per_calendar_day(self):
        month = materialize(make_rule(), 2030, 2)

        assert [d for d, _ in month] == [date(2030, 2, d) for d in range(1, 29)]

    def test_january_2030_weekday_count(self):
        month = materialize(make_rule(), 2030, 1)

        assert sum(len(slots) for _, slots in month) == 23 * 5

    def test_is_idempotent(self):
        rule = make_rule()
        assert materialize(rule, 2030, 3) == materialize(rule, 2030, 3)

    def test_slots_never_overlap_and_stay_inside_working_hours(self):
        rule = make_rule(start_time="08:15", end_time="17:50", slot_duration=25,
                         breaks=[{"start": "12:00", "end": "13:00"}, {"start": "15:10", "end": "15:20"}])

        for _, slots in materialize(rule, 2030, 4):
            for a, b in zip(slots, slots[1:]):
                assert a.end <= b.start
            for slot in slots:
                assert rule.working_hours.contains(slot)
                assert not any(slot.overlaps(br) for br in rule.breaks)


class TestExcludeWindows:
    def test_half_open_overlap(self):
        cands = [TimeWindow(540, 570), TimeWindow(570, 600)]
        ex = [TimeWindow(time_str_to_minutes("09:30"), time_str_to_minutes("09:45"))]

        assert exclude_windows(cands, ex) == [TimeWindow(540, 570)]

    def test_no_exclusions_returns_candidates(self):
        cands = [TimeWindow(0, 30)]
        assert exclude_windows(cands, ()) is cands
