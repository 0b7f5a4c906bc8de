"""
Unit tests for availability rule validation.
"""

from datetime import date

import pytest

from slotengine.services.slots import ValidationError, build_rule, rule_to_dict
from slotengine.services.slots.config import normalize_time_str, time_str_to_minutes
from slotengine.services.slots.validation import validate_rule

from tests.utils import MONDAY, make_rule


class TestTimeHelpers:
    @pytest.mark.parametrize("value,expected", [
        ("00:00", 0),
        ("9:05", 545),
        ("23:59", 1439),
        ("24:00", 1440),
    ])
    def test_valid_times(self, value, expected):
        assert time_str_to_minutes(value) == expected

    @pytest.mark.parametrize("value", ["24:30", "12:60", "1200", "", None, "ab:cd"])
    def test_invalid_times(self, value):
        with pytest.raises(ValueError):
            time_str_to_minutes(value)

    def test_normalize(self):
        assert normalize_time_str("9:00") == "09:00"


class TestBuildRule:
    def test_valid_rule(self):
        rule = make_rule()

        assert rule.days_of_week == frozenset({1, 2, 3, 4, 5})
        assert rule.working_hours.as_strings() == ("09:00", "12:00")
        assert rule.slot_duration == 30
        assert [b.as_strings() for b in rule.breaks] == [("10:00", "10:30")]

    def test_breaks_are_sorted(self):
        rule = make_rule(breaks=[{"start": "11:00", "end": "11:15"}, {"start": "09:30", "end": "09:45"}])

        assert [b.as_strings()[0] for b in rule.breaks] == ["09:30", "11:00"]

    @pytest.mark.parametrize("overrides,fragment", [
        ({"slot_duration": 0}, "slotDuration"),
        ({"slot_duration": -15}, "slotDuration"),
        ({"slot_duration": "30"}, "slotDuration"),
        ({"slot_duration": 2000}, "slotDuration"),
        ({"days_of_week": [1, 7]}, "daysOfWeek"),
        ({"start_time": "25:00"}, "startTime"),
        ({"start_time": "12:00", "end_time": "09:00"}, "startTime must be before endTime"),
        ({"start_time": "09:00", "end_time": "09:00"}, "startTime must be before endTime"),
        ({"breaks": [{"start": "08:00", "end": "09:30"}]}, "breaks[0] must lie within"),
        ({"breaks": [{"start": "10:00", "end": "10:30"}, {"start": "10:15", "end": "10:45"}]}, "overlaps another break"),
        ({"breaks": [{"start": "10:30", "end": "10:00"}]}, "start must be before end"),
        ({"effective_from": date(2030, 2, 1), "effective_to": date(2030, 1, 1)}, "effectiveFrom"),
    ])
    def test_invariant_violations(self, overrides, fragment):
        with pytest.raises(ValidationError) as exc_info:
            make_rule(**overrides)

        assert fragment in exc_info.value.message
        assert exc_info.value.status_code == 422

    def test_adjacent_breaks_are_allowed(self):
        rule = make_rule(breaks=[{"start": "10:00", "end": "10:30"}, {"start": "10:30", "end": "11:00"}])

        assert len(rule.breaks) == 2

    def test_duplicate_custom_days_rejected(self):
        with pytest.raises(ValidationError, match="more than one entry"):
            make_rule(custom_days=[
                {"date": MONDAY, "leave_type": "full"},
                {"date": MONDAY.isoformat(), "leave_type": "full"},
            ])

    def test_unknown_leave_type_rejected(self):
        with pytest.raises(ValidationError, match="leaveType"):
            make_rule(custom_days=[{"date": MONDAY, "leave_type": "holiday"}])

    def test_break_override_needs_windows(self):
        with pytest.raises(ValidationError, match="at least one window"):
            make_rule(custom_days=[{"date": MONDAY, "leave_type": "break", "breaks": []}])

    def test_bad_custom_day_date(self):
        with pytest.raises(ValidationError, match="YYYY-MM-DD"):
            make_rule(custom_days=[{"date": "07/01/2030", "leave_type": "full"}])

    def test_first_violation_is_reported(self):
        with pytest.raises(ValidationError, match="slotDuration"):
            build_rule(days_of_week=[9], start_time="x", end_time="y", slot_duration=0)


class TestRoundTrip:
    def test_rule_to_dict_rebuilds_equal_rule(self):
        rule = make_rule(
            custom_days=[
                {"date": MONDAY, "leave_type": "break", "breaks": [{"start": "11:00", "end": "11:30"}], "reason": "dentist"},
            ],
            effective_from=date(2030, 1, 1),
        )

        assert build_rule(**rule_to_dict(rule)) == rule
        assert validate_rule(rule) == rule
