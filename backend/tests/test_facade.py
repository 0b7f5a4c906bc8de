"""
Tests for the query facade and rule updates.
"""

import json
from datetime import date, datetime

import pytest
from redis.exceptions import RedisError

from slotengine.models import AvailabilityRules, SlotDays
from slotengine.services.slots import AvailabilityRule, LeaveConflict, SlotService, TimeWindow, ValidationError

from tests.utils import MONDAY, PROVIDER_ID, RULE_SAVED_ON, TUESDAY, make_rule, starts


class TestSetRule:
    def test_set_then_get(self, service):
        rule = make_rule()

        assert service.set_rule(PROVIDER_ID, rule, today=RULE_SAVED_ON) == rule
        assert service.get_rule(PROVIDER_ID) == rule

    def test_invalid_rule_writes_nothing(self, service, db_session):
        rule = AvailabilityRule(
            days_of_week=frozenset({1}),
            working_hours=TimeWindow(600, 540),
            slot_duration=30,
        )

        with pytest.raises(ValidationError):
            service.set_rule(PROVIDER_ID, rule, today=RULE_SAVED_ON)
        assert db_session.query(AvailabilityRules).count() == 0

    def test_rule_update_regenerates_free_dates_and_freezes_booked(self, service_with_rule):
        service = service_with_rule
        service.slots_for_date(PROVIDER_ID, MONDAY)
        service.slots_for_date(PROVIDER_ID, TUESDAY)
        service.reconciler.lock(PROVIDER_ID, MONDAY, "09:00", "appt-1")

        service.set_rule(
            PROVIDER_ID,
            make_rule(start_time="14:00", end_time="16:00", slot_duration=60, breaks=[]),
            today=RULE_SAVED_ON,
        )

        assert starts(service.slots_for_date(PROVIDER_ID, MONDAY)) == ["09:00", "09:30", "10:30", "11:00", "11:30"]
        assert starts(service.slots_for_date(PROVIDER_ID, TUESDAY)) == ["14:00", "15:00"]

    def test_rule_update_keeps_custom_slots(self, service_with_rule):
        service = service_with_rule
        service.reconciler.add_custom_slot(PROVIDER_ID, MONDAY, "13:00", 45)

        service.set_rule(PROVIDER_ID, make_rule(end_time="14:00", breaks=[]), today=RULE_SAVED_ON)

        slots = service.slots_for_date(PROVIDER_ID, MONDAY)
        assert starts(slots) == ["09:00", "09:30", "10:00", "10:30", "11:00", "11:30", "12:00", "12:30", "13:00"]
        assert slots[-1]["custom_duration"] == 45
        assert slots[-1]["end"] == "13:45"

    def test_rule_update_leaves_earlier_dates_alone(self, service_with_rule, db_session):
        service = service_with_rule
        service.slots_for_date(PROVIDER_ID, MONDAY)

        service.set_rule(PROVIDER_ID, make_rule(start_time="14:00", end_time="15:00", breaks=[]),
                         today=date(2030, 1, 8))

        assert starts(service.slots_for_date(PROVIDER_ID, MONDAY))[0] == "09:00"

    def test_rule_leave_day_over_booking_is_refused(self, service_with_rule):
        service = service_with_rule
        service.reconciler.lock(PROVIDER_ID, MONDAY, "09:30", "appt-1")

        with pytest.raises(LeaveConflict) as exc_info:
            service.set_rule(
                PROVIDER_ID,
                make_rule(custom_days=[{"date": MONDAY, "leave_type": "full"}]),
                today=RULE_SAVED_ON,
            )

        assert exc_info.value.conflicts[0]["appointment_id"] == "appt-1"
        assert service.get_rule(PROVIDER_ID).custom_day(MONDAY) is None
        assert service.reconciler.lock(PROVIDER_ID, MONDAY, "09:00", "appt-2").status == "booked"

    def test_unchanged_leave_day_on_booked_date_is_kept(self, service_with_rule):
        service = service_with_rule
        leave = {"date": MONDAY, "leave_type": "break", "breaks": [{"start": "11:00", "end": "12:00"}]}
        service.set_rule(PROVIDER_ID, make_rule(custom_days=[leave]), today=RULE_SAVED_ON)
        service.reconciler.lock(PROVIDER_ID, MONDAY, "09:00", "appt-1")

        service.set_rule(PROVIDER_ID, make_rule(custom_days=[leave], slot_duration=15), today=RULE_SAVED_ON)

        assert service.get_rule(PROVIDER_ID).custom_day(MONDAY).leave_type == "break"


class TestPreviewMonth:
    def test_flattened_month_without_cancelled(self, service_with_rule):
        service = service_with_rule
        service.reconciler.cancel_custom_slot(PROVIDER_ID, MONDAY, "09:00")

        slots = service.preview_month(PROVIDER_ID, 2030, 1, now=datetime(2029, 12, 1))

        assert len(slots) == 23 * 5 - 1
        assert slots[0] == {
            "date": "2030-01-01",
            "start": "09:00",
            "end": "09:30",
            "status": "available",
            "custom_duration": None,
            "is_past": False,
        }
        assert [(s["date"], s["start"]) for s in slots] == sorted((s["date"], s["start"]) for s in slots)

    def test_booked_slots_are_listed(self, service_with_rule):
        service = service_with_rule
        service.reconciler.lock(PROVIDER_ID, MONDAY, "09:30", "appt-1")

        slots = service.preview_month(PROVIDER_ID, 2030, 1)

        booked = [s for s in slots if s["status"] == "booked"]
        assert [(s["date"], s["start"]) for s in booked] == [("2030-01-07", "09:30")]

    def test_no_rule_is_empty(self, service, db_session):
        assert service.preview_month(PROVIDER_ID, 2030, 1) == []
        assert db_session.query(SlotDays).count() == 0

    def test_served_from_cache(self, db_session, redis_mock):
        cached = [{"date": "2030-01-07", "start": "09:00", "end": "09:30", "status": "available", "custom_duration": None}]
        redis_mock.get.return_value = json.dumps(cached)
        service = SlotService(db_session, redis_mock)

        slots = service.preview_month(PROVIDER_ID, 2030, 1, now=datetime(2030, 1, 7, 12, 0))

        assert slots == [{**cached[0], "is_past": True}]
        redis_mock.get.assert_called_once_with("slots:month:1:2030-01")
        assert db_session.query(SlotDays).count() == 0

    def test_miss_is_stored_with_ttl(self, db_session, redis_mock):
        service = SlotService(db_session, redis_mock)
        service.set_rule(PROVIDER_ID, make_rule(), today=RULE_SAVED_ON)

        slots = service.preview_month(PROVIDER_ID, 2030, 1)

        key, ttl, payload = redis_mock.setex.call_args.args
        assert key == "slots:month:1:2030-01"
        assert ttl == 300
        stored = json.loads(payload)
        assert len(stored) == len(slots)
        assert "is_past" not in stored[0]

    def test_redis_failure_falls_back_to_ledger(self, db_session, redis_mock):
        redis_mock.get.side_effect = RedisError("down")
        redis_mock.setex.side_effect = RedisError("down")
        service = SlotService(db_session, redis_mock)
        service.set_rule(PROVIDER_ID, make_rule(), today=RULE_SAVED_ON)

        assert len(service.preview_month(PROVIDER_ID, 2030, 1)) == 23 * 5


class TestSlotsForDate:
    def test_is_past_uses_buffer(self, service_with_rule):
        slots = service_with_rule.slots_for_date(PROVIDER_ID, MONDAY, now=datetime(2030, 1, 7, 9, 20))
        assert [s["is_past"] for s in slots] == [True, False, False, False, False]

        slots = service_with_rule.slots_for_date(PROVIDER_ID, MONDAY, now=datetime(2030, 1, 7, 9, 26))
        assert [s["is_past"] for s in slots] == [True, True, False, False, False]

    def test_cancelled_hidden_unless_requested(self, service_with_rule):
        service = service_with_rule
        service.reconciler.cancel_custom_slot(PROVIDER_ID, MONDAY, "09:00")

        assert "09:00" not in starts(service.slots_for_date(PROVIDER_ID, MONDAY))
        assert "09:00" in starts(service.slots_for_date(PROVIDER_ID, MONDAY, include_cancelled=True))

    def test_never_reads_cache(self, db_session, redis_mock):
        service = SlotService(db_session, redis_mock)
        service.set_rule(PROVIDER_ID, make_rule(), today=RULE_SAVED_ON)

        service.slots_for_date(PROVIDER_ID, MONDAY)

        redis_mock.get.assert_not_called()


class TestWriteSideEffects:
    def test_lock_invalidates_month_and_emits_event(self, db_session, redis_mock):
        service = SlotService(db_session, redis_mock)
        service.set_rule(PROVIDER_ID, make_rule(), today=RULE_SAVED_ON)
        redis_mock.reset_mock()

        service.reconciler.lock(PROVIDER_ID, MONDAY, "09:00", "appt-1")

        redis_mock.delete.assert_called_once_with("slots:month:1:2030-01")
        queue, raw = redis_mock.rpush.call_args.args
        event = json.loads(raw)
        assert queue == "events:p2p"
        assert event["type"] == "slot_locked"
        assert event["provider_id"] == PROVIDER_ID
        assert event["date"] == "2030-01-07"
        assert event["appointment_id"] == "appt-1"

    def test_rule_save_invalidates_every_month(self, db_session, redis_mock):
        redis_mock.keys.return_value = ["slots:month:1:2030-01", "slots:month:1:2030-02"]
        service = SlotService(db_session, redis_mock)

        service.set_rule(PROVIDER_ID, make_rule(), today=RULE_SAVED_ON)

        redis_mock.keys.assert_called_once_with("slots:month:1:*")
        redis_mock.delete.assert_called_once_with("slots:month:1:2030-01", "slots:month:1:2030-02")
        assert json.loads(redis_mock.rpush.call_args.args[1])["type"] == "rule_updated"

    def test_redis_outage_does_not_fail_writes(self, db_session, redis_mock):
        redis_mock.delete.side_effect = RedisError("down")
        redis_mock.keys.side_effect = RedisError("down")
        redis_mock.rpush.side_effect = RedisError("down")
        service = SlotService(db_session, redis_mock)
        service.set_rule(PROVIDER_ID, make_rule(), today=RULE_SAVED_ON)

        slot = service.reconciler.lock(PROVIDER_ID, MONDAY, "09:00", "appt-1")

        assert slot.status == "booked"
