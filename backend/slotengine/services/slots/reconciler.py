# backend/slotengine/services/slots/reconciler.py
"""
Booking Reconciler: applies lock / release / custom-slot / leave
operations to the Slot Ledger.

Every state transition is a single conditional UPDATE keyed on the
prior status (compare-and-swap), committed in one transaction:

  lock      available → booked      WHERE status = 'available'
  release   booked    → available   WHERE status = 'booked' AND appointment_id = :id
  cancel    available → cancelled   WHERE status = 'available'
  leave     available → cancelled   WHERE ... AND NOT EXISTS (booked slot on the date)

A losing concurrent caller sees rowcount 0 and gets an error instead
of overwriting the winner.
"""

import logging
from datetime import date
from typing import Optional

from redis import Redis
from sqlalchemy import and_, exists, func, or_, true
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, aliased

from ...models import Slots
from .. import events
from . import storage
from .config import MINUTES_PER_DAY, SchedulingConfig, get_scheduling_config, minutes_to_time_str
from .errors import (
    LeaveConflict,
    OwnerMismatch,
    SlotConflict,
    SlotNotFound,
    SlotUnavailable,
    ValidationError,
)
from .invalidator import invalidate_preview_cache
from .ledger import SlotLedger, slot_window
from .rule_store import RuleStore
from .types import (
    LEAVE_BREAK,
    LEAVE_TYPES,
    SLOT_AVAILABLE,
    SLOT_BOOKED,
    SLOT_CANCELLED,
    CustomDay,
    TimeWindow,
)
from .validation import parse_time, parse_windows

logger = logging.getLogger(__name__)


class BookingReconciler:
    """Slot state transitions for booking and schedule management."""

    def __init__(
        self,
        db: Session,
        ledger: SlotLedger,
        rules: RuleStore,
        redis: Redis | None = None,
        config: SchedulingConfig | None = None,
    ):
        self.db = db
        self.ledger = ledger
        self.rules = rules
        self.redis = redis
        self.config = config or get_scheduling_config()

    # ── Booking ──────────────────────────────────────────────────────────

    def lock(self, provider_id: int, target_date: date, start: str, appointment_id: str) -> Slots:
        """
        Book a free slot for an appointment.

        Raises:
            SlotUnavailable: slot missing or not available
        """
        start = _normalize_start(start)
        if not appointment_id:
            raise ValidationError("appointmentId is required")
        self.ledger.get_date(provider_id, target_date)

        updated = storage.write(self.db, lambda: self._slot_query(provider_id, target_date, start).filter(
            Slots.status == SLOT_AVAILABLE,
        ).update(
            {
                Slots.status: SLOT_BOOKED,
                Slots.appointment_id: appointment_id,
                Slots.ever_booked: 1,
                Slots.updated_at: func.current_timestamp(),
            },
            synchronize_session=False,
        ))
        storage.commit(self.db)

        if updated != 1:
            logger.warning(f"Lock refused: provider {provider_id} {target_date} {start} is not available")
            raise SlotUnavailable(f"slot {target_date} {start} is not available")

        logger.info(f"Locked provider {provider_id} {target_date} {start} for appointment {appointment_id}")
        self._after_write(provider_id, target_date, "slot_locked", {
            "start": start,
            "appointment_id": appointment_id,
        })
        return self._fresh(provider_id, target_date, start)

    def release(self, provider_id: int, target_date: date, start: str, appointment_id: str) -> Slots:
        """
        Return a booked slot to available.

        Raises:
            SlotNotFound: slot does not exist
            OwnerMismatch: slot is not held by this appointment
        """
        start = _normalize_start(start)
        self.ledger.get_date(provider_id, target_date)

        updated = storage.write(self.db, lambda: self._slot_query(provider_id, target_date, start).filter(
            Slots.status == SLOT_BOOKED,
            Slots.appointment_id == appointment_id,
        ).update(
            {
                Slots.status: SLOT_AVAILABLE,
                Slots.appointment_id: None,
                Slots.updated_at: func.current_timestamp(),
            },
            synchronize_session=False,
        ))
        storage.commit(self.db)

        if updated != 1:
            if self.ledger.find(provider_id, target_date, start) is None:
                raise SlotNotFound(f"no slot at {target_date} {start}")
            logger.warning(
                f"Release refused: provider {provider_id} {target_date} {start} "
                f"is not held by appointment {appointment_id}"
            )
            raise OwnerMismatch(f"slot {target_date} {start} is not held by appointment {appointment_id}")

        logger.info(f"Released provider {provider_id} {target_date} {start} from appointment {appointment_id}")
        self._after_write(provider_id, target_date, "slot_released", {
            "start": start,
            "appointment_id": appointment_id,
        })
        return self._fresh(provider_id, target_date, start)

    # ── Custom slots ─────────────────────────────────────────────────────

    def add_custom_slot(self, provider_id: int, target_date: date, start: str, duration: int) -> Slots:
        """
        Add a slot with its own duration, or change the duration of the
        non-booked slot already starting at `start`.

        Raises:
            ValidationError: bad start or duration
            SlotConflict: overlaps another non-cancelled slot
        """
        rule = self.rules.get_rule(provider_id)
        window = self._custom_window(start, duration, rule.slot_duration if rule else 0)
        start = minutes_to_time_str(window.start)
        end = minutes_to_time_str(window.end)

        rows = self.ledger.get_date(provider_id, target_date)
        current = next((r for r in rows if r.start == start), None)
        if current is not None and current.status == SLOT_BOOKED:
            raise SlotConflict(f"slot {target_date} {start} is booked")
        clashes = [
            r for r in rows
            if r is not current and r.status != SLOT_CANCELLED and slot_window(r).overlaps(window)
        ]
        if clashes:
            raise SlotConflict(
                f"{start}-{end} overlaps existing slot {clashes[0].start}-{clashes[0].end} on {target_date}"
            )

        if current is not None:
            # Guarded on the status we saw, so a concurrent lock wins
            prior = current.status
            updated = storage.write(self.db, lambda: self.db.query(Slots).filter(
                Slots.id == current.id,
                Slots.status == prior,
            ).update(
                {
                    Slots.status: SLOT_AVAILABLE,
                    Slots.end: end,
                    Slots.custom_duration: duration,
                    Slots.updated_at: func.current_timestamp(),
                },
                synchronize_session=False,
            ))
            if updated != 1:
                self.db.rollback()
                raise SlotConflict(f"slot {target_date} {start} changed concurrently")
        else:
            self.db.add(Slots(
                provider_id=provider_id,
                date=target_date.isoformat(),
                start=start,
                end=end,
                status=SLOT_AVAILABLE,
                custom_duration=duration,
                ever_booked=0,
            ))
            try:
                storage.write(self.db, self.db.flush)
            except IntegrityError:
                self.db.rollback()
                raise SlotConflict(f"slot {target_date} {start} was created concurrently")

        # Re-check inside the same transaction before committing
        if self._live_overlaps(provider_id, target_date, window, exclude_start=start):
            self.db.rollback()
            raise SlotConflict(f"{start}-{end} overlaps a slot created concurrently on {target_date}")
        storage.commit(self.db)

        logger.info(f"Custom slot {target_date} {start} ({duration} min) set for provider {provider_id}")
        self._after_write(provider_id, target_date, "custom_slot_added", {
            "start": start,
            "duration": duration,
        })
        return self._fresh(provider_id, target_date, start)

    def cancel_custom_slot(self, provider_id: int, target_date: date, start: str) -> Slots:
        """
        Cancel an available slot.

        Raises:
            SlotNotFound: no such slot, already cancelled, or booked
                          (booked slots go through release)
        """
        start = _normalize_start(start)
        self.ledger.get_date(provider_id, target_date)

        updated = storage.write(self.db, lambda: self._slot_query(provider_id, target_date, start).filter(
            Slots.status == SLOT_AVAILABLE,
        ).update(
            {Slots.status: SLOT_CANCELLED, Slots.updated_at: func.current_timestamp()},
            synchronize_session=False,
        ))
        storage.commit(self.db)

        if updated != 1:
            raise SlotNotFound(f"no available slot at {target_date} {start}")

        logger.info(f"Cancelled slot {target_date} {start} for provider {provider_id}")
        self._after_write(provider_id, target_date, "custom_slot_cancelled", {"start": start})
        return self._fresh(provider_id, target_date, start)

    # ── Leave ────────────────────────────────────────────────────────────

    def set_leave(
        self,
        provider_id: int,
        target_date: date,
        leave_type: str,
        extra_breaks: Optional[list[dict]] = None,
        reason: Optional[str] = None,
    ) -> list[Slots]:
        """
        Put a date (full) or some windows of it (break) on leave.

        Available slots in scope are cancelled and the override is stored
        on the rule. If any slot on the date is booked nothing changes,
        whatever the leave type.

        Raises:
            ValidationError: bad leave type / windows, or no rule
            LeaveConflict: booked slots on the date (listed on the error)
        """
        if leave_type not in LEAVE_TYPES:
            raise ValidationError(f"leaveType must be one of {', '.join(LEAVE_TYPES)}, got {leave_type!r}")
        windows = parse_windows(extra_breaks, "slots") if leave_type == LEAVE_BREAK else ()
        if leave_type == LEAVE_BREAK and not windows:
            raise ValidationError("break leave needs at least one window")
        if self.rules.get_rule(provider_id) is None:
            raise ValidationError("provider has no availability rule, set one first")

        self.ledger.get_date(provider_id, target_date)

        day_str = target_date.isoformat()
        booked = aliased(Slots)
        in_scope = _scope_filter(Slots, windows)
        booked_on_date = exists().where(
            booked.provider_id == provider_id,
            booked.date == day_str,
            booked.status == SLOT_BOOKED,
        )

        cancelled = storage.write(self.db, lambda: self.db.query(Slots).filter(
            Slots.provider_id == provider_id,
            Slots.date == day_str,
            Slots.status == SLOT_AVAILABLE,
            in_scope,
            ~booked_on_date,
        ).update(
            {Slots.status: SLOT_CANCELLED, Slots.updated_at: func.current_timestamp()},
            synchronize_session=False,
        ))

        conflicts = [conflict_to_dict(c) for c in self.ledger.booked_slots(provider_id, target_date)]
        if conflicts:
            self.db.rollback()
            logger.warning(f"Leave refused for provider {provider_id} on {target_date}: {len(conflicts)} booked slot(s)")
            raise LeaveConflict(
                f"{len(conflicts)} booked slot(s) on {target_date} must be cancelled or rescheduled first",
                conflicts=conflicts,
            )

        self.rules.put_custom_day(provider_id, CustomDay(
            date=target_date,
            leave_type=leave_type,
            breaks=windows,
            reason=reason,
        ))
        storage.commit(self.db)

        logger.info(f"Leave ({leave_type}) set for provider {provider_id} on {target_date}, {cancelled} slot(s) cancelled")
        self._after_write(provider_id, target_date, "leave_set", {"leave_type": leave_type})
        return self.ledger.get_date(provider_id, target_date)

    def remove_leave(self, provider_id: int, target_date: date) -> list[Slots]:
        """
        Drop a date override and rebuild the date from the recurring rule.

        A date holding a booked slot keeps its rows.

        Raises:
            SlotNotFound: no override on that date
        """
        if not self.rules.remove_custom_day(provider_id, target_date):
            raise SlotNotFound(f"no leave set on {target_date}")
        if not self.ledger.has_booked(provider_id, target_date):
            self.ledger.delete(provider_id, target_date)
        else:
            logger.info(f"Keeping slots of {target_date} for provider {provider_id}: date holds a booking")
        storage.commit(self.db)

        logger.info(f"Leave removed for provider {provider_id} on {target_date}")
        self._after_write(provider_id, target_date, "leave_removed", {})
        return self.ledger.get_date(provider_id, target_date)

    # ── Helpers ──────────────────────────────────────────────────────────

    def _slot_query(self, provider_id: int, target_date: date, start: str):
        return self.db.query(Slots).filter(
            Slots.provider_id == provider_id,
            Slots.date == target_date.isoformat(),
            Slots.start == start,
        )

    def _fresh(self, provider_id: int, target_date: date, start: str) -> Slots:
        self.db.expire_all()
        return self.ledger.find(provider_id, target_date, start)

    def _custom_window(self, start: str, duration: int, rule_duration: int) -> TimeWindow:
        """A custom slot never runs shorter than the rule's default slot."""
        begin = parse_time(start, "start")
        if isinstance(duration, bool) or not isinstance(duration, int) or duration <= 0:
            raise ValidationError("duration must be a positive number of minutes")
        if duration > self.config.max_slot_duration_minutes:
            raise ValidationError(f"duration must not exceed {self.config.max_slot_duration_minutes} minutes")
        window = TimeWindow(begin, begin + max(duration, rule_duration))
        if window.end > MINUTES_PER_DAY:
            raise ValidationError("custom slot must end on the same day")
        return window

    def _live_overlaps(self, provider_id: int, target_date: date, window: TimeWindow, exclude_start: str) -> bool:
        start, end = window.as_strings()
        return storage.read(self.db, lambda: self.db.query(Slots.id).filter(
            Slots.provider_id == provider_id,
            Slots.date == target_date.isoformat(),
            Slots.status != SLOT_CANCELLED,
            Slots.start != exclude_start,
            Slots.start < end,
            Slots.end > start,
        ).first()) is not None

    def _after_write(self, provider_id: int, target_date: date, event_type: str, payload: dict) -> None:
        invalidate_preview_cache(self.redis, provider_id, [target_date])
        events.emit_event(self.redis, event_type, {
            "provider_id": provider_id,
            "date": target_date.isoformat(),
            **payload,
        })


def conflict_to_dict(slot: Slots) -> dict:
    return {
        "date": slot.date,
        "start": slot.start,
        "end": slot.end,
        "appointment_id": slot.appointment_id,
    }


def _normalize_start(start: str) -> str:
    return minutes_to_time_str(parse_time(start, "start"))


def _scope_filter(model, windows: tuple[TimeWindow, ...]):
    """
    SQL condition for slots affected by a leave: everything for full
    leave, or slots overlapping any window ("HH:MM" strings compare in
    time order).
    """
    if not windows:
        return true()
    return or_(*[
        and_(model.start < end, model.end > start)
        for start, end in (w.as_strings() for w in windows)
    ])
