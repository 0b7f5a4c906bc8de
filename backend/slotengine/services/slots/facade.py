# backend/slotengine/services/slots/facade.py
"""
Query Facade: month and single-date slot views, plus rule updates.

previewMonth  → Redis preview cache (optional), falls back to the ledger
slotsForDate  → always the ledger

`is_past` is computed on every read and never cached or stored.

The preview cache is not updated by concurrent writers: a lock landing
between the ledger read and the cache store leaves a stale month grid for
up to the cache TTL. Booking always goes through the ledger, so a stale
preview can only show a taken slot as free, never double-book it.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Optional

from redis import Redis
from redis.exceptions import RedisError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...models import Slots
from .. import events
from . import storage
from .config import SchedulingConfig, get_scheduling_config, time_str_to_minutes
from .errors import LeaveConflict, SlotConflict
from .invalidator import invalidate_preview_cache
from .ledger import SlotLedger
from .reconciler import BookingReconciler, conflict_to_dict
from .redis_store import PreviewRedisStore
from .rule_store import RuleStore
from .types import SLOT_CANCELLED, AvailabilityRule
from .validation import validate_rule

logger = logging.getLogger(__name__)


def slot_to_dict(slot: Slots) -> dict:
    return {
        "date": slot.date,
        "start": slot.start,
        "end": slot.end,
        "status": slot.status,
        "custom_duration": slot.custom_duration,
    }


class SlotService:
    """Entry point for routers: one instance per request session."""

    def __init__(
        self,
        db: Session,
        redis: Redis | None = None,
        config: SchedulingConfig | None = None,
    ):
        self.db = db
        self.redis = redis
        self.config = config or get_scheduling_config()
        self.rules = RuleStore(db)
        self.ledger = SlotLedger(db, self.rules)
        self.reconciler = BookingReconciler(db, self.ledger, self.rules, redis, self.config)
        self.cache = PreviewRedisStore(redis, self.config) if redis is not None else None

    # ── Rule ─────────────────────────────────────────────────────────────

    def get_rule(self, provider_id: int) -> Optional[AvailabilityRule]:
        return self.rules.get_rule(provider_id)

    def set_rule(
        self,
        provider_id: int,
        rule: AvailabilityRule,
        today: Optional[date] = None,
    ) -> AvailabilityRule:
        """
        Validate and store the rule, then forget materialized dates from
        today on so they are rebuilt from it. Dates holding a booking
        are left untouched.

        Raises:
            ValidationError: rule breaks an invariant (nothing written)
            LeaveConflict: a new or changed leave day holds bookings (nothing written)
            SlotConflict: a concurrent save for the same provider won
        """
        today = today or date.today()
        rule = validate_rule(rule)
        self._check_leave_days(provider_id, rule, today)
        try:
            self.rules.save(provider_id, rule)
            invalidated = self.ledger.invalidate_from(provider_id, today)
            storage.commit(self.db)
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"Concurrent rule save for provider {provider_id}: {e}")
            raise SlotConflict("availability rule was changed concurrently, retry") from e

        logger.info(f"Rule saved for provider {provider_id}, {len(invalidated)} date(s) to rebuild")
        invalidate_preview_cache(self.redis, provider_id)
        events.emit_event(self.redis, "rule_updated", {
            "provider_id": provider_id,
            "from_date": today.isoformat(),
        })
        return self.rules.get_rule(provider_id)

    def _check_leave_days(self, provider_id: int, rule: AvailabilityRule, today: date) -> None:
        """Refuse custom days that would put booked dates on leave."""
        current = self.rules.get_rule(provider_id)
        previous = current.custom_days if current else {}
        conflicts = []
        for day, custom in sorted(rule.custom_days.items()):
            if day < today or previous.get(day) == custom:
                continue
            conflicts.extend(conflict_to_dict(s) for s in self.ledger.booked_slots(provider_id, day))
        if conflicts:
            logger.warning(f"Rule refused for provider {provider_id}: {len(conflicts)} booked slot(s) on new leave days")
            raise LeaveConflict(
                f"{len(conflicts)} booked slot(s) fall on new leave days and must be cancelled or rescheduled first",
                conflicts=conflicts,
            )

    # ── Views ────────────────────────────────────────────────────────────

    def preview_month(
        self,
        provider_id: int,
        year: int,
        month: int,
        now: Optional[datetime] = None,
    ) -> list[dict]:
        """Flattened month grid without cancelled slots, ordered by date and start."""
        slots = self._cached_month(provider_id, year, month)
        if slots is None:
            by_date = self.ledger.get_month(provider_id, year, month)
            slots = [
                slot_to_dict(s)
                for rows in by_date.values()
                for s in rows
                if s.status != SLOT_CANCELLED
            ]
            self._store_month(provider_id, year, month, slots)
        return self._with_past_flag(slots, now)

    def slots_for_date(
        self,
        provider_id: int,
        target_date: date,
        now: Optional[datetime] = None,
        include_cancelled: bool = False,
    ) -> list[dict]:
        """Authoritative slots of one date, read from the ledger."""
        rows = self.ledger.get_date(provider_id, target_date)
        slots = [
            slot_to_dict(s) for s in rows
            if include_cancelled or s.status != SLOT_CANCELLED
        ]
        return self._with_past_flag(slots, now)

    # ── Helpers ──────────────────────────────────────────────────────────

    def _with_past_flag(self, slots: list[dict], now: Optional[datetime]) -> list[dict]:
        cutoff = (now or datetime.now()) + timedelta(minutes=self.config.past_buffer_minutes)
        return [{**s, "is_past": _starts_at(s) < cutoff} for s in slots]

    def _cached_month(self, provider_id: int, year: int, month: int) -> Optional[list[dict]]:
        if self.cache is None:
            return None
        try:
            return self.cache.get_month(provider_id, year, month)
        except RedisError as e:
            logger.warning(f"Preview cache read failed for provider {provider_id}: {e}")
            return None

    def _store_month(self, provider_id: int, year: int, month: int, slots: list[dict]) -> None:
        if self.cache is None:
            return
        try:
            self.cache.store_month(provider_id, year, month, slots)
        except RedisError as e:
            logger.warning(f"Preview cache write failed for provider {provider_id}: {e}")


def _starts_at(slot: dict) -> datetime:
    day = date.fromisoformat(slot["date"])
    return datetime(day.year, day.month, day.day) + timedelta(minutes=time_str_to_minutes(slot["start"]))
