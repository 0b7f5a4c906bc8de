# backend/slotengine/services/slots/ledger.py
"""
Slot Ledger: authoritative per-provider, per-date slot state.

Tables:
  slot_days  (provider_id, date)        marker, "this date is materialized"
  slots      (provider_id, date, start) one row per slot

Reconciliation on read:
✓ Marker present → rows are authoritative, returned as-is
✓ Marker missing → materialize from the current rule, persist, return
✓ Two readers racing on a missing date → first insert wins,
  the loser rolls back and re-reads

Rows that were ever booked are never deleted, only cancelled.
"""

import logging
from calendar import monthrange
from datetime import date
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...models import SlotDays, Slots
from . import storage
from .calculator import materialize_date
from .config import time_str_to_minutes
from .rule_store import RuleStore
from .types import SLOT_AVAILABLE, SLOT_BOOKED, SLOT_CANCELLED, AvailabilityRule, TimeWindow

logger = logging.getLogger(__name__)


def slot_window(slot: Slots) -> TimeWindow:
    return TimeWindow(time_str_to_minutes(slot.start), time_str_to_minutes(slot.end))


class SlotLedger:
    """Persisted slot state with materialize-on-first-read."""

    def __init__(self, db: Session, rules: RuleStore):
        self.db = db
        self.rules = rules

    # ── Read ─────────────────────────────────────────────────────────────

    def get_date(self, provider_id: int, target_date: date) -> list[Slots]:
        """Ordered slots for one date (all statuses)."""
        return self.reconcile_date(provider_id, target_date)

    def get_month(self, provider_id: int, year: int, month: int) -> dict[date, list[Slots]]:
        """
        Ordered slots for every date of a month.

        Missing dates are materialized with one rule lookup and, when
        nobody races us, one transaction.
        """
        days = [date(year, month, d) for d in range(1, monthrange(year, month)[1] + 1)]
        first, last = days[0].isoformat(), days[-1].isoformat()

        marked = set(storage.read(self.db, lambda: [
            d for (d,) in self.db.query(SlotDays.date).filter(
                SlotDays.provider_id == provider_id,
                SlotDays.date >= first,
                SlotDays.date <= last,
            )
        ]))
        missing = [d for d in days if d.isoformat() not in marked]

        if missing:
            rule = self.rules.get_rule(provider_id)
            if rule is not None:
                try:
                    for d in missing:
                        self._persist(provider_id, d, rule)
                    storage.commit(self.db)
                    logger.info(f"Materialized {len(missing)} dates for provider {provider_id} in {year}-{month:02d}")
                except IntegrityError:
                    # Another reader materialized some of these dates first
                    self.db.rollback()
                    for d in missing:
                        self.reconcile_date(provider_id, d)

        rows = storage.read(self.db, lambda: (
            self.db.query(Slots)
            .filter(
                Slots.provider_id == provider_id,
                Slots.date >= first,
                Slots.date <= last,
            )
            .order_by(Slots.date, Slots.start)
            .all()
        ))
        result: dict[date, list[Slots]] = {d: [] for d in days}
        for row in rows:
            result[date.fromisoformat(row.date)].append(row)
        return result

    def find(self, provider_id: int, target_date: date, start: str) -> Optional[Slots]:
        return storage.read(self.db, lambda: (
            self.db.query(Slots)
            .filter(
                Slots.provider_id == provider_id,
                Slots.date == target_date.isoformat(),
                Slots.start == start,
            )
            .first()
        ))

    def is_materialized(self, provider_id: int, target_date: date) -> bool:
        return storage.read(self.db, lambda: (
            self.db.query(SlotDays.date)
            .filter(
                SlotDays.provider_id == provider_id,
                SlotDays.date == target_date.isoformat(),
            )
            .first()
        )) is not None

    def booked_slots(self, provider_id: int, target_date: date) -> list[Slots]:
        return storage.read(self.db, lambda: (
            self.db.query(Slots)
            .filter(
                Slots.provider_id == provider_id,
                Slots.date == target_date.isoformat(),
                Slots.status == SLOT_BOOKED,
            )
            .order_by(Slots.start)
            .all()
        ))

    def has_booked(self, provider_id: int, target_date: date) -> bool:
        return storage.read(self.db, lambda: (
            self.db.query(Slots.id)
            .filter(
                Slots.provider_id == provider_id,
                Slots.date == target_date.isoformat(),
                Slots.status == SLOT_BOOKED,
            )
            .first()
        )) is not None

    # ── Reconciliation ───────────────────────────────────────────────────

    def reconcile_date(self, provider_id: int, target_date: date) -> list[Slots]:
        """
        Return the authoritative rows for a date, materializing first if
        the date has never been seen.

        Without a rule nothing is persisted; whatever rows exist
        (custom slots) are returned.
        """
        if not self.is_materialized(provider_id, target_date):
            rule = self.rules.get_rule(provider_id)
            if rule is not None:
                try:
                    self._persist(provider_id, target_date, rule)
                    storage.commit(self.db)
                    logger.info(f"Materialized {target_date} for provider {provider_id}")
                except IntegrityError:
                    self.db.rollback()
                    logger.debug(f"Lost materialization race for {target_date} provider {provider_id}, re-reading")
        return self._rows(provider_id, target_date)

    def _rows(self, provider_id: int, target_date: date) -> list[Slots]:
        return storage.read(self.db, lambda: (
            self.db.query(Slots)
            .filter(
                Slots.provider_id == provider_id,
                Slots.date == target_date.isoformat(),
            )
            .order_by(Slots.start)
            .all()
        ))

    def _persist(self, provider_id: int, target_date: date, rule: AvailabilityRule) -> None:
        """Insert marker + materialized rows (flush only)."""
        self.db.add(SlotDays(provider_id=provider_id, date=target_date.isoformat()))
        storage.write(self.db, self.db.flush)
        self.upsert(provider_id, target_date, materialize_date(rule, target_date))

    # ── Write ────────────────────────────────────────────────────────────

    def upsert(self, provider_id: int, target_date: date, windows: list[TimeWindow]) -> None:
        """
        Merge available windows into a date's rows (flush only).

        - Same start as a cancelled, non-custom row → the row is revived
        - Overlaps a retained non-cancelled row → skipped
        - Otherwise inserted as a new available slot
        """
        existing = self._rows(provider_id, target_date)
        by_start = {row.start: row for row in existing}
        live = [slot_window(row) for row in existing if row.status != SLOT_CANCELLED]

        for window in windows:
            start, end = window.as_strings()
            row = by_start.get(start)
            if row is not None:
                if (
                    row.status == SLOT_CANCELLED
                    and row.custom_duration is None
                    and not any(window.overlaps(w) for w in live)
                ):
                    row.status = SLOT_AVAILABLE
                    row.end = end
                    row.updated_at = func.current_timestamp()
                    live.append(window)
                continue
            if any(window.overlaps(w) for w in live):
                continue
            self.db.add(Slots(
                provider_id=provider_id,
                date=target_date.isoformat(),
                start=start,
                end=end,
                status=SLOT_AVAILABLE,
                ever_booked=0,
            ))
            live.append(window)

        storage.write(self.db, self.db.flush)

    def delete(self, provider_id: int, target_date: date) -> int:
        """
        Forget a materialized date so the next read re-materializes it
        (flush only).

        Deleted: marker and rule-derived rows that were never booked.
        Kept: custom slots, booked rows, and history rows (marked cancelled).

        Returns:
            Number of deleted slot rows.
        """
        day_str = target_date.isoformat()
        base = self.db.query(Slots).filter(
            Slots.provider_id == provider_id,
            Slots.date == day_str,
        )

        def _apply() -> int:
            deleted = base.filter(
                Slots.ever_booked == 0,
                Slots.custom_duration.is_(None),
            ).delete(synchronize_session=False)
            base.filter(
                Slots.ever_booked == 1,
                Slots.custom_duration.is_(None),
                Slots.status == SLOT_AVAILABLE,
            ).update(
                {Slots.status: SLOT_CANCELLED, Slots.updated_at: func.current_timestamp()},
                synchronize_session=False,
            )
            self.db.query(SlotDays).filter(
                SlotDays.provider_id == provider_id,
                SlotDays.date == day_str,
            ).delete(synchronize_session=False)
            return deleted

        deleted = storage.write(self.db, _apply)
        self.db.expire_all()
        return deleted

    def invalidate_from(self, provider_id: int, from_date: date) -> list[date]:
        """
        Forget every materialized date >= from_date that holds no booked
        slot (flush only). Dates with a booked slot stay frozen.

        Returns:
            Dates that were invalidated.
        """
        day_strs = storage.read(self.db, lambda: [
            d for (d,) in self.db.query(SlotDays.date).filter(
                SlotDays.provider_id == provider_id,
                SlotDays.date >= from_date.isoformat(),
            ).order_by(SlotDays.date)
        ])
        invalidated = []
        for day_str in day_strs:
            d = date.fromisoformat(day_str)
            if self.has_booked(provider_id, d):
                logger.info(f"Keeping {d} for provider {provider_id}: date holds a booking")
                continue
            self.delete(provider_id, d)
            invalidated.append(d)
        return invalidated
