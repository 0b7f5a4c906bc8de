# backend/slotengine/services/slots/rule_store.py
"""
Rule Store: one availability rule per provider.

Rules live in availability_rules (JSON columns for days and breaks),
custom-day overrides in custom_days (unique per provider + date).

Methods flush but do not commit; the caller owns the transaction.
"""

import json
import logging
from datetime import date
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models import AvailabilityRules, CustomDays
from . import storage
from .errors import ValidationError
from .types import AvailabilityRule, CustomDay
from .validation import build_rule, custom_day_to_dict, rule_to_dict, validate_rule

logger = logging.getLogger(__name__)


class RuleStore:
    """SQL storage for availability rules."""

    def __init__(self, db: Session):
        self.db = db

    # ── Read ─────────────────────────────────────────────────────────────

    def get_rule(self, provider_id: int) -> Optional[AvailabilityRule]:
        """
        Load the provider's rule.

        Returns:
            AvailabilityRule, or None if the provider has no rule.

        Raises:
            ValidationError: stored rule is corrupt and must be re-saved.
        """
        row = storage.read(self.db, lambda: self._get_row(provider_id))
        if row is None:
            return None
        return self._to_rule(row)

    def _get_row(self, provider_id: int) -> Optional[AvailabilityRules]:
        return (
            self.db.query(AvailabilityRules)
            .filter(AvailabilityRules.provider_id == provider_id)
            .first()
        )

    def _to_rule(self, row: AvailabilityRules) -> AvailabilityRule:
        try:
            return build_rule(
                days_of_week=json.loads(row.days_of_week),
                start_time=row.start_time,
                end_time=row.end_time,
                slot_duration=row.slot_duration,
                breaks=json.loads(row.breaks),
                custom_days=[
                    {
                        "date": cd.date,
                        "leave_type": cd.leave_type,
                        "breaks": json.loads(cd.breaks),
                        "reason": cd.reason,
                    }
                    for cd in row.custom_days
                ],
                effective_from=row.effective_from,
                effective_to=row.effective_to,
            )
        except (json.JSONDecodeError, TypeError) as e:
            logger.error(f"Stored rule for provider {row.provider_id} is unreadable: {e}")
            raise ValidationError("stored availability rule is corrupt, re-save the rule") from e
        except ValidationError as e:
            logger.error(f"Stored rule for provider {row.provider_id} is invalid: {e.message}")
            raise ValidationError(f"stored availability rule is invalid ({e.message}), re-save the rule") from e

    # ── Write ────────────────────────────────────────────────────────────

    def save(self, provider_id: int, rule: AvailabilityRule) -> AvailabilityRule:
        """
        Validate and upsert the rule with its custom days.

        Nothing is written if validation fails.
        """
        rule = validate_rule(rule)
        data = rule_to_dict(rule)

        row = storage.read(self.db, lambda: self._get_row(provider_id))
        if row is None:
            row = AvailabilityRules(provider_id=provider_id)
            self.db.add(row)

        row.days_of_week = json.dumps(data["days_of_week"])
        row.start_time = data["start_time"]
        row.end_time = data["end_time"]
        row.slot_duration = data["slot_duration"]
        row.breaks = json.dumps(data["breaks"])
        row.effective_from = _iso(rule.effective_from)
        row.effective_to = _iso(rule.effective_to)
        row.updated_at = func.current_timestamp()

        # Update in place: replacing the collection would emit INSERTs
        # before DELETEs and trip the (provider_id, date) constraint.
        existing = {cd.date: cd for cd in row.custom_days}
        wanted = {d.isoformat(): custom for d, custom in rule.custom_days.items()}
        for day_str, cd in existing.items():
            if day_str not in wanted:
                row.custom_days.remove(cd)
        for day_str, custom in wanted.items():
            cd = existing.get(day_str)
            if cd is None:
                cd = CustomDays(provider_id=provider_id, date=day_str)
                row.custom_days.append(cd)
            _fill_custom_day(cd, custom)

        storage.write(self.db, self.db.flush)
        logger.info(f"Saved availability rule for provider {provider_id}")
        return rule

    def put_custom_day(self, provider_id: int, custom: CustomDay) -> None:
        """Create or replace the override for custom.date."""
        row = storage.read(self.db, lambda: self._get_row(provider_id))
        if row is None:
            raise ValidationError("provider has no availability rule, set one first")

        day_str = custom.date.isoformat()
        cd = next((c for c in row.custom_days if c.date == day_str), None)
        if cd is None:
            cd = CustomDays(provider_id=provider_id, date=day_str)
            row.custom_days.append(cd)
        _fill_custom_day(cd, custom)
        storage.write(self.db, self.db.flush)

    def remove_custom_day(self, provider_id: int, target_date: date) -> bool:
        """Delete the override for a date. Returns False if there was none."""
        row = storage.read(self.db, lambda: self._get_row(provider_id))
        if row is None:
            return False

        day_str = target_date.isoformat()
        cd = next((c for c in row.custom_days if c.date == day_str), None)
        if cd is None:
            return False
        row.custom_days.remove(cd)
        storage.write(self.db, self.db.flush)
        return True


# ── Helpers ──────────────────────────────────────────────────────────────


def _fill_custom_day(cd: CustomDays, custom: CustomDay) -> None:
    data = custom_day_to_dict(custom)
    cd.leave_type = data["leave_type"]
    cd.breaks = json.dumps(data["breaks"])
    cd.reason = data["reason"]


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None
