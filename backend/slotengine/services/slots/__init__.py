# backend/slotengine/services/slots/__init__.py
"""
Slot scheduling engine.

Rule Store → Slot Materializer → Slot Ledger ← Booking Reconciler
Query Facade reads the ledger (month previews optionally cached in Redis)
"""

from .config import SchedulingConfig, get_scheduling_config
from .errors import (
    SlotError,
    ValidationError,
    SlotUnavailable,
    OwnerMismatch,
    SlotConflict,
    SlotNotFound,
    LeaveConflict,
    StorageUnavailable,
)
from .types import AvailabilityRule, CustomDay, TimeWindow
from .validation import build_rule, rule_to_dict
from .calculator import materialize, materialize_date
from .rule_store import RuleStore
from .ledger import SlotLedger
from .reconciler import BookingReconciler
from .redis_store import PreviewRedisStore
from .invalidator import invalidate_preview_cache
from .facade import SlotService

__all__ = [
    "SchedulingConfig",
    "get_scheduling_config",
    "SlotError",
    "ValidationError",
    "SlotUnavailable",
    "OwnerMismatch",
    "SlotConflict",
    "SlotNotFound",
    "LeaveConflict",
    "StorageUnavailable",
    "AvailabilityRule",
    "CustomDay",
    "TimeWindow",
    "build_rule",
    "rule_to_dict",
    "materialize",
    "materialize_date",
    "RuleStore",
    "SlotLedger",
    "BookingReconciler",
    "PreviewRedisStore",
    "invalidate_preview_cache",
    "SlotService",
]
