# backend/slotengine/services/slots/errors.py
"""
Error taxonomy of the slot engine.

Every error carries the HTTP status it maps to; the app-level
exception handler in main.py does the translation.
"""


class SlotError(Exception):
    """Base class for all slot engine errors."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {
            "success": False,
            "error": type(self).__name__,
            "message": self.message,
        }


class ValidationError(SlotError):
    """Malformed or contradictory rule. Raised before any write."""

    status_code = 422


class SlotUnavailable(SlotError):
    """Requested slot is missing or not free."""

    status_code = 409


class OwnerMismatch(SlotError):
    """Release attempted by someone who does not hold the slot."""

    status_code = 403


class SlotConflict(SlotError):
    """Custom slot overlaps an existing non-cancelled slot."""

    status_code = 409


class SlotNotFound(SlotError):
    status_code = 404


class LeaveConflict(SlotError):
    """Leave requested over booked slots."""

    status_code = 409

    def __init__(self, message: str, conflicts: list[dict]):
        super().__init__(message)
        self.conflicts = conflicts

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["conflicts"] = self.conflicts
        return data


class StorageUnavailable(SlotError):
    """Transient storage failure (timeout, database unavailable)."""

    status_code = 503
