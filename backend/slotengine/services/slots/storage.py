# backend/slotengine/services/slots/storage.py
"""
Storage call policy.

Idempotent reads are retried once on a transient database error, but
only while the session holds no writes: a retry rolls back, and a
rollback inside a write transaction would silently drop those writes.
Writes are never retried; the failure surfaces as StorageUnavailable.
"""

import logging
from typing import Callable, TypeVar

from sqlalchemy import event
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from .errors import StorageUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Session.info key, set by write() until the transaction ends
WROTE_KEY = "slotengine_wrote"


@event.listens_for(Session, "after_transaction_end")
def _clear_wrote_flag(session: Session, transaction) -> None:
    if transaction.parent is None:
        session.info.pop(WROTE_KEY, None)


def has_pending_writes(db: Session) -> bool:
    return bool(db.info.get(WROTE_KEY) or db.new or db.dirty or db.deleted)


def read(db: Session, fn: Callable[[], T]) -> T:
    """
    Run an idempotent read, retrying once on OperationalError.

    Inside a write transaction the failure is not retried: the
    transaction is rolled back and StorageUnavailable raised.
    """
    try:
        return fn()
    except OperationalError as e:
        if has_pending_writes(db):
            db.rollback()
            logger.error(f"Read failed inside a write transaction, rolled back: {e}")
            raise StorageUnavailable("storage is temporarily unavailable, the change was not saved") from e
        logger.warning(f"Read failed, retrying once: {e}")
        db.rollback()
    try:
        return fn()
    except OperationalError as e:
        db.rollback()
        logger.error(f"Read failed after retry: {e}")
        raise StorageUnavailable("storage is temporarily unavailable") from e


def write(db: Session, fn: Callable[[], T]) -> T:
    """Run a write statement; no retry."""
    db.info[WROTE_KEY] = True
    try:
        return fn()
    except OperationalError as e:
        db.rollback()
        logger.error(f"Write failed: {e}")
        raise StorageUnavailable("storage is temporarily unavailable, the change was not saved") from e


def commit(db: Session) -> None:
    """Commit the current transaction; no retry."""
    try:
        db.commit()
    except OperationalError as e:
        db.rollback()
        logger.error(f"Commit failed: {e}")
        raise StorageUnavailable("storage is temporarily unavailable, the change was not saved") from e
