# Overview: Per-product serialization and atomic-unit helpers for ledger writes.

from __future__ import annotations

import threading
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db


_registry_guard = threading.Lock()
_product_locks: dict[int, threading.Lock] = {}


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    populate_existing() makes the session overwrite any copy already in its
    identity map with the row as read under the lock.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    product_lock() covers SQLite within a single process.
    """
    return query.with_for_update().populate_existing()


def _lock_for(product_id: int) -> threading.Lock:
    with _registry_guard:
        lock = _product_locks.get(product_id)
        if lock is None:
            lock = threading.Lock()
            _product_locks[product_id] = lock
        return lock


@contextmanager
def product_lock(product_id: int):
    """
    Serialize read-modify-write units on one product within this process.

    Locks are keyed by product_id, so work on different products never waits
    on each other. Hold it until after commit or rollback.
    """
    lock = _lock_for(product_id)
    with lock:
        yield


def forget_product_lock(product_id: int) -> None:
    """Drop the lock entry of a deleted product."""
    with _registry_guard:
        _product_locks.pop(product_id, None)


def run_atomic(func, *, on_store_error):
    """
    Run func() as one all-or-nothing unit against the session.

    func is responsible for committing. Any exception rolls the session back.
    SQLAlchemy failures are converted with on_store_error(exc) and raised
    chained to the original; everything else propagates unchanged.
    Nothing is retried: the caller decides whether to resubmit.
    """
    try:
        return func()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise on_store_error(exc) from exc
    except Exception:
        db.session.rollback()
        raise
