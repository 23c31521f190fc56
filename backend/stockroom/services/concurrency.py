# Overview: Service-layer operations for concurrency; row locks, transaction scope, caller-side retry.

from __future__ import annotations

import time
from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    Ledger rows additionally carry a version_id column, so a lost update on
    SQLite surfaces as StaleDataError instead of silently overwriting.
    """
    return query.with_for_update()


def lock_keys_in_order(keys):
    """
    Sort ledger keys so every operation acquires row locks in the same order.

    Two transfers moving stock in opposite directions lock
    (product, A) and (product, B) in the same sequence and cannot deadlock.
    """
    return sorted(set(keys))


@contextmanager
def transaction(*, commit: bool = True):
    """
    One unit of work on the current session.

    On any exception the session is rolled back, which also undoes every
    reservation made inside the block, and the exception propagates.
    With commit=False the caller owns the outer transaction and the block
    only flushes.
    """
    try:
        yield db.session
        if commit:
            db.session.commit()
        else:
            db.session.flush()
    except Exception:
        if commit:
            db.session.rollback()
        raise


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a whole DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, lock timeouts), StaleDataError
    (optimistic locking conflicts) and IntegrityError (a concurrent insert of
    the same lazily created ledger row; the retry reads the existing row).
    Used by the API layer only: the session is rolled back before each retry,
    so no reservation is ever applied twice.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError, IntegrityError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc
