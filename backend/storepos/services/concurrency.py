# Overview: Locking and retry helpers shared by the sale, refund and shift services.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


class RetryableContention(Exception):
    """Raised when a uniqueness race was lost and the whole operation may be replayed."""


RETRYABLE_ERRORS = (OperationalError, StaleDataError, RetryableContention)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    The invariants themselves are guarded by conditional UPDATEs and
    constraints, so SQLite stays correct without it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1, retry_on=RETRYABLE_ERRORS):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks), StaleDataError
    (optimistic locking conflicts) and RetryableContention. The session is
    rolled back before each replay and on any other failure, so a rejected
    operation never leaves partial writes in the session.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except retry_on as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            # Business rejections leave nothing half-written behind.
            db.session.rollback()
            raise
    if last_exc:
        raise last_exc


def conditional_update(statement) -> int:
    """
    Execute a guarded Core UPDATE and return the number of rows it touched.

    Zero means the WHERE guard rejected the write; the caller decides why.
    """
    result = db.session.execute(statement)
    return result.rowcount or 0
