# Overview: Store-level concurrency helpers: row locks, retry on lock/stale conflicts, error wrapping.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


class PersistenceError(RuntimeError):
    """The underlying store call failed (connection, lock timeout, constraint)."""


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Any SQLAlchemyError that survives the
    retries, or is not retryable, is rolled back and re-raised as
    PersistenceError. Domain errors raised by func pass through after a
    rollback.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise PersistenceError(str(exc)) from exc
            time.sleep(backoff_base * (2 ** attempt))
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise PersistenceError(str(exc)) from exc
        except Exception:
            db.session.rollback()
            raise
    raise PersistenceError("operation did not run")

