# Overview: Transaction helpers: row locking, retry on lock/stale-data failures, atomic units of work.

from __future__ import annotations

import logging
import time

from flask import current_app, has_app_context
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..validation import ConflictError, PersistenceError

logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def _default_attempts() -> int:
    if has_app_context():
        return int(current_app.config.get("RETRY_ATTEMPTS", 3))
    return 3


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). After the last attempt the failure is
    reported as PersistenceError; the session has been rolled back, so
    nothing from the failed attempts is visible.
    """
    if attempts is None:
        attempts = _default_attempts()
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                logger.warning("Giving up after %d attempts: %s", attempts, exc)
                raise PersistenceError(
                    "Storage is busy; the operation was not applied",
                    details={"attempts": attempts},
                ) from exc
            time.sleep(backoff_base * (2 ** attempt))


def atomic(func):
    """
    Run func() as one unit of work: commit on success, roll back on any error.

    Domain errors (ValidationError, NotFoundError, ...) propagate unchanged.
    Other SQLAlchemy errors are converted to PersistenceError. Retryable
    failures are handled by run_with_retry around this call.
    """
    try:
        result = func()
        db.session.commit()
        return result
    except (OperationalError, StaleDataError):
        db.session.rollback()
        raise
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError("The change conflicts with existing data (duplicate or dangling reference)") from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise PersistenceError("Storage failure; the operation was not applied") from exc
    except Exception:
        db.session.rollback()
        raise


def run_atomic(func, *, attempts: int | None = None):
    """atomic() with retry: the common entry point for multi-step writes."""
    return run_with_retry(lambda: atomic(func), attempts=attempts)
