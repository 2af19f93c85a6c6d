# Overview: Service-layer helpers for row locking and retry of contended writes.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..validation import ConcurrencyConflict


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; there the Product.version_id
    counter (StaleDataError) and the database write lock serialize writers.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks), StaleDataError
    (optimistic locking conflicts) and ConcurrencyConflict (lost insert race).
    Business errors propagate immediately. When attempts run out the caller
    gets ConcurrencyConflict.
    """
    if attempts is None:
        attempts = current_app.config.get("DB_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("DB_RETRY_BACKOFF_SECONDS", 0.1)

    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError, ConcurrencyConflict) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                current_app.logger.warning(
                    "Concurrent write still conflicting after %d attempts: %s", attempts, exc
                )
                if isinstance(exc, ConcurrencyConflict):
                    raise
                raise ConcurrencyConflict(
                    "concurrent update conflict; please retry"
                ) from exc
            current_app.logger.info(
                "Retrying contended write (attempt %d/%d): %s",
                attempt + 1,
                attempts,
                type(exc).__name__,
            )
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            # Nothing from a failed business operation may stay pending in the session
            db.session.rollback()
            raise

