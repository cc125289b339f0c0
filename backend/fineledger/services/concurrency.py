# Overview: Service-layer operations for concurrency; transaction boundaries and bounded retry.

from __future__ import annotations

import random
import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConcurrentModificationError
from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    The version_id check still catches lost updates on SQLite.
    """
    return query.with_for_update()


def retry_settings() -> tuple[int, float]:
    return (
        int(current_app.config.get("LEDGER_RETRY_ATTEMPTS", 3)),
        float(current_app.config.get("LEDGER_RETRY_BACKOFF", 0.05)),
    )


def backoff(attempt: int, backoff_base: float) -> None:
    # Jitter keeps racing writers from retrying in lockstep.
    time.sleep(backoff_base * (2 ** attempt) * (1 + random.random()))


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute one transactional DB operation with retry on concurrency failures.

    - StaleDataError (optimistic lock lost): retried, then surfaced as
      ConcurrentModificationError.
    - OperationalError (deadlocks, busy database): retried, then re-raised.
    - Anything else: rolled back and re-raised immediately.

    The session is always rolled back before an exception leaves this
    function, so no partial write survives a failed operation.
    """
    default_attempts, default_backoff = retry_settings()
    attempts = attempts or default_attempts
    backoff_base = default_backoff if backoff_base is None else backoff_base

    for attempt in range(attempts):
        try:
            return func()
        except StaleDataError as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                current_app.logger.warning("Optimistic lock lost %d times, giving up", attempts)
                raise ConcurrentModificationError(
                    "Record was modified by another request; retry the operation"
                ) from exc
            current_app.logger.warning("Stale version (attempt %d/%d), retrying", attempt + 1, attempts)
        except OperationalError:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            current_app.logger.warning("Database busy (attempt %d/%d), retrying", attempt + 1, attempts)
        except Exception:
            db.session.rollback()
            raise
        backoff(attempt, backoff_base)
