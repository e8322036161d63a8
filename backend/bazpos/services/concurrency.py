# Overview: Service-layer transaction helpers; optimistic retry and all-or-nothing commits.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..validation import TransactionConflictError


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    The version_id check on StoredDocument still catches lost updates there.
    """
    return query.with_for_update()


def _retry_policy(attempts: int | None, backoff_base: float | None) -> tuple[int, float]:
    if attempts is None:
        attempts = current_app.config.get("TX_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("TX_RETRY_BACKOFF_SECONDS", 0.1)
    return max(1, int(attempts)), float(backoff_base)


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts), plus IntegrityError: two writers inserting
    the same document key is a write conflict too. Once attempts are exhausted the
    failure surfaces as TransactionConflictError.

    A racing insert is gone after one fresh re-read. An IntegrityError that
    repeats on the retry is a real constraint violation and is re-raised as is.
    """
    attempts, backoff_base = _retry_policy(attempts, backoff_base)
    integrity_failed = False
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError, IntegrityError) as exc:
            db.session.rollback()
            if isinstance(exc, IntegrityError):
                if integrity_failed:
                    raise
                integrity_failed = True
            if attempt >= attempts - 1:
                raise TransactionConflictError(
                    f"Concurrent update conflict after {attempts} attempts; please retry"
                ) from exc
            time.sleep(backoff_base * (2 ** attempt))


def run_transaction(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Run func() as one all-or-nothing unit of work.

    func re-reads whatever it needs from the session on every attempt, so a
    retry always sees the authoritative state. Any exception rolls the whole
    session back; nothing written by func becomes visible unless commit
    succeeds.
    """
    def _op():
        try:
            result = func()
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return result

    return run_with_retry(_op, attempts=attempts, backoff_base=backoff_base)
