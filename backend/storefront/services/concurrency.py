# Overview: Service-layer helpers for row locking, write transactions and conflict retries.

from __future__ import annotations

import time

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    begin_write_transaction() covers SQLite by taking the write lock up front.
    """
    return query.with_for_update()


def begin_write_transaction() -> None:
    """
    Start the write transaction for a read-check-write sequence.

    On SQLite the database write lock is taken immediately so two writers
    cannot both read the same stock level and then both decrement it.
    """
    if db.engine.dialect.name == "sqlite":
        # End the implicit read transaction so BEGIN IMMEDIATE is the first statement
        db.session.commit()
        db.session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Domain errors propagate immediately.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc
