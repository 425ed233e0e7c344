# Overview: Row locking and retry helpers used when several tills sell the same stock.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    """
    Lock the selected rows until the transaction ends.

    SQLite has no SELECT ... FOR UPDATE; there a conflicting writer is caught
    by Product.version_id at flush time and surfaces as StaleDataError.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run a unit of work, re-running it from scratch after a lock conflict.

    `func` must rebuild all of its pending state on each call because the
    session is rolled back between attempts. The last conflict is re-raised
    once `attempts` runs have failed.
    """
    attempt = 1
    while True:
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            if attempt >= attempts:
                raise
            current_app.logger.warning(
                "Stock update conflict, retrying (attempt %d/%d): %s", attempt, attempts, exc
            )
            time.sleep(backoff_base * (2 ** (attempt - 1)))
            attempt += 1
