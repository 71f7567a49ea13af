# Overview: Transaction, row-lock and retry helpers shared by every stock-moving service.

from __future__ import annotations

import logging
import time

from flask import current_app, has_app_context
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from .errors import TransactionConflictError

logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_write() covers it there.
    """
    return query.with_for_update()


def begin_write(session) -> None:
    """
    Start the write transaction explicitly.

    SQLite has no row locks, so take the database write lock up front
    (BEGIN IMMEDIATE); concurrent writers then queue on the busy timeout
    instead of both reading a stale balance. Other engines rely on the
    FOR UPDATE row locks taken by lock_for_update().
    """
    bind = session.get_bind()
    if bind.dialect.name == "sqlite":
        session.execute(text("BEGIN IMMEDIATE"))


def _retry_settings(attempts: int | None, backoff_base: float | None) -> tuple[int, float]:
    if has_app_context():
        if attempts is None:
            attempts = current_app.config.get("LOCK_RETRY_ATTEMPTS", 3)
        if backoff_base is None:
            backoff_base = current_app.config.get("LOCK_RETRY_BACKOFF", 0.1)
    return max(1, attempts or 3), 0.1 if backoff_base is None else backoff_base


def run_with_retry(func, *, session=None, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a unit of work with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, lock timeouts, "database is
    locked") and StaleDataError (optimistic version conflicts). The whole
    unit is re-run from scratch after a rollback; a failed sub-step is
    never resumed.

    Any other exception rolls the session back and propagates unchanged,
    so a failed unit of work leaves nothing behind.
    """
    session = session or db.session
    attempts, backoff_base = _retry_settings(attempts, backoff_base)

    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            session.rollback()
            if attempt >= attempts - 1:
                logger.warning("Transaction conflict after %d attempts: %s", attempts, exc)
                raise TransactionConflictError(
                    "Concurrent update conflict; retry the request",
                    details={"attempts": attempts},
                ) from exc
            logger.warning("Transaction conflict (attempt %d/%d), retrying: %s", attempt + 1, attempts, exc)
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            session.rollback()
            raise


def commit_with_retry(*, session=None, attempts: int | None = None, backoff_base: float | None = None):
    """Commit current session with retry handling."""
    session = session or db.session

    def _op():
        session.commit()
    return run_with_retry(_op, session=session, attempts=attempts, backoff_base=backoff_base)
