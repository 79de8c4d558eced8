# Overview: Service-layer helpers for locking, retries and atomic units of work.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import LedgerError, ServerError
from ..extensions import db

# serialization_failure, deadlock_detected, lock_not_available
_CONTENTION_SQLSTATES = frozenset({"40001", "40P01", "55P03"})
_SQLITE_BUSY_MESSAGES = ("database is locked", "database is busy", "database table is locked")


class CommitFailedError(SQLAlchemyError):
    """
    COMMIT itself failed.

    Whether the transaction reached the database is unknown, so this is
    never retried. atomic() surfaces it as ServerError.
    """


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_write_lock() covers it.
    """
    return query.with_for_update()


def begin_write_lock() -> None:
    """
    Take the database write lock before the first read on SQLite.

    BEGIN IMMEDIATE makes concurrent writers queue up behind this transaction
    so two sales can never read the same stale remaining quantity. Other
    dialects rely on lock_for_update() plus the version_id columns.
    """
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))


def is_lock_contention(exc: BaseException) -> bool:
    """
    True only for failures caused by a concurrent writer.

    Optimistic-lock conflicts, SQLite busy/locked errors and the PostgreSQL
    serialization, deadlock and lock-timeout SQLSTATEs qualify. Everything
    else (I/O errors, lost connections, constraint violations) does not.
    """
    if isinstance(exc, StaleDataError):
        return True
    if isinstance(exc, CommitFailedError) or not isinstance(exc, DBAPIError):
        return False

    orig = exc.orig
    sqlstate = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if sqlstate in _CONTENTION_SQLSTATES:
        return True

    message = str(orig).lower()
    return any(marker in message for marker in _SQLITE_BUSY_MESSAGES)


def commit_once() -> None:
    """
    Flush, then commit the current unit of work.

    Flush errors (stale versions, lock contention) happen before anything is
    durable and stay retryable. An error from COMMIT is re-raised as
    CommitFailedError so run_with_retry never re-runs the unit.
    """
    db.session.flush()
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        raise CommitFailedError(f"Commit failed: {exc}") from exc


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on lock contention.

    Only failures that is_lock_contention() accepts are retried; any other
    storage error is re-raised at once. The session is rolled back before
    every retry, so func always starts from a fresh read.
    """
    for attempt in range(attempts):
        try:
            return func()
        except SQLAlchemyError as exc:
            db.session.rollback()
            if not is_lock_contention(exc) or attempt >= attempts - 1:
                raise
            current_app.logger.warning(
                "Lock contention (attempt %s/%s): %s", attempt + 1, attempts, exc,
            )
            time.sleep(backoff_base * (2 ** attempt))


def atomic(func, *, description: str, retry_conflicts: bool = False):
    """
    Run func as one all-or-nothing unit of work.

    - LedgerError from func: rolled back and re-raised unchanged.
    - Lock contention before commit: retried (when retry_conflicts) from the
      first read, at most SALE_LOCK_ATTEMPTS times.
    - Any other storage failure, a failed COMMIT, or contention that outlasts
      the retries: rolled back, logged with full detail and surfaced as
      ServerError.

    func is responsible for committing, through commit_once() when it may be
    retried. Nothing is retried after a commit was attempted.
    """
    config = current_app.config
    attempts = config.get("SALE_LOCK_ATTEMPTS", 3) if retry_conflicts else 1
    backoff = config.get("SALE_LOCK_BACKOFF_SECONDS", 0.1)

    try:
        return run_with_retry(func, attempts=attempts, backoff_base=backoff)
    except LedgerError:
        db.session.rollback()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.error("%s failed: %s", description, exc, exc_info=True)
        raise ServerError() from exc
