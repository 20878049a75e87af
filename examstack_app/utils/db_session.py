"""Utility helpers for working with the SQLAlchemy session.

These helpers focus on improving the resilience of commits when the
application is backed by SQLite.  SQLite places a write lock on the
database for the duration of a transaction which can surface as a
``database is locked`` error when the autosave writer and a request thread
touch the same attempt at roughly the same time.  :func:`safe_commit` runs a
unit of work and commits it, re-running the whole unit with exponential
backoff so short lived locks are retried transparently.
"""

from __future__ import annotations

import time
from typing import Callable, Optional, TypeVar

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.session import Session

LOCKED_MESSAGES = {"database is locked", "database is busy"}

T = TypeVar("T")


def _is_lock_error(error: OperationalError) -> bool:
    """Return ``True`` if the OperationalError was caused by a lock."""

    message = str(error).lower()
    return any(token in message for token in LOCKED_MESSAGES)


def safe_commit(
    session: Session,
    work: Optional[Callable[[Session], T]] = None,
    retries: int = 5,
    initial_delay: float = 0.1,
) -> Optional[T]:
    """Run ``work`` against the session and commit, retrying when SQLite is locked.

    A rollback discards everything staged in the transaction, so only a
    ``work`` callable can be retried: without one the first lock error is
    re-raised after the rollback.

    Args:
        session: The SQLAlchemy session to commit.
        work: Optional callable staging the changes; its return value is
            returned after a successful commit.
        retries: Maximum number of attempts before the error is re-raised.
        initial_delay: The delay (in seconds) before the first retry.  The
            delay is doubled after every attempt.

    Raises:
        OperationalError: Re-raised if the session cannot be committed after
            the configured number of retries or if the error is unrelated to
            SQLite locking.
    """

    delay = initial_delay
    for attempt in range(retries):
        try:
            result = work(session) if work is not None else None
            session.commit()
            return result
        except OperationalError as exc:  # pragma: no cover - retriable path
            session.rollback()
            if work is None or attempt == retries - 1 or not _is_lock_error(exc):
                raise

            time.sleep(delay)
            delay *= 2
    return None
