"""Lazy reclamation of abandoned pending actions."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from comment_relay.core.settings import settings
from comment_relay.models import Comment

logger = logging.getLogger(__name__)


def pending_window() -> timedelta:
    """Return how long a pending action may stay unfinished."""
    return timedelta(minutes=settings.pending_window_minutes)


def database_now(db: Session) -> datetime:
    """Return the database's current timestamp.

    Deadlines are computed and compared against this clock, never the host's.
    """
    now = db.scalar(select(func.now()))
    if now is None:  # pragma: no cover - every backend answers CURRENT_TIMESTAMP
        raise RuntimeError("Database did not return a current timestamp")
    return now


def reap_expired(db: Session, now: datetime | None = None) -> int:
    """Delete pending rows past their deadline and release stale edit locks.

    Runs inside the caller's transaction; the caller commits.

    Returns:
        Number of pending rows deleted.
    """
    if now is None:
        now = database_now(db)

    deleted = db.execute(
        delete(Comment)
        .where(Comment.deadline.is_not(None), Comment.deadline < now)
        .execution_options(synchronize_session=False)
    ).rowcount

    released = db.execute(
        update(Comment)
        .where(
            Comment.deadline.is_(None),
            Comment.correlation_token.is_not(None),
            Comment.token_issued_at < now - pending_window(),
        )
        .values(correlation_token=None, token_issued_at=None)
        .execution_options(synchronize_session=False)
    ).rowcount

    if deleted or released:
        logger.info(
            "Reaped %d expired pending actions, released %d stale comment locks",
            deleted,
            released,
        )
    return deleted or 0
