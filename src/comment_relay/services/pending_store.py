"""Store for in-flight comment actions.

Every in-flight action is a ``comment`` row carrying a correlation token. A new
comment starts as a bare pending row; an edit or delete starts by locking an
already published row with a token. Rows left unfinished past their deadline
are removed by :mod:`comment_relay.services.reaper` the next time this store
issues or validates a token.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import TypeVar

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from comment_relay.models import Comment, Pending, Published, comment_state
from comment_relay.services import identifiers, reaper
from comment_relay.services.errors import Expired, NotFound, StoreFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")


def run_in_transaction(db: Session, work: Callable[[], T]) -> T:
    """Run ``work`` and commit, rolling back and wrapping database errors."""
    try:
        result = work()
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Comment store operation failed: %s", exc)
        raise StoreFailure(str(exc)) from exc
    except Exception:
        db.rollback()
        raise
    return result


class PendingActionStore:
    """Issues and validates correlation tokens against the ``comment`` table."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def current_time(self) -> datetime:
        """Return the database clock."""
        return reaper.database_now(self.db)

    def _id_taken(self, candidate: str) -> bool:
        return (
            self.db.scalar(
                select(Comment.id).where(
                    (Comment.id == candidate) | (Comment.correlation_token == candidate)
                )
            )
            is not None
        )

    def unique_id(self) -> str:
        """Return a random id used neither as a row id nor as a live token."""
        candidate = identifiers.new_random_id()
        while self._id_taken(candidate):
            candidate = identifiers.new_random_id()
        return candidate

    def begin_pending(self, existing_id: str | None = None) -> str:
        """Start an action and return its correlation token.

        Args:
            existing_id: Published comment to lock for an edit or delete. When
                omitted a fresh pending row is inserted for a new comment.

        Raises:
            NotFound: ``existing_id`` is not a published comment, or another
                action already holds it.
        """

        def work() -> str:
            now = self.current_time()
            reaper.reap_expired(self.db, now)
            token = self.unique_id()

            if existing_id is None:
                self.db.add(
                    Comment(
                        id=self.unique_id(),
                        correlation_token=token,
                        deadline=now + reaper.pending_window(),
                    )
                )
                self.db.flush()
                return token

            locked = self.db.execute(
                update(Comment)
                .where(
                    Comment.id == existing_id,
                    Comment.deadline.is_(None),
                    Comment.correlation_token.is_(None),
                )
                .values(correlation_token=token, token_issued_at=now)
                .execution_options(synchronize_session=False)
            ).rowcount
            if locked != 1:
                raise NotFound(f"Comment {existing_id} is missing or already being changed")
            return token

        token = run_in_transaction(self.db, work)
        logger.debug("Issued correlation token for %s", existing_id or "new comment")
        return token

    def check_pending(self, token: str, expect_published: bool) -> bool:
        """Return whether ``token`` is live on a row of the expected kind.

        Args:
            token: Correlation token from the OAuth ``state`` parameter.
            expect_published: True for edit/delete locks on a published row,
                False for a pending create or grant row.
        """

        def work() -> bool:
            now = self.current_time()
            reaper.reap_expired(self.db, now)
            row = self.db.scalar(
                select(Comment)
                .where(Comment.correlation_token == token)
                .execution_options(populate_existing=True)
            )
            if row is None:
                return False
            state = comment_state(row)
            if expect_published:
                return isinstance(state, Published)
            return isinstance(state, Pending) and state.deadline >= now

        return run_in_transaction(self.db, work)

    def reap_expired(self) -> int:
        """Delete expired pending rows and return how many were removed."""
        return run_in_transaction(self.db, lambda: reaper.reap_expired(self.db))

    def get_pending(self, token: str, now: datetime) -> tuple[Comment, Pending]:
        """Return the pending row holding ``token`` with its state.

        Raises:
            NotFound: No row holds the token, or it is not a pending row.
            Expired: The row's deadline has passed.
        """
        row = self.db.scalar(
            select(Comment)
            .where(Comment.correlation_token == token)
            .execution_options(populate_existing=True)
        )
        if row is None:
            raise NotFound("No pending action for token")
        state = comment_state(row)
        if not isinstance(state, Pending):
            raise NotFound("Token is not attached to a pending action")
        if state.deadline < now:
            raise Expired(f"Pending action {row.id} expired at {state.deadline}")
        return row, state
