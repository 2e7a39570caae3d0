"""Attach a verified external identity to an in-flight comment action."""

from __future__ import annotations

import logging

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from comment_relay.models import Comment, Published, comment_state
from comment_relay.services import reaper
from comment_relay.services.errors import (
    AlreadyBound,
    Expired,
    InvalidRequest,
    NotFound,
    TokenMismatch,
    Unauthorized,
)
from comment_relay.services.oauth import Identity
from comment_relay.services.pending_store import PendingActionStore, run_in_transaction

logger = logging.getLogger(__name__)


class IdentityBinder:
    """Binds identities to pending rows, or authorizes them against published ones.

    Every mutation here is a single conditional statement, so two callbacks
    racing on the same token cannot both succeed. When a statement matches
    nothing, the row is re-read only to pick the right error.
    """

    def __init__(self, db: Session) -> None:
        self.db = db
        self.store = PendingActionStore(db)

    def bind_identity(
        self,
        token: str,
        *,
        post_id: str | None = None,
        comment_id: str | None = None,
        identity: Identity,
    ) -> None:
        """Bind ``identity`` to the action that issued ``token``.

        Exactly one of ``post_id`` (new comment) or ``comment_id`` (edit or
        delete of a published comment) must be given.

        Raises:
            InvalidRequest: Neither or both targets were given.
            NotFound: No row holds the token or the comment does not exist.
            Expired: The action's deadline has passed.
            TokenMismatch: The token belongs to a different row or post.
            AlreadyBound: Another identity already claimed the pending row.
            Unauthorized: The identity does not own the published comment.
        """
        if post_id is not None and comment_id is None:
            run_in_transaction(self.db, lambda: self._bind_create(token, post_id, identity))
            logger.debug("Bound identity %s to new comment on %s", identity.id, post_id)
        elif comment_id is not None and post_id is None:
            run_in_transaction(self.db, lambda: self._bind_existing(token, comment_id, identity))
            logger.debug("Authorized identity %s for comment %s", identity.id, comment_id)
        else:
            raise InvalidRequest("Exactly one of post_id or comment_id is required")

    def _bind_create(self, token: str, post_id: str, identity: Identity) -> None:
        now = self.store.current_time()
        bound = self.db.execute(
            update(Comment)
            .where(
                Comment.correlation_token == token,
                Comment.deadline.is_not(None),
                Comment.deadline >= now,
                Comment.target_comment_id.is_(None),
                (Comment.owner_id.is_(None)) | (Comment.owner_id == identity.id),
                (Comment.target_post_id.is_(None)) | (Comment.target_post_id == post_id),
            )
            .values(
                owner_id=identity.id,
                owner_name=identity.name,
                owner_profile_url=identity.profile_url,
                owner_avatar_url=identity.avatar_url,
                target_post_id=post_id,
            )
            .execution_options(synchronize_session=False)
        ).rowcount
        if bound == 1:
            return

        row = self.db.scalar(
            select(Comment)
            .where(Comment.correlation_token == token)
            .execution_options(populate_existing=True)
        )
        if row is None:
            raise NotFound("No pending action for token")
        if row.deadline is None or row.target_comment_id is not None:
            raise TokenMismatch("Token belongs to an edit or delete, not a new comment")
        if row.deadline < now:
            raise Expired(f"Pending action {row.id} expired at {row.deadline}")
        if row.owner_id is not None and row.owner_id != identity.id:
            raise AlreadyBound(f"Pending action {row.id} is bound to another identity")
        raise TokenMismatch(f"Pending action {row.id} targets a different post")

    def _bind_existing(self, token: str, comment_id: str, identity: Identity) -> None:
        now = self.store.current_time()
        released = self.db.execute(
            update(Comment)
            .where(
                Comment.id == comment_id,
                Comment.deadline.is_(None),
                Comment.correlation_token == token,
                Comment.token_issued_at >= now - reaper.pending_window(),
                Comment.owner_id == identity.id,
            )
            .values(
                owner_name=identity.name,
                owner_profile_url=identity.profile_url,
                owner_avatar_url=identity.avatar_url,
                correlation_token=None,
                token_issued_at=None,
            )
            .execution_options(synchronize_session=False)
        ).rowcount

        if released != 1:
            holder = self.db.scalar(select(Comment.id).where(Comment.correlation_token == token))
            if holder is None:
                raise NotFound("No action holds this token")
            row = self.db.scalar(
                select(Comment)
                .where(Comment.id == comment_id)
                .execution_options(populate_existing=True)
            )
            if row is None or not isinstance(comment_state(row), Published):
                raise NotFound(f"Comment {comment_id} not found")
            if row.correlation_token != token:
                raise TokenMismatch(f"Token does not hold comment {comment_id}")
            if row.owner_id != identity.id:
                raise Unauthorized(f"Identity {identity.id} does not own comment {comment_id}")
            raise Expired(f"Lock on comment {comment_id} expired")

        # The published row is released; the grant row carries the token until
        # the client submits the edit or the delete is carried out.
        self.db.add(
            Comment(
                id=self.store.unique_id(),
                correlation_token=token,
                owner_id=identity.id,
                owner_name=identity.name,
                owner_profile_url=identity.profile_url,
                owner_avatar_url=identity.avatar_url,
                target_comment_id=comment_id,
                deadline=now + reaper.pending_window(),
            )
        )
        self.db.flush()
