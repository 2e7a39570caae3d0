"""Finalization and retrieval of comments.

The client's final submission carries only the correlation token. A pending
create row becomes a published comment under a deterministic id; a grant row
(left behind by an edit/delete login) authorizes a change to the published
comment it names, and the change itself is keyed by that comment's id and
owner, never by the token.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from comment_relay.core.settings import settings
from comment_relay.models import Comment, Published, comment_state
from comment_relay.services import identifiers
from comment_relay.services.errors import (
    InvalidRequest,
    NotFound,
    StoreFailure,
    Unauthorized,
)
from comment_relay.services.ownership import (
    can_mutate,
    delete_owned_comment,
    update_owned_comment,
)
from comment_relay.services.pending_store import PendingActionStore, run_in_transaction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PublishedComment:
    """Outcome of a successful submission."""

    comment_id: str
    post_id: str
    owner_id: str
    owner_name: str
    created: bool


@dataclass(frozen=True)
class _PendingSnapshot:
    row_id: str
    owner_id: str | None
    owner_name: str
    owner_profile_url: str
    owner_avatar_url: str
    post_id: str | None
    target_comment_id: str | None


def _snapshot(db: Session, token: str) -> _PendingSnapshot:
    store = PendingActionStore(db)

    def work() -> _PendingSnapshot:
        row, state = store.get_pending(token, store.current_time())
        return _PendingSnapshot(
            row_id=row.id,
            owner_id=row.owner_id,
            owner_name=row.owner_name,
            owner_profile_url=row.owner_profile_url,
            owner_avatar_url=row.owner_avatar_url,
            post_id=row.target_post_id,
            target_comment_id=state.target_comment_id,
        )

    return run_in_transaction(db, work)


def _consume_grant(db: Session, snapshot: _PendingSnapshot, token: str, now: datetime) -> None:
    consumed = db.execute(
        delete(Comment)
        .where(
            Comment.id == snapshot.row_id,
            Comment.correlation_token == token,
            Comment.deadline >= now,
        )
        .execution_options(synchronize_session=False)
    ).rowcount
    if consumed != 1:
        raise NotFound("Grant was already used or has expired")


async def finalize_submission(db: Session, token: str, body: str) -> PublishedComment:
    """Complete the action identified by ``token`` with the submitted text.

    Raises:
        InvalidRequest: The text is empty.
        NotFound: The token is unknown, unbound, or already used.
        Expired: The pending action's deadline has passed.
        Unauthorized: The bound identity does not own the comment being edited.
    """
    if not body.strip():
        raise InvalidRequest("Comment text is empty")

    snapshot = _snapshot(db, token)
    if snapshot.target_comment_id is not None:
        return _finalize_edit(db, snapshot, snapshot.target_comment_id, token, body)
    return await _finalize_create(db, snapshot, token, body)


def _finalize_edit(
    db: Session,
    snapshot: _PendingSnapshot,
    comment_id: str,
    token: str,
    body: str,
) -> PublishedComment:
    owner_id = snapshot.owner_id
    if owner_id is None:
        raise NotFound("Grant has no bound identity")
    store = PendingActionStore(db)

    def work() -> PublishedComment:
        now = store.current_time()
        _consume_grant(db, snapshot, token, now)
        if not can_mutate(db, comment_id, owner_id):
            raise Unauthorized(f"Identity {owner_id} may not edit comment {comment_id}")
        changed = update_owned_comment(
            db,
            comment_id,
            owner_id,
            body=body,
            owner_name=snapshot.owner_name,
            owner_profile_url=snapshot.owner_profile_url,
            owner_avatar_url=snapshot.owner_avatar_url,
            now=now,
        )
        if not changed:
            raise Unauthorized(f"Comment {comment_id} changed owner during edit")
        post_id = db.scalar(select(Comment.target_post_id).where(Comment.id == comment_id))
        return PublishedComment(
            comment_id=comment_id,
            post_id=post_id or "",
            owner_id=owner_id,
            owner_name=snapshot.owner_name,
            created=False,
        )

    result = run_in_transaction(db, work)
    logger.info("Edited comment %s", comment_id)
    return result


async def _finalize_create(
    db: Session, snapshot: _PendingSnapshot, token: str, body: str
) -> PublishedComment:
    owner_id = snapshot.owner_id
    post_id = snapshot.post_id
    if owner_id is None or post_id is None:
        raise NotFound("Commenter has not authenticated for this comment")

    store = PendingActionStore(db)
    attempts = max(1, settings.publish_id_attempts)
    previous: datetime | None = None

    for attempt in range(1, attempts + 1):
        now = store.current_time()
        stamp = now
        if previous is not None and stamp <= previous:
            stamp = previous + timedelta(seconds=1)
        previous = stamp
        publish_id = identifiers.derive_publish_id(post_id, owner_id, stamp)

        def work(publish_id: str = publish_id, now: datetime = now) -> bool:
            if db.scalar(select(Comment.id).where(Comment.id == publish_id)) is not None:
                return False
            published = db.execute(
                update(Comment)
                .where(
                    Comment.id == snapshot.row_id,
                    Comment.correlation_token == token,
                    Comment.deadline >= now,
                    Comment.owner_id == owner_id,
                    Comment.target_post_id == post_id,
                )
                .values(
                    id=publish_id,
                    body=body,
                    deadline=None,
                    correlation_token=None,
                    created_at=now,
                    edited_at=now,
                )
                .execution_options(synchronize_session=False)
            ).rowcount
            if published != 1:
                # Re-raises NotFound/Expired for a row that changed underneath us.
                store.get_pending(token, now)
                raise NotFound("Pending comment changed before it could be published")
            return True

        try:
            done = run_in_transaction(db, work)
        except StoreFailure as exc:
            if not isinstance(exc.__cause__, IntegrityError):
                raise
            done = False

        if done:
            logger.info("Published comment %s on post %s", publish_id, post_id)
            return PublishedComment(
                comment_id=publish_id,
                post_id=post_id,
                owner_id=owner_id,
                owner_name=snapshot.owner_name,
                created=True,
            )

        logger.warning(
            "Comment id %s already taken (attempt %d/%d)", publish_id, attempt, attempts
        )
        if attempt < attempts:
            await asyncio.sleep(settings.publish_id_retry_delay_seconds * attempt)

    raise StoreFailure(f"Could not allocate a comment id after {attempts} attempts")


def finalize_delete(db: Session, token: str) -> str:
    """Delete the comment named by the grant holding ``token``.

    Returns:
        The deleted comment's id.

    Raises:
        NotFound: No grant holds the token.
        Unauthorized: The grant's identity does not own the comment.
    """
    snapshot = _snapshot(db, token)
    comment_id = snapshot.target_comment_id
    owner_id = snapshot.owner_id
    if comment_id is None or owner_id is None:
        raise NotFound("Token does not authorize a delete")
    store = PendingActionStore(db)

    def work() -> str:
        now = store.current_time()
        _consume_grant(db, snapshot, token, now)
        if not can_mutate(db, comment_id, owner_id):
            raise Unauthorized(f"Identity {owner_id} may not delete comment {comment_id}")
        if not delete_owned_comment(db, comment_id, owner_id):
            raise Unauthorized(f"Comment {comment_id} changed owner during delete")
        # Other grants for the deleted comment can never succeed.
        db.execute(
            delete(Comment)
            .where(Comment.target_comment_id == comment_id)
            .execution_options(synchronize_session=False)
        )
        return comment_id

    result = run_in_transaction(db, work)
    logger.info("Deleted comment %s", comment_id)
    return result


def list_comments(db: Session, post_id: str) -> list[Comment]:
    """Return the published comments of a blog post, oldest first."""
    rows = db.scalars(
        select(Comment)
        .where(
            Comment.target_post_id == post_id,
            Comment.deadline.is_(None),
            Comment.body.is_not(None),
        )
        .order_by(Comment.created_at, Comment.id)
    ).all()
    return [row for row in rows if isinstance(comment_state(row), Published)]


def get_comment_text(db: Session, comment_id: str) -> str:
    """Return the body of a published comment.

    Raises:
        NotFound: No published comment has that id.
    """
    row = db.scalar(
        select(Comment)
        .where(Comment.id == comment_id)
        .execution_options(populate_existing=True)
    )
    if row is None:
        raise NotFound(f"Comment {comment_id} not found")
    state = comment_state(row)
    if not isinstance(state, Published):
        raise NotFound(f"Comment {comment_id} is not published")
    return state.body
