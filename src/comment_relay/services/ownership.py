"""Ownership checks for edits and deletes of published comments.

:func:`can_mutate` is advisory. The statements that actually change a comment
repeat the same ``id`` + ``owner_id`` predicate, so ownership that changes
between the check and the write cannot touch another identity's row.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import ColumnElement, delete, select, update
from sqlalchemy.orm import Session

from comment_relay.models import Comment


def _owned_published(comment_id: str, owner_id: str) -> tuple[ColumnElement[bool], ...]:
    return (
        Comment.id == comment_id,
        Comment.owner_id == owner_id,
        Comment.deadline.is_(None),
        Comment.body.is_not(None),
        Comment.target_post_id.is_not(None),
    )


def can_mutate(db: Session, comment_id: str, identity_id: str) -> bool:
    """Return True iff ``comment_id`` is a published comment owned by ``identity_id``."""
    found = db.scalar(select(Comment.id).where(*_owned_published(comment_id, identity_id)))
    return found is not None


def update_owned_comment(
    db: Session,
    comment_id: str,
    owner_id: str,
    *,
    body: str,
    owner_name: str,
    owner_profile_url: str,
    owner_avatar_url: str,
    now: datetime,
) -> bool:
    """Replace the body of an owned comment; return whether a row changed."""
    changed = db.execute(
        update(Comment)
        .where(*_owned_published(comment_id, owner_id))
        .values(
            body=body,
            owner_name=owner_name,
            owner_profile_url=owner_profile_url,
            owner_avatar_url=owner_avatar_url,
            edited_at=now,
        )
        .execution_options(synchronize_session=False)
    ).rowcount
    return changed == 1


def delete_owned_comment(db: Session, comment_id: str, owner_id: str) -> bool:
    """Delete an owned comment; return whether a row was removed."""
    removed = db.execute(
        delete(Comment)
        .where(*_owned_published(comment_id, owner_id))
        .execution_options(synchronize_session=False)
    ).rowcount
    return removed == 1
