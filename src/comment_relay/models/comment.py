# src/comment_relay/models/comment.py
"""SQLAlchemy model for pending actions and published comments."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import CHAR, DateTime, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from comment_relay.db.session import Base

UUID_STRING_LENGTH = 36


class Comment(Base):
    """Single row shape for both in-flight actions and finished comments.

    A row with a ``deadline`` is unfinished work the reaper may reclaim. A row
    without one is a published comment. Use :func:`comment_state` rather than
    reading the nullable columns directly.
    """

    __tablename__ = "comment"

    id: Mapped[str] = mapped_column(CHAR(UUID_STRING_LENGTH), primary_key=True)
    # Present while a browser round trip owns this row.
    correlation_token: Mapped[str | None] = mapped_column(
        CHAR(UUID_STRING_LENGTH),
        nullable=True,
        unique=True,
    )
    # When an edit/delete lock was placed on a published row.
    token_issued_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    owner_id: Mapped[str | None] = mapped_column(Text, nullable=True, index=True)
    owner_name: Mapped[str] = mapped_column(Text, nullable=False, default="")
    owner_profile_url: Mapped[str] = mapped_column(Text, nullable=False, default="")
    owner_avatar_url: Mapped[str] = mapped_column(Text, nullable=False, default="")

    target_post_id: Mapped[str | None] = mapped_column(Text, nullable=True, index=True)
    # Grant rows only: the published comment an edit or delete addresses.
    target_comment_id: Mapped[str | None] = mapped_column(
        CHAR(UUID_STRING_LENGTH),
        nullable=True,
    )
    body: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    edited_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    deadline: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        index=True,
    )


@dataclass(frozen=True)
class Pending:
    """Unfinished create, or an edit/delete grant when ``target_comment_id`` is set."""

    deadline: datetime
    target_comment_id: str | None = None

    @property
    def is_grant(self) -> bool:
        return self.target_comment_id is not None


@dataclass(frozen=True)
class Published:
    """Finished comment visible on its blog post."""

    body: str
    owner_id: str
    post_id: str


CommentState = Pending | Published


class MalformedCommentError(ValueError):
    """Raised when a row matches neither the pending nor the published shape."""


def comment_state(row: Comment) -> CommentState:
    """Classify a row as pending or published.

    This is the only place that turns column nullability into lifecycle state.
    """
    if row.deadline is not None:
        return Pending(deadline=row.deadline, target_comment_id=row.target_comment_id)
    if row.body is None or row.target_post_id is None or row.owner_id is None:
        raise MalformedCommentError(f"Comment {row.id} is neither pending nor published")
    return Published(body=row.body, owner_id=row.owner_id, post_id=row.target_post_id)
