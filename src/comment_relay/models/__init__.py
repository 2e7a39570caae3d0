# src/comment_relay/models/__init__.py
"""SQLAlchemy models for the comment relay."""

from .comment import (
    Comment,
    CommentState,
    MalformedCommentError,
    Pending,
    Published,
    comment_state,
)

__all__ = [
    "Comment",
    "CommentState",
    "MalformedCommentError",
    "Pending",
    "Published",
    "comment_state",
]
