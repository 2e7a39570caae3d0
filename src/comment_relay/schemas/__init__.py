"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .comment import (
    CommentResponse,
    CommentTextResponse,
    SubmitCommentRequest,
    SubmitCommentResponse,
)

__all__ = [
    "CommentResponse", "CommentTextResponse",
    "SubmitCommentRequest", "SubmitCommentResponse",
]
