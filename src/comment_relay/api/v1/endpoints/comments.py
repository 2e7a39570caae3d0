# src/comment_relay/api/v1/endpoints/comments.py
"""Comment listing and submission endpoints."""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Query

from comment_relay.api.v1.dependencies import SessionDep, ensure_allowed_blog_id
from comment_relay.models import Comment
from comment_relay.schemas.comment import (
    CommentResponse,
    CommentTextResponse,
    SubmitCommentRequest,
    SubmitCommentResponse,
)
from comment_relay.services import comment_service
from comment_relay.services.hooks import run_on_comment_commands

router = APIRouter(prefix="/comments", tags=["comments"])


@router.get("", response_model=list[CommentResponse])
async def list_comments(
    db: SessionDep,
    blog_id: str = Query(..., description="Blog post whose comments to return"),
) -> list[Comment]:
    """List published comments for a blog post, oldest first.

    Args:
        db: Database session
        blog_id: Blog post identifier

    Returns:
        Published comments of the post
    """
    ensure_allowed_blog_id(blog_id)
    return comment_service.list_comments(db, blog_id)


@router.get("/{comment_id}/text", response_model=CommentTextResponse)
async def get_comment_text(comment_id: str, db: SessionDep) -> CommentTextResponse:
    """Return the raw text of a published comment."""
    text = comment_service.get_comment_text(db, comment_id)
    return CommentTextResponse(comment_id=comment_id, comment=text)


@router.post("/submit", response_model=SubmitCommentResponse)
async def submit_comment(
    payload: SubmitCommentRequest,
    db: SessionDep,
    background_tasks: BackgroundTasks,
) -> SubmitCommentResponse:
    """Publish a new comment or apply an edit, authorized by the correlation token.

    Args:
        payload: Token from the login round trip and the comment text
        db: Database session
        background_tasks: Used to run on-comment commands after the response

    Returns:
        Identifier of the published comment and its blog post
    """
    result = await comment_service.finalize_submission(db, payload.state, payload.comment_text)
    if result.created:
        background_tasks.add_task(run_on_comment_commands, result)
    return SubmitCommentResponse(
        comment_id=result.comment_id,
        blog_post_id=result.post_id,
        created=result.created,
    )
