# src/comment_relay/api/v1/endpoints/auth.py
"""Login round-trip endpoints for creating, editing and deleting comments."""

from __future__ import annotations

import logging
from enum import Enum
from urllib.parse import urlencode

from fastapi import APIRouter, HTTPException, Query, status
from fastapi.responses import HTMLResponse, RedirectResponse

from comment_relay.api.v1.dependencies import (
    OAuthRelayDep,
    SessionDep,
    ensure_allowed_blog_id,
    ensure_allowed_blog_url,
)
from comment_relay.core.settings import settings
from comment_relay.services import comment_service
from comment_relay.services.errors import NotFound
from comment_relay.services.identity_binder import IdentityBinder
from comment_relay.services.pending_store import PendingActionStore
from comment_relay.web.pages import render_write_comment_page

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"])


class CommentAction(str, Enum):
    """What the commenter is logging in to do."""

    CREATE = "comment"
    EDIT = "edit"
    DELETE = "delete"


def build_callback_url(
    action: CommentAction,
    blog_url: str,
    *,
    blog_id: str | None = None,
    comment_id: str | None = None,
) -> str:
    """Return the redirect URI for one login round trip.

    The same URI is sent to the provider twice (authorize and code exchange),
    so it must be rebuilt identically from the callback's query parameters.
    """
    params: dict[str, str] = {"action": action.value, "blog_url": blog_url}
    if blog_id is not None:
        params["blog_id"] = blog_id
    if comment_id is not None:
        params["comment_id"] = comment_id
    return f"{settings.callback_url}?{urlencode(params)}"


def _submit_url() -> str:
    return f"{settings.base_url.rstrip('/')}/api/v1/comments/submit"


@router.get("/comment")
async def login_to_comment(
    db: SessionDep,
    relay: OAuthRelayDep,
    blog_id: str = Query(..., description="Blog post to comment on"),
    blog_url: str = Query(..., description="Page to return to afterwards"),
) -> RedirectResponse:
    """Start a new comment and send the browser to the identity provider."""
    ensure_allowed_blog_url(blog_url)
    ensure_allowed_blog_id(blog_id)
    token = PendingActionStore(db).begin_pending()
    redirect_uri = build_callback_url(CommentAction.CREATE, blog_url, blog_id=blog_id)
    return RedirectResponse(
        relay.authorize_url(token, redirect_uri),
        status_code=status.HTTP_302_FOUND,
    )


@router.get("/edit")
async def login_to_edit(
    db: SessionDep,
    relay: OAuthRelayDep,
    comment_id: str = Query(..., description="Comment to edit"),
    blog_url: str = Query(..., description="Page to return to afterwards"),
) -> RedirectResponse:
    """Lock a published comment for editing and send the browser to log in."""
    ensure_allowed_blog_url(blog_url)
    token = PendingActionStore(db).begin_pending(existing_id=comment_id)
    redirect_uri = build_callback_url(CommentAction.EDIT, blog_url, comment_id=comment_id)
    return RedirectResponse(
        relay.authorize_url(token, redirect_uri),
        status_code=status.HTTP_302_FOUND,
    )


@router.get("/delete")
async def login_to_delete(
    db: SessionDep,
    relay: OAuthRelayDep,
    comment_id: str = Query(..., description="Comment to delete"),
    blog_url: str = Query(..., description="Page to return to afterwards"),
) -> RedirectResponse:
    """Lock a published comment for deletion and send the browser to log in."""
    ensure_allowed_blog_url(blog_url)
    token = PendingActionStore(db).begin_pending(existing_id=comment_id)
    redirect_uri = build_callback_url(CommentAction.DELETE, blog_url, comment_id=comment_id)
    return RedirectResponse(
        relay.authorize_url(token, redirect_uri),
        status_code=status.HTTP_302_FOUND,
    )


@router.get("/callback", response_model=None)
async def oauth_callback(
    db: SessionDep,
    relay: OAuthRelayDep,
    code: str = Query(..., description="Authorization code from the provider"),
    state: str = Query(..., description="Correlation token issued before the redirect"),
    action: CommentAction = Query(...),
    blog_url: str = Query(...),
    blog_id: str | None = Query(None),
    comment_id: str | None = Query(None),
) -> HTMLResponse | RedirectResponse:
    """Finish the provider round trip and bind the commenter to the pending action.

    Args:
        db: Database session
        relay: OAuth relay used to resolve the code into an identity
        code: Authorization code
        state: Correlation token
        action: Whether this round trip creates, edits or deletes a comment
        blog_url: Page to return to
        blog_id: Blog post id for new comments
        comment_id: Comment id for edits and deletes

    Returns:
        The comment form for creates and edits, a redirect back for deletes

    Raises:
        HTTPException: If the target parameter for the action is missing
    """
    ensure_allowed_blog_url(blog_url)
    creating = action is CommentAction.CREATE
    if creating:
        if blog_id is None or comment_id is not None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="blog_id is required for new comments",
            )
        ensure_allowed_blog_id(blog_id)
    elif comment_id is None or blog_id is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="comment_id is required for edits and deletes",
        )

    # Validate the token before spending the single-use code.
    if not PendingActionStore(db).check_pending(state, expect_published=not creating):
        raise NotFound("Callback state is unknown or expired")

    redirect_uri = build_callback_url(action, blog_url, blog_id=blog_id, comment_id=comment_id)
    access_token = await relay.exchange_code(code, redirect_uri)
    identity = await relay.fetch_identity(access_token)

    IdentityBinder(db).bind_identity(
        state,
        post_id=blog_id,
        comment_id=comment_id,
        identity=identity,
    )

    if action is CommentAction.DELETE:
        comment_service.finalize_delete(db, state)
        return RedirectResponse(blog_url, status_code=status.HTTP_303_SEE_OTHER)

    text = ""
    title = f"Write a Comment - {blog_id}"
    if comment_id is not None:
        text = comment_service.get_comment_text(db, comment_id)
        title = "Edit a Comment"

    return HTMLResponse(
        render_write_comment_page(
            title=title,
            state=state,
            submit_url=_submit_url(),
            blog_url=blog_url,
            user_name=identity.name,
            user_profile_url=identity.profile_url,
            user_avatar_url=identity.avatar_url,
            text=text,
        )
    )
