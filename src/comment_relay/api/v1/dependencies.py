"""Shared API dependencies and request validation helpers."""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from comment_relay.core.settings import settings
from comment_relay.db.session import get_db
from comment_relay.services.oauth import OAuthRelay, get_oauth_relay


def get_oauth_relay_dep() -> OAuthRelay:
    """Return the shared OAuth relay."""
    return get_oauth_relay()


# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]
OAuthRelayDep = Annotated[OAuthRelay, Depends(get_oauth_relay_dep)]


def ensure_allowed_blog_url(blog_url: str) -> str:
    """Reject blog URLs outside the configured prefixes.

    Raises:
        HTTPException: If the URL does not start with an allowed prefix
    """
    if not any(blog_url.startswith(prefix) for prefix in settings.allowed_urls):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Blog URL is not allowed",
        )
    return blog_url


def ensure_allowed_blog_id(blog_id: str) -> str:
    """Reject blog post ids that are not configured.

    Raises:
        HTTPException: If the id is not in the allow-list
    """
    if blog_id not in settings.allowed_blog_ids:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Blog id is not allowed",
        )
    return blog_id
