"""Failure taxonomy for the comment coordination services.

Each error carries a ``public_detail`` that is safe to show to the browser;
the exception message itself may contain internal detail and is only logged.
"""

from __future__ import annotations


class CommentFlowError(RuntimeError):
    """Base exception for comment coordination failures."""

    public_detail = "Request could not be completed"


class NotFound(CommentFlowError):
    """Token or comment is absent, or was already reaped."""

    public_detail = "Comment or login session not found"


class Expired(CommentFlowError):
    """The pending action's deadline has passed."""

    public_detail = "Login session expired, please try again"


class TokenMismatch(CommentFlowError):
    """The token does not address the row the caller named."""

    public_detail = "Login session does not match this comment"


class AlreadyBound(CommentFlowError):
    """The pending action is already bound to a different identity."""

    public_detail = "Login session already used by another account"


class Unauthorized(CommentFlowError):
    """The authenticated identity does not own the comment."""

    public_detail = "Not allowed to modify this comment"


class InvalidRequest(CommentFlowError):
    """The caller supplied an inconsistent combination of arguments."""

    public_detail = "Bad request"


class UpstreamFailure(CommentFlowError):
    """The OAuth provider failed after any allowed retries."""

    public_detail = "Authentication provider unavailable"


class StoreFailure(CommentFlowError):
    """The underlying database raised an error."""

    public_detail = "Internal server error"
