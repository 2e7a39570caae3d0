# src/comment_relay/services/__init__.py
"""Business logic services for the comment relay."""

from .identity_binder import IdentityBinder
from .oauth import Identity, OAuthRelay
from .pending_store import PendingActionStore

__all__ = [
    "IdentityBinder",
    "Identity",
    "OAuthRelay",
    "PendingActionStore",
]
