"""Identifier generation for correlation tokens and published comments."""

from __future__ import annotations

import uuid
from datetime import datetime

from comment_relay.core.settings import settings


def new_random_id() -> str:
    """Return a random 128-bit identifier in canonical UUID form.

    Uniqueness is not assumed; callers check the store and re-roll.
    """
    return str(uuid.uuid4())


def publish_namespace() -> uuid.UUID:
    """Return the UUID namespace under which comment ids are derived."""
    return uuid.uuid5(uuid.NAMESPACE_DNS, settings.publish_id_namespace)


def derive_publish_id(post_id: str, owner_id: str, timestamp: datetime) -> str:
    """Return a deterministic comment id for a post, owner and instant.

    Identical inputs always give the same id, so a retried publish lands on the
    same row; a different ``timestamp`` gives a different id.
    """
    name = f"{post_id}{owner_id}{timestamp.isoformat()}"
    return str(uuid.uuid5(publish_namespace(), name))
