# tests/test_ownership.py
"""Tests for owner-gated comment mutations."""

from comment_relay.services import ownership
from comment_relay.services.pending_store import PendingActionStore


def test_can_mutate_only_own_published_comment(db_session, fetch_row, publish_comment, identity, other_identity) -> None:
    comment = publish_comment(identity)
    token = PendingActionStore(db_session).begin_pending()
    pending_id = fetch_row(correlation_token=token).id

    assert ownership.can_mutate(db_session, comment.id, identity.id) is True
    assert ownership.can_mutate(db_session, comment.id, other_identity.id) is False
    assert ownership.can_mutate(db_session, pending_id, identity.id) is False
    assert ownership.can_mutate(db_session, "no-such-comment", identity.id) is False


def test_update_requires_owner(db_session, fetch_row, publish_comment, identity, other_identity) -> None:
    comment = publish_comment(identity, body="original")
    now = PendingActionStore(db_session).current_time()

    changed = ownership.update_owned_comment(
        db_session,
        comment.id,
        other_identity.id,
        body="hijacked",
        owner_name=other_identity.name,
        owner_profile_url="",
        owner_avatar_url="",
        now=now,
    )
    db_session.commit()

    assert changed is False
    assert fetch_row(id=comment.id).body == "original"


def test_update_replaces_body_and_edit_time(db_session, fetch_row, publish_comment, identity) -> None:
    comment = publish_comment(identity, body="original")
    created = fetch_row(id=comment.id).created_at
    now = PendingActionStore(db_session).current_time()

    changed = ownership.update_owned_comment(
        db_session,
        comment.id,
        identity.id,
        body="revised",
        owner_name=identity.name,
        owner_profile_url=identity.profile_url,
        owner_avatar_url=identity.avatar_url,
        now=now,
    )
    db_session.commit()

    row = fetch_row(id=comment.id)
    assert changed is True
    assert row.body == "revised"
    assert row.created_at == created
    assert row.edited_at == now


def test_delete_requires_owner(db_session, fetch_row, publish_comment, identity, other_identity) -> None:
    comment_id = publish_comment(identity).id

    assert ownership.delete_owned_comment(db_session, comment_id, other_identity.id) is False
    assert ownership.delete_owned_comment(db_session, comment_id, identity.id) is True
    db_session.commit()

    assert fetch_row(id=comment_id) is None
