# tests/test_api.py
"""HTTP tests for the login round trip and comment endpoints."""

from urllib.parse import parse_qs, urlsplit

import pytest
from fastapi import status

from comment_relay.services.errors import Expired, NotFound, Unauthorized, UpstreamFailure

BLOG_URL = "https://blog.example/posts/hello-world/"


def _state_from_redirect(response) -> str:
    assert response.status_code == status.HTTP_302_FOUND
    return parse_qs(urlsplit(response.headers["location"]).query)["state"][0]


def _start(client, path: str, **params) -> str:
    response = client.get(
        f"/api/v1/auth/{path}",
        params={"blog_url": BLOG_URL, **params},
        follow_redirects=False,
    )
    return _state_from_redirect(response)


def _callback(client, state: str, action: str, **params):
    return client.get(
        "/api/v1/auth/callback",
        params={"code": "code-1", "state": state, "action": action, "blog_url": BLOG_URL, **params},
        follow_redirects=False,
    )


def _submit(client, state: str, text: str):
    return client.post("/api/v1/comments/submit", json={"state": state, "comment_text": text})


def test_health(client) -> None:
    response = client.get("/health")

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"status": "ok"}


def test_list_comments_shape(client, publish_comment, identity) -> None:
    comment = publish_comment(identity, body="Hello there")

    response = client.get("/api/v1/comments", params={"blog_id": "post-1"})

    assert response.status_code == status.HTTP_200_OK
    [item] = response.json()
    assert item["comment_id"] == comment.id
    assert item["username"] == identity.name
    assert item["userurl"] == identity.profile_url
    assert item["useravatar"] == identity.avatar_url
    assert item["comment"] == "Hello there"
    assert "create_date" in item
    assert "edit_date" in item


def test_list_comments_rejects_unknown_blog(client) -> None:
    response = client.get("/api/v1/comments", params={"blog_id": "someone-elses-post"})

    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_get_comment_text(client, publish_comment, identity) -> None:
    comment = publish_comment(identity, body="raw *markdown*")

    response = client.get(f"/api/v1/comments/{comment.id}/text")

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"comment_id": comment.id, "comment": "raw *markdown*"}


def test_get_comment_text_missing(client) -> None:
    response = client.get("/api/v1/comments/no-such-comment/text")

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json() == {"detail": NotFound.public_detail}


def test_login_redirects_to_provider(client, fake_relay, fetch_row) -> None:
    state = _start(client, "comment", blog_id="post-1")

    assert fetch_row(correlation_token=state) is not None


@pytest.mark.parametrize(
    "params",
    [
        {"blog_id": "post-1", "blog_url": "https://evil.example/"},
        {"blog_id": "unlisted", "blog_url": BLOG_URL},
    ],
    ids=["blog-url", "blog-id"],
)
def test_login_rejects_disallowed_targets(client, fake_relay, params) -> None:
    response = client.get("/api/v1/auth/comment", params=params, follow_redirects=False)

    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_create_round_trip(client, fake_relay, mocker, identity) -> None:
    hook = mocker.patch("comment_relay.api.v1.endpoints.comments.run_on_comment_commands")
    state = _start(client, "comment", blog_id="post-1")

    page = _callback(client, state, "comment", blog_id="post-1")
    assert page.status_code == status.HTTP_200_OK
    assert state in page.text
    assert identity.name in page.text
    assert fake_relay.exchanged[0][0] == "code-1"
    assert "action=comment" in fake_relay.exchanged[0][1]

    submitted = _submit(client, state, "What a great post")
    assert submitted.status_code == status.HTTP_200_OK
    body = submitted.json()
    assert body["blog_post_id"] == "post-1"
    assert body["created"] is True

    listed = client.get("/api/v1/comments", params={"blog_id": "post-1"}).json()
    assert [item["comment_id"] for item in listed] == [body["comment_id"]]
    hook.assert_called_once()
    assert hook.call_args.args[0].comment_id == body["comment_id"]


def test_edit_round_trip(client, fake_relay, mocker, publish_comment, identity) -> None:
    hook = mocker.patch("comment_relay.api.v1.endpoints.comments.run_on_comment_commands")
    comment = publish_comment(identity, body="typo here")
    state = _start(client, "edit", comment_id=comment.id)

    page = _callback(client, state, "edit", comment_id=comment.id)
    assert page.status_code == status.HTTP_200_OK
    assert "typo here" in page.text

    submitted = _submit(client, state, "typo fixed")
    assert submitted.status_code == status.HTTP_200_OK
    assert submitted.json() == {
        "comment_id": comment.id,
        "blog_post_id": "post-1",
        "created": False,
    }
    text = client.get(f"/api/v1/comments/{comment.id}/text").json()["comment"]
    assert text == "typo fixed"
    hook.assert_not_called()


def test_delete_round_trip(client, fake_relay, publish_comment, identity) -> None:
    comment = publish_comment(identity)
    state = _start(client, "delete", comment_id=comment.id)

    response = _callback(client, state, "delete", comment_id=comment.id)

    assert response.status_code == status.HTTP_303_SEE_OTHER
    assert response.headers["location"] == BLOG_URL
    assert client.get("/api/v1/comments", params={"blog_id": "post-1"}).json() == []


def test_non_owner_cannot_edit(client, fake_relay, publish_comment, other_identity) -> None:
    comment = publish_comment(other_identity)
    state = _start(client, "edit", comment_id=comment.id)

    response = _callback(client, state, "edit", comment_id=comment.id)

    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json() == {"detail": Unauthorized.public_detail}


def test_callback_with_unknown_state_skips_code_exchange(client, fake_relay) -> None:
    response = _callback(client, "never-issued", "comment", blog_id="post-1")

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert fake_relay.exchanged == []


@pytest.mark.parametrize(
    "action,params",
    [
        ("comment", {}),
        ("comment", {"blog_id": "post-1", "comment_id": "c-1"}),
        ("edit", {}),
        ("delete", {"blog_id": "post-1"}),
    ],
)
def test_callback_requires_matching_target(client, fake_relay, action, params) -> None:
    response = _callback(client, "some-state", action, **params)

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert fake_relay.exchanged == []


def test_callback_reports_provider_failure(client, upstream_down) -> None:
    state = _start(client, "comment", blog_id="post-1")

    response = _callback(client, state, "comment", blog_id="post-1")

    assert response.status_code == status.HTTP_502_BAD_GATEWAY
    assert response.json() == {"detail": UpstreamFailure.public_detail}


def test_submit_with_unknown_state(client) -> None:
    response = _submit(client, "never-issued", "hello")

    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_submit_blank_text(client, fake_relay) -> None:
    state = _start(client, "comment", blog_id="post-1")
    _callback(client, state, "comment", blog_id="post-1")

    response = _submit(client, state, "   ")

    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_submit_after_expiry(client, fake_relay, expire_token) -> None:
    state = _start(client, "comment", blog_id="post-1")
    _callback(client, state, "comment", blog_id="post-1")
    expire_token(state)

    response = _submit(client, state, "too slow")

    assert response.status_code == status.HTTP_410_GONE
    assert response.json() == {"detail": Expired.public_detail}
