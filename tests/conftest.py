# tests/conftest.py
from __future__ import annotations

import os
import uuid
from collections.abc import Callable, Generator, Iterator
from datetime import datetime
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTO_CREATE_TABLES"] = "false"
os.environ["ALLOWED_URLS"] = '["https://blog.example/"]'
os.environ["ALLOWED_BLOG_IDS"] = '["post-1", "post-2"]'
os.environ["ON_COMMENT_CMDS"] = "[]"
os.environ["OAUTH_CLIENT_ID"] = "test-client"
os.environ["OAUTH_CLIENT_SECRET"] = "test-secret"
os.environ["OAUTH_FETCH_RETRY_DELAY_SECONDS"] = "0"
os.environ["PUBLISH_ID_RETRY_DELAY_SECONDS"] = "0"

from comment_relay.api.v1.dependencies import get_oauth_relay_dep  # noqa: E402
from comment_relay.db.session import Base  # noqa: E402
from comment_relay.db.session import get_db as app_get_session  # noqa: E402
from comment_relay.main import app as fastapi_app  # noqa: E402
from comment_relay.models import Comment  # noqa: E402
from comment_relay.services.errors import UpstreamFailure  # noqa: E402
from comment_relay.services.oauth import Identity  # noqa: E402

TEST_DB_URL = "sqlite://"
LONG_AGO = datetime(2000, 1, 1)


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    # Services commit their own transactions, so rows are cleared afterwards
    # instead of rolling back an outer transaction.
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_session_dependency(app: FastAPI, db_session: Session) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def identity() -> Identity:
    """Return the primary commenter."""
    return Identity(
        id="1001",
        name="Ada Lovelace",
        profile_url="https://github.com/ada",
        avatar_url="https://avatars.example/ada.png",
    )


@pytest.fixture()
def other_identity() -> Identity:
    """Return a second commenter."""
    return Identity(
        id="2002",
        name="Grace Hopper",
        profile_url="https://github.com/grace",
        avatar_url="https://avatars.example/grace.png",
    )


@pytest.fixture()
def fetch_row(db_session: Session) -> Callable[..., Comment | None]:
    """Return a loader that bypasses the session's identity map."""

    def _fetch(**filters: Any) -> Comment | None:
        conditions = [getattr(Comment, name) == value for name, value in filters.items()]
        return db_session.scalar(
            select(Comment).where(*conditions).execution_options(populate_existing=True)
        )

    return _fetch


@pytest.fixture()
def publish_comment(db_session: Session) -> Callable[..., Comment]:
    """Return a factory inserting published comments directly."""

    def _publish(
        owner: Identity,
        *,
        post_id: str = "post-1",
        body: str = "First!",
        created_at: datetime | None = None,
    ) -> Comment:
        row = Comment(
            id=str(uuid.uuid4()),
            owner_id=owner.id,
            owner_name=owner.name,
            owner_profile_url=owner.profile_url,
            owner_avatar_url=owner.avatar_url,
            target_post_id=post_id,
            body=body,
        )
        if created_at is not None:
            row.created_at = created_at
            row.edited_at = created_at
        db_session.add(row)
        db_session.commit()
        return row

    return _publish


@pytest.fixture()
def expire_token(db_session: Session) -> Callable[[str], None]:
    """Return a helper pushing a token's deadline into the past."""

    def _expire(token: str) -> None:
        db_session.execute(
            update(Comment)
            .where(Comment.correlation_token == token, Comment.deadline.is_not(None))
            .values(deadline=LONG_AGO)
        )
        db_session.execute(
            update(Comment)
            .where(Comment.correlation_token == token, Comment.deadline.is_(None))
            .values(token_issued_at=LONG_AGO)
        )
        db_session.commit()

    return _expire


class FakeOAuthRelay:
    """Stands in for the provider during API tests."""

    def __init__(self, identity: Identity) -> None:
        self.identity = identity
        self.fail_with: Exception | None = None
        self.exchanged: list[tuple[str, str]] = []

    def authorize_url(self, state: str, redirect_uri: str) -> str:
        return f"https://provider.example/authorize?state={state}"

    async def exchange_code(self, code: str, redirect_uri: str) -> str:
        self.exchanged.append((code, redirect_uri))
        if self.fail_with is not None:
            raise self.fail_with
        return f"access-{code}"

    async def fetch_identity(self, access_token: str) -> Identity:
        return self.identity

    async def close(self) -> None:
        return None


@pytest.fixture()
def fake_relay(app: FastAPI, identity: Identity) -> Iterator[FakeOAuthRelay]:
    """Override the OAuth relay dependency with an in-memory fake."""
    relay = FakeOAuthRelay(identity)
    app.dependency_overrides[get_oauth_relay_dep] = lambda: relay
    try:
        yield relay
    finally:
        app.dependency_overrides.pop(get_oauth_relay_dep, None)


@pytest.fixture()
def upstream_down(fake_relay: FakeOAuthRelay) -> FakeOAuthRelay:
    fake_relay.fail_with = UpstreamFailure("provider returned 500")
    return fake_relay
