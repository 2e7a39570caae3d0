"""OAuth relay for the comment login round trip.

This module wraps the external identity provider behind two calls:

- ``exchange_code`` trades a one-time authorization code for an access token.
  It is never retried because the provider invalidates the code on first use.
- ``fetch_identity`` loads the user profile and is retried a bounded number of
  times on transient failures, waiting asynchronously between attempts.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode

import httpx

from comment_relay.core.lifecycle import ShutdownContext
from comment_relay.core.settings import settings
from comment_relay.services.errors import UpstreamFailure

logger = logging.getLogger(__name__)

GITHUB_API_VERSION = "2022-11-28"


@dataclass(frozen=True)
class Identity:
    """Verified external identity of a commenter."""

    id: str
    name: str
    profile_url: str = ""
    avatar_url: str = ""

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> Identity:
        """Build an identity from the provider's user JSON.

        The display name comes from ``name`` and falls back to ``login`` when
        ``name`` is missing or not a string.

        Raises:
            UpstreamFailure: ``id`` is missing, or neither name field is usable.
        """
        raw_id = payload.get("id")
        if isinstance(raw_id, bool) or not isinstance(raw_id, int | str) or raw_id == "":
            raise UpstreamFailure("Identity payload has no usable id")

        name = payload.get("name")
        if not isinstance(name, str):
            name = payload.get("login")
        if not isinstance(name, str):
            raise UpstreamFailure("Identity payload has neither name nor login")

        profile_url = payload.get("html_url")
        avatar_url = payload.get("avatar_url")
        return cls(
            id=str(raw_id),
            name=name,
            profile_url=profile_url if isinstance(profile_url, str) else "",
            avatar_url=avatar_url if isinstance(avatar_url, str) else "",
        )


@dataclass(frozen=True)
class OAuthConfig:
    """Immutable configuration for provider calls."""

    client_id: str
    client_secret: str
    authorize_url: str
    token_url: str
    user_url: str
    user_agent: str
    timeout_seconds: float
    fetch_attempts: int
    fetch_retry_delay_seconds: float


def load_oauth_config() -> OAuthConfig:
    """Build configuration object from global settings."""

    return OAuthConfig(
        client_id=settings.oauth_client_id,
        client_secret=settings.oauth_client_secret,
        authorize_url=settings.oauth_authorize_url,
        token_url=settings.oauth_token_url,
        user_url=settings.oauth_user_url,
        user_agent=settings.oauth_user_agent,
        timeout_seconds=float(settings.oauth_http_timeout_seconds),
        fetch_attempts=max(1, settings.oauth_fetch_attempts),
        fetch_retry_delay_seconds=max(0.0, settings.oauth_fetch_retry_delay_seconds),
    )


class OAuthRelay:
    """HTTP client wrapper for the identity provider."""

    def __init__(
        self,
        config: OAuthConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        shutdown: ShutdownContext | None = None,
    ) -> None:
        self.config = config or load_oauth_config()
        self.shutdown = shutdown
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    timeout=httpx.Timeout(self.config.timeout_seconds),
                    headers={"User-Agent": self.config.user_agent},
                    transport=self._transport,
                )
        return self._client

    def authorize_url(self, state: str, redirect_uri: str) -> str:
        """Return the provider URL the browser is sent to for login."""
        query = urlencode(
            {
                "client_id": self.config.client_id,
                "state": state,
                "redirect_uri": redirect_uri,
            }
        )
        return f"{self.config.authorize_url}?{query}"

    async def exchange_code(self, code: str, redirect_uri: str) -> str:
        """Trade an authorization code for an access token.

        Raises:
            UpstreamFailure: The provider rejected the code or was unreachable.
        """
        client = await self._ensure_client()
        try:
            response = await client.post(
                self.config.token_url,
                data={
                    "client_id": self.config.client_id,
                    "client_secret": self.config.client_secret,
                    "code": code,
                    "redirect_uri": redirect_uri,
                },
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as exc:
            raise UpstreamFailure(f"Token exchange failed: {exc}") from exc

        if not response.is_success:
            raise UpstreamFailure(f"Token exchange answered {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamFailure("Token exchange returned invalid JSON") from exc

        access_token = payload.get("access_token") if isinstance(payload, dict) else None
        if not isinstance(access_token, str) or not access_token:
            raise UpstreamFailure("Token exchange response has no access_token")
        return access_token

    async def _fetch_identity_once(self, access_token: str) -> Identity:
        client = await self._ensure_client()
        response = await client.get(
            self.config.user_url,
            headers={
                "Accept": "application/vnd.github+json",
                "Authorization": f"Bearer {access_token}",
                "X-GitHub-Api-Version": GITHUB_API_VERSION,
            },
        )
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, dict):
            raise UpstreamFailure("Identity response is not a JSON object")
        return Identity.from_payload(payload)

    async def fetch_identity(self, access_token: str) -> Identity:
        """Load the commenter's profile, retrying transient failures.

        Raises:
            UpstreamFailure: All attempts failed, the payload was unusable, or
                shutdown was requested while waiting to retry.
        """
        attempts = self.config.fetch_attempts
        last_error: Exception | None = None

        for attempt in range(1, attempts + 1):
            try:
                return await self._fetch_identity_once(access_token)
            except (httpx.HTTPError, ValueError) as exc:
                last_error = exc
                logger.warning(
                    "Identity fetch attempt %d/%d failed: %s", attempt, attempts, exc
                )

            if attempt == attempts:
                break
            delay = self.config.fetch_retry_delay_seconds * attempt
            if self.shutdown is not None:
                if await self.shutdown.wait(delay):
                    raise UpstreamFailure("Shutdown requested during identity fetch")
            else:
                await asyncio.sleep(delay)

        raise UpstreamFailure(
            f"Identity fetch failed after {attempts} attempts: {last_error}"
        ) from last_error

    async def close(self) -> None:
        """Clean up underlying HTTP client resources."""

        async with self._client_lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None


class _OAuthRelaySingleton:
    """Singleton wrapper for OAuthRelay."""

    _instance: OAuthRelay | None = None

    @classmethod
    def get_instance(cls) -> OAuthRelay:
        """Get or create the singleton OAuthRelay instance."""
        if cls._instance is None:
            cls._instance = OAuthRelay()
        return cls._instance


def get_oauth_relay() -> OAuthRelay:
    """Return a singleton OAuth relay instance."""
    return _OAuthRelaySingleton.get_instance()
