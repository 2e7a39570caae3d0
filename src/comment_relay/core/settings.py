"""Application settings and configuration.

This module defines all configuration options for the comment relay.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Comment Relay", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Database configuration
    database_url: str = Field(default="sqlite:///./comments.db", alias="DATABASE_URL")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")
    auto_create_tables: bool = Field(default=True, alias="AUTO_CREATE_TABLES")

    # Public origin of this service, used to build OAuth callback URLs
    base_url: str = Field(default="http://localhost:8000", alias="BASE_URL")

    # OAuth provider (GitHub-shaped authorization-code flow)
    oauth_client_id: str = Field(default="", alias="OAUTH_CLIENT_ID")
    oauth_client_secret: str = Field(default="", alias="OAUTH_CLIENT_SECRET")
    oauth_authorize_url: str = Field(
        default="https://github.com/login/oauth/authorize",
        alias="OAUTH_AUTHORIZE_URL",
    )
    oauth_token_url: str = Field(
        default="https://github.com/login/oauth/access_token",
        alias="OAUTH_TOKEN_URL",
    )
    oauth_user_url: str = Field(default="https://api.github.com/user", alias="OAUTH_USER_URL")
    oauth_user_agent: str = Field(default="comment-relay", alias="OAUTH_USER_AGENT")
    oauth_http_timeout_seconds: float = Field(default=5.0, alias="OAUTH_HTTP_TIMEOUT_SECONDS")
    oauth_fetch_attempts: int = Field(default=3, alias="OAUTH_FETCH_ATTEMPTS")
    oauth_fetch_retry_delay_seconds: float = Field(
        default=3.0,
        alias="OAUTH_FETCH_RETRY_DELAY_SECONDS",
    )

    # Pending action lifetime
    pending_window_minutes: int = Field(default=60, alias="PENDING_WINDOW_MINUTES")

    # Deterministic comment identifiers
    publish_id_namespace: str = Field(default="comment-relay.local", alias="PUBLISH_ID_NAMESPACE")
    publish_id_attempts: int = Field(default=5, alias="PUBLISH_ID_ATTEMPTS")
    publish_id_retry_delay_seconds: float = Field(
        default=1.0,
        alias="PUBLISH_ID_RETRY_DELAY_SECONDS",
    )

    # Which blogs may embed the widget
    allowed_urls: list[str] = Field(default_factory=list, alias="ALLOWED_URLS")
    allowed_blog_ids: list[str] = Field(default_factory=list, alias="ALLOWED_BLOG_IDS")

    # Commands spawned after a new comment is published
    on_comment_cmds: list[str] = Field(default_factory=list, alias="ON_COMMENT_CMDS")

    # CORS configuration for the embedding blog pages
    cors_origins: list[str] = Field(default=["*"], alias="CORS_ORIGINS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(default=["*"], alias="CORS_ALLOW_HEADERS")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling.

        Converts async driver URLs to their sync counterparts for Alembic.
        """
        url = self.database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        if url.startswith("mysql+aiomysql"):
            return url.replace("mysql+aiomysql", "mysql+pymysql", 1)
        return url

    @property
    def callback_url(self) -> str:
        """Return the absolute OAuth callback URL handed to the provider."""
        return f"{self.base_url.rstrip('/')}/api/v1/auth/callback"


settings = Settings()
