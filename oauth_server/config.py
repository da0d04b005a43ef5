"""Configuration management using environment variables."""

import threading
from functools import lru_cache
from typing import Any, Literal

from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from oauth_server.models.auth import ApplicationType, ClientStatus, OAuthConfig
from oauth_server.models.errors import ConfigMissingError
from oauth_server.utils.logging import get_logger

logger = get_logger(__name__)


class ClientSeed(BaseModel):
    """A client application registered at startup."""

    client_id: str
    client_secret: SecretStr
    name: str
    redirect_uri: str
    application_type: ApplicationType = ApplicationType.CONFIDENTIAL
    status: ClientStatus = ClientStatus.ACTIVE


class Config(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Server Configuration
    server_host: str = Field(default="0.0.0.0", description="Server bind address")
    server_port: int = Field(default=8080, description="Server port", ge=1, le=65535)
    public_base_url: str = Field(
        default="http://localhost:8080", description="Externally visible base URL of this server"
    )
    cors_allowed_origins: str = Field(
        default="",
        description="Comma-separated list of allowed CORS origins (e.g., 'https://app.example.com')",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    environment: str = Field(default="development", description="Environment name")

    # Token signing
    token_signing_secret: SecretStr = Field(..., description="HMAC secret for signed access tokens")

    # Token engine
    access_token_lifetime: int = Field(default=3600, ge=1, description="Seconds")
    refresh_token_lifetime: int = Field(default=7200, ge=1, description="Seconds")
    authorization_code_lifetime: int = Field(default=60, ge=1, description="Seconds")
    token_format: Literal["jwt", "opaque"] = Field(default="jwt", description="Access token format")
    token_issuer: str = Field(default="https://auth.example.com", description="iss claim value")
    token_audience: str = Field(default="https://api.example.com", description="aud claim value")
    default_scope: str = Field(default="OAuth2Scopes", description="Baseline scope")
    default_owner_id: str = Field(
        default="1", description="Resource owner used by /authorize in the absence of a login UI"
    )

    # Throttling
    auth_rate_limit: int = Field(default=5, ge=1, description="Token endpoint requests per window")
    api_rate_limit: int = Field(default=100, ge=1, description="API requests per window")
    rate_limit_window_seconds: int = Field(default=60, ge=1, description="Rate limit window")
    purge_interval_seconds: int = Field(
        default=300, ge=1, description="How often expired codes, tokens and counters are dropped"
    )

    # Clients
    client_secret_hash_rounds: int = Field(
        default=12, ge=4, le=31, description="bcrypt cost factor for client secrets"
    )
    oauth_clients: list[ClientSeed] = Field(
        default_factory=list, description="JSON list of clients registered at startup"
    )

    @property
    def oauth_config(self) -> OAuthConfig:
        """Returns the token engine settings as an immutable snapshot."""
        return OAuthConfig(
            access_token_lifetime=self.access_token_lifetime,
            refresh_token_lifetime=self.refresh_token_lifetime,
            authorization_code_lifetime=self.authorization_code_lifetime,
            token_format=self.token_format,
            issuer=self.token_issuer,
            audience=self.token_audience,
            default_scope=self.default_scope,
        )


@lru_cache
def get_config() -> Config:
    """Get cached configuration instance."""
    return Config()  # type: ignore


class OAuthConfigProvider:
    """
    Holds the current OAuthConfig snapshot.

    Updates build a complete new snapshot and swap it in under a lock; readers
    call ``current()`` once per operation and keep using that object.
    """

    def __init__(self, initial: OAuthConfig | None = None) -> None:
        self._lock = threading.Lock()
        self._current = initial

    def current(self) -> OAuthConfig:
        snapshot = self._current
        if snapshot is None:
            raise ConfigMissingError()
        return snapshot

    def replace(self, config: OAuthConfig) -> OAuthConfig:
        with self._lock:
            self._current = config
        logger.info(
            "oauth_config_replaced",
            token_format=config.token_format,
            issuer=config.issuer,
            access_token_lifetime=config.access_token_lifetime,
        )
        return config

    def update(self, **changes: Any) -> OAuthConfig:
        """Apply a partial update, validated as a whole, and return the new snapshot."""
        with self._lock:
            if self._current is None:
                raise ConfigMissingError()
            merged = {**self._current.model_dump(), **changes}
            updated = OAuthConfig.model_validate(merged)
            self._current = updated
        logger.info("oauth_config_updated", changed=sorted(changes))
        return updated
