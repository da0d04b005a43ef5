"""Data models for clients, grants, tokens and the engine configuration snapshot."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ApplicationType(str, Enum):
    """Kind of registered client application."""

    CONFIDENTIAL = "confidential"
    PUBLIC = "public"


class ClientStatus(str, Enum):
    """Lifecycle status of a registered client."""

    ACTIVE = "active"
    PENDING = "pending"
    INACTIVE = "inactive"


class GrantType(str, Enum):
    """Grant types accepted by the token endpoint."""

    AUTHORIZATION_CODE = "authorization_code"
    REFRESH_TOKEN = "refresh_token"
    CLIENT_CREDENTIALS = "client_credentials"


class Client(BaseModel):
    """
    A registered client application.

    Only a bcrypt hash of the client secret is kept; the cleartext secret is
    seen once at registration time and then discarded.
    """

    client_id: str
    secret_hash: str = Field(..., repr=False)
    name: str
    redirect_uri: str
    application_type: ApplicationType = ApplicationType.CONFIDENTIAL
    status: ClientStatus = ClientStatus.ACTIVE
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_active(self) -> bool:
        return self.status == ClientStatus.ACTIVE


class AuthorizationCode(BaseModel):
    """One-time authorization code issued by the authorize endpoint."""

    code: str
    client_id: str
    redirect_uri: str
    owner_id: str
    scope: str
    expires_at: datetime


class Token(BaseModel):
    """A persisted access token, optionally paired with a refresh token."""

    access_token: str
    refresh_token: str | None = None
    client_id: str
    owner_id: str | None = None
    scope: str
    expires_at: datetime
    refresh_expires_at: datetime | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class OAuthConfig(BaseModel):
    """
    Immutable snapshot of the token engine settings.

    A snapshot is never edited in place: an update produces a new instance that
    replaces the old one as a whole, so a single issuance or validation always
    sees one consistent set of lifetimes and issuer/audience values.
    """

    model_config = ConfigDict(frozen=True)

    access_token_lifetime: int = Field(3600, ge=1, description="Access token lifetime in seconds")
    refresh_token_lifetime: int = Field(7200, ge=1, description="Refresh token lifetime in seconds")
    authorization_code_lifetime: int = Field(
        60, ge=1, description="Authorization code lifetime in seconds"
    )
    token_format: Literal["jwt", "opaque"] = Field("jwt", description="Access token format")
    issuer: str = Field("https://auth.example.com", description="Value of the iss claim")
    audience: str = Field("https://api.example.com", description="Value of the aud claim")
    default_scope: str = Field("OAuth2Scopes", description="Scope used when none is requested")


class TokenResult(BaseModel):
    """Successful token endpoint response body."""

    access_token: str
    token_type: str = "Bearer"
    expires_in: int
    refresh_token: str | None = None


class IntrospectionResult(BaseModel):
    """Outcome of token introspection; claims are only present when active."""

    active: bool
    claims: dict[str, Any] | None = None


class AuthContext(BaseModel):
    """
    Pydantic model for the OAuth token validation result, attached to authenticated requests.
    """

    is_valid: bool
    token_hash: str
    scopes: list[str]
    expires_at: datetime | None
    client_id: str | None
    user_id: str | None = Field(None, description="Subject identifier for the user")
    claims: dict[str, Any] = Field(default_factory=dict)
