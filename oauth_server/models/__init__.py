"""Data models for the OAuth token server."""

from oauth_server.models.auth import (
    AuthContext,
    AuthorizationCode,
    Client,
    GrantType,
    OAuthConfig,
    Token,
    TokenResult,
)
from oauth_server.models.errors import ErrorCode, ErrorDetail, OAuthServerError
from oauth_server.models.health import HealthCheckResponse

__all__ = [
    "AuthContext",
    "AuthorizationCode",
    "Client",
    "ErrorCode",
    "ErrorDetail",
    "GrantType",
    "HealthCheckResponse",
    "OAuthConfig",
    "OAuthServerError",
    "Token",
    "TokenResult",
]
