"""Error handling data models."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ErrorCode(str, Enum):
    """Standardized OAuth error codes, as rendered in the ``error`` response field."""

    INVALID_CLIENT = "invalid_client"
    INVALID_REQUEST = "invalid_request"
    INVALID_GRANT = "invalid_grant"
    UNSUPPORTED_GRANT_TYPE = "unsupported_grant_type"
    INVALID_TOKEN = "invalid_token"
    INSUFFICIENT_SCOPE = "insufficient_scope"
    SERVER_ERROR = "server_error"


class ErrorDetail(BaseModel):
    """Error response body returned by the OAuth endpoints."""

    message: str = Field(..., description="Human-readable error message")
    error: ErrorCode = Field(..., description="Error code")
    required_scopes: list[str] | None = Field(
        None, description="Scopes the request lacked (insufficient_scope only)"
    )


# Custom exception classes
class OAuthServerError(Exception):
    """Base exception for token engine errors."""

    status_code: int = 400

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class InvalidClientError(OAuthServerError):
    """Unknown client or wrong client secret."""

    status_code = 401

    def __init__(self, message: str = "Invalid client credentials") -> None:
        super().__init__(ErrorCode.INVALID_CLIENT, message)


class InvalidRequestError(OAuthServerError):
    """Missing or malformed request parameters."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.INVALID_REQUEST, message, details=details)


class InvalidGrantError(OAuthServerError):
    """Bad, foreign or mismatched authorization code or refresh token."""

    def __init__(self, message: str = "Invalid or expired grant") -> None:
        super().__init__(ErrorCode.INVALID_GRANT, message)


class ExpiredGrantError(InvalidGrantError):
    """Code or refresh token past its expiry. Rendered exactly like InvalidGrantError."""


class UnsupportedGrantTypeError(OAuthServerError):
    def __init__(self, grant_type: str | None) -> None:
        super().__init__(
            ErrorCode.UNSUPPORTED_GRANT_TYPE,
            "Supported grant types: authorization_code, refresh_token, client_credentials",
            details={"grant_type": grant_type},
        )


# Authorization request failures
class UnknownClientError(InvalidRequestError):
    def __init__(self) -> None:
        super().__init__("Invalid client")


class ClientInactiveError(InvalidRequestError):
    def __init__(self) -> None:
        super().__init__("Client is not active")


class RedirectMismatchError(InvalidRequestError):
    def __init__(self) -> None:
        super().__init__("Invalid redirect URI")


# Access token validation failures
class TokenValidationError(OAuthServerError):
    """Base for every reason an access token is rejected."""

    status_code = 401

    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.INVALID_TOKEN, message)


class TokenNotFoundError(TokenValidationError):
    def __init__(self) -> None:
        super().__init__("Access token not found")


class TokenExpiredError(TokenValidationError):
    def __init__(self) -> None:
        super().__init__("Access token has expired")


class TokenInvalidError(TokenValidationError):
    pass


class InsufficientScopeError(OAuthServerError):
    status_code = 403

    def __init__(self, required_scopes: list[str]) -> None:
        super().__init__(
            ErrorCode.INSUFFICIENT_SCOPE,
            "Insufficient scope",
            details={"required_scopes": required_scopes},
        )


# Codec level failures, surfaced to callers as TokenInvalidError
class TokenCodecError(Exception):
    """Base exception for signed token encoding/decoding."""


class MalformedTokenError(TokenCodecError):
    pass


class InvalidSignatureError(TokenCodecError):
    pass


class MalformedPayloadError(TokenCodecError):
    pass


class ConfigMissingError(OAuthServerError):
    """The engine has no configuration snapshot to work with."""

    status_code = 500

    def __init__(self, message: str = "OAuth configuration not found") -> None:
        super().__init__(ErrorCode.SERVER_ERROR, message)
