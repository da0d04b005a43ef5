"""Access token validation and scope enforcement."""

from collections.abc import Iterable
from typing import Any

from oauth_server.auth.codec import SignedTokenCodec
from oauth_server.auth.credentials import fingerprint
from oauth_server.config import OAuthConfigProvider
from oauth_server.models.auth import OAuthConfig
from oauth_server.models.errors import (
    InsufficientScopeError,
    TokenCodecError,
    TokenExpiredError,
    TokenInvalidError,
    TokenNotFoundError,
)
from oauth_server.storage.base import Storage
from oauth_server.utils.clock import Clock, utc_now
from oauth_server.utils.logging import get_logger

logger = get_logger(__name__)


class TokenValidator:
    """
    Resolves a bearer token to its claims.

    A token is only valid if it is both present in storage (so revocation takes
    effect immediately) and, in the signed format, carries an intact signature
    with current issuer, audience and expiry.
    """

    def __init__(
        self,
        storage: Storage,
        codec: SignedTokenCodec,
        config_provider: OAuthConfigProvider,
        clock: Clock = utc_now,
    ) -> None:
        self.storage = storage
        self.codec = codec
        self.config_provider = config_provider
        self.clock = clock

    def validate(self, access_token: str, config: OAuthConfig | None = None) -> dict[str, Any]:
        """
        Validate ``access_token`` and return its claim set.

        Raises:
            TokenNotFoundError: unknown or revoked token.
            TokenExpiredError: stored expiry has passed.
            TokenInvalidError: bad format, bad signature, or claim mismatch.
        """
        config = config or self.config_provider.current()
        token_hash = fingerprint(access_token)

        record = self.storage.get_token_by_access_token(access_token)
        if record is None:
            logger.info("oauth_token_not_found", token_hash=token_hash)
            raise TokenNotFoundError()

        now = self.clock()
        if now > record.expires_at:
            logger.info("oauth_token_expired", token_hash=token_hash)
            raise TokenExpiredError()

        if config.token_format != "jwt":
            return {
                "client_id": record.client_id,
                "user_id": record.owner_id,
                "scope": record.scope,
            }

        try:
            claims = self.codec.decode(access_token)
        except TokenCodecError as e:
            logger.warning("oauth_token_decode_failed", token_hash=token_hash, error=str(e))
            raise TokenInvalidError(str(e)) from e

        exp = claims.get("exp")
        if not isinstance(exp, (int, float)) or exp < int(now.timestamp()):
            raise TokenInvalidError("Token has expired")
        if claims.get("iss") != config.issuer:
            raise TokenInvalidError("Invalid token issuer")
        if claims.get("aud") != config.audience:
            raise TokenInvalidError("Invalid token audience")

        logger.debug("oauth_token_validated", token_hash=token_hash, client_id=record.client_id)
        return claims


def token_scopes(claims: dict[str, Any]) -> list[str]:
    """Scopes carried by a claim set's space-delimited ``scope`` claim."""
    scope = claims.get("scope") or ""
    return scope.split() if isinstance(scope, str) else []


def check_scopes(claims: dict[str, Any], required: Iterable[str]) -> None:
    """
    Require every scope in ``required`` to be granted by ``claims``.

    Only meaningful for claims returned by a successful ``validate``.

    Raises:
        InsufficientScopeError
    """
    required = list(required)
    granted = set(token_scopes(claims))
    if not all(scope in granted for scope in required):
        raise InsufficientScopeError(required)
