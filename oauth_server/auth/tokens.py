"""
Token endpoint grant handling.

Each supported GrantType maps to a parameter model and a handler method. The
handler runs against a single OAuthConfig snapshot taken when ``issue`` starts.
"""

import secrets
from collections.abc import Callable, Mapping
from datetime import datetime, timedelta
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from oauth_server.auth.codec import SignedTokenCodec
from oauth_server.auth.credentials import fingerprint, generate_token, verify_secret
from oauth_server.config import OAuthConfigProvider
from oauth_server.models.auth import Client, GrantType, OAuthConfig, Token, TokenResult
from oauth_server.models.errors import (
    ExpiredGrantError,
    InvalidClientError,
    InvalidGrantError,
    InvalidRequestError,
    UnsupportedGrantTypeError,
)
from oauth_server.storage.base import ClientRegistry, Storage
from oauth_server.utils.clock import Clock, utc_now
from oauth_server.utils.logging import get_logger

logger = get_logger(__name__)


class ClientAuthentication(BaseModel):
    client_id: str = Field(..., min_length=1)
    client_secret: str = Field(..., min_length=1)


class AuthorizationCodeGrant(ClientAuthentication):
    code: str = Field(..., min_length=1)
    redirect_uri: str = Field(..., min_length=1)


class RefreshTokenGrant(ClientAuthentication):
    refresh_token: str = Field(..., min_length=1)


class ClientCredentialsGrant(ClientAuthentication):
    scope: str | None = None


class TokenIssuer:
    """Dispatches token requests by grant type and persists the issued tokens."""

    def __init__(
        self,
        clients: ClientRegistry,
        storage: Storage,
        codec: SignedTokenCodec,
        config_provider: OAuthConfigProvider,
        clock: Clock = utc_now,
    ) -> None:
        self.clients = clients
        self.storage = storage
        self.codec = codec
        self.config_provider = config_provider
        self.clock = clock
        self._grants: dict[
            GrantType,
            tuple[type[ClientAuthentication], Callable[[Any, OAuthConfig], TokenResult]],
        ] = {
            GrantType.AUTHORIZATION_CODE: (AuthorizationCodeGrant, self._authorization_code),
            GrantType.REFRESH_TOKEN: (RefreshTokenGrant, self._refresh_token),
            GrantType.CLIENT_CREDENTIALS: (ClientCredentialsGrant, self._client_credentials),
        }

    def issue(
        self,
        grant_type: GrantType | str | None,
        params: Mapping[str, Any],
        config: OAuthConfig | None = None,
    ) -> TokenResult:
        """
        Run the grant named by ``grant_type`` with the request ``params``.

        Raises:
            UnsupportedGrantTypeError: unknown grant type.
            InvalidRequestError: a required parameter is missing.
            InvalidClientError: unknown client or wrong secret.
            InvalidGrantError / ExpiredGrantError: unusable code or refresh token.
        """
        try:
            grant = GrantType(grant_type)
        except ValueError:
            logger.warning("token_unsupported_grant_type", grant_type=grant_type)
            raise UnsupportedGrantTypeError(grant_type) from None

        model, handler = self._grants[grant]
        try:
            request = model.model_validate(dict(params))
        except ValidationError as e:
            missing = sorted({str(err["loc"][0]) for err in e.errors() if err["loc"]})
            raise InvalidRequestError(
                f"Missing required parameters: {', '.join(missing)}",
                details={"grant_type": grant.value},
            ) from e

        return handler(request, config or self.config_provider.current())

    def authenticate_client(self, client_id: str, client_secret: str) -> Client:
        """Look up a client and verify its secret. Raises InvalidClientError on failure."""
        client = self.clients.lookup(client_id)
        if client is None or not verify_secret(client_secret, client.secret_hash):
            logger.warning("client_authentication_failed", client_id=client_id)
            raise InvalidClientError()
        return client

    # Grant handlers

    def _authorization_code(self, grant: AuthorizationCodeGrant, config: OAuthConfig) -> TokenResult:
        client = self.authenticate_client(grant.client_id, grant.client_secret)

        # Taking the code removes it, so a replayed or raced code is never found twice.
        record = self.storage.take_authorization_code(grant.code)
        if record is None:
            logger.warning("authorization_code_not_found", client_id=client.client_id)
            raise InvalidGrantError()
        if record.client_id != client.client_id or record.redirect_uri != grant.redirect_uri:
            logger.warning("authorization_code_mismatch", client_id=client.client_id)
            raise InvalidGrantError()

        now = self.clock()
        if now > record.expires_at:
            logger.warning("authorization_code_expired", client_id=client.client_id)
            raise ExpiredGrantError()

        token = self._build_token(client.client_id, record.owner_id, record.scope, config, now, True)
        self.storage.save_token(token)
        logger.info(
            "authorization_code_redeemed",
            client_id=client.client_id,
            code_hash=fingerprint(grant.code),
            token_hash=fingerprint(token.access_token),
        )
        return self._result(token, config)

    def _refresh_token(self, grant: RefreshTokenGrant, config: OAuthConfig) -> TokenResult:
        client = self.authenticate_client(grant.client_id, grant.client_secret)

        old = self.storage.get_token_by_refresh_token(grant.refresh_token)
        if old is None or old.client_id != client.client_id:
            logger.warning("refresh_token_not_found", client_id=client.client_id)
            raise InvalidGrantError()

        now = self.clock()
        if old.refresh_expires_at is None or now > old.refresh_expires_at:
            logger.warning("refresh_token_expired", client_id=client.client_id)
            raise ExpiredGrantError()

        token = self._build_token(client.client_id, old.owner_id, old.scope, config, now, True)
        if not self.storage.rotate_token(grant.refresh_token, token):
            # another request rotated this refresh token first
            logger.warning("refresh_token_rotation_lost", client_id=client.client_id)
            raise InvalidGrantError()

        logger.info(
            "refresh_token_rotated",
            client_id=client.client_id,
            old_token_hash=fingerprint(old.access_token),
            token_hash=fingerprint(token.access_token),
        )
        return self._result(token, config)

    def _client_credentials(self, grant: ClientCredentialsGrant, config: OAuthConfig) -> TokenResult:
        client = self.authenticate_client(grant.client_id, grant.client_secret)

        scope = grant.scope or config.default_scope
        token = self._build_token(client.client_id, None, scope, config, self.clock(), False)
        self.storage.save_token(token)
        logger.info(
            "client_credentials_token_issued",
            client_id=client.client_id,
            scope=scope,
            token_hash=fingerprint(token.access_token),
        )
        return self._result(token, config)

    # Token construction

    def _build_token(
        self,
        client_id: str,
        owner_id: str | None,
        scope: str,
        config: OAuthConfig,
        now: datetime,
        with_refresh: bool,
    ) -> Token:
        refresh_token = secrets.token_hex(32) if with_refresh else None
        return Token(
            access_token=self._access_token_value(client_id, owner_id, scope, config, now),
            refresh_token=refresh_token,
            client_id=client_id,
            owner_id=owner_id,
            scope=scope,
            expires_at=now + timedelta(seconds=config.access_token_lifetime),
            refresh_expires_at=(
                now + timedelta(seconds=config.refresh_token_lifetime) if with_refresh else None
            ),
            created_at=now,
        )

    def _access_token_value(
        self,
        client_id: str,
        owner_id: str | None,
        scope: str,
        config: OAuthConfig,
        now: datetime,
    ) -> str:
        if config.token_format != "jwt":
            return generate_token()

        issued_at = int(now.timestamp())
        claims = {
            "sub": owner_id or client_id,
            "iss": config.issuer,
            "aud": config.audience,
            "client_id": client_id,
            "scope": scope,
            "iat": issued_at,
            "exp": issued_at + config.access_token_lifetime,
            "jti": secrets.token_hex(16),
        }
        return self.codec.encode(claims)

    @staticmethod
    def _result(token: Token, config: OAuthConfig) -> TokenResult:
        return TokenResult(
            access_token=token.access_token,
            expires_in=config.access_token_lifetime,
            refresh_token=token.refresh_token,
        )
