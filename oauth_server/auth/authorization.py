"""Authorization code issuance."""

from datetime import timedelta

from oauth_server.auth.credentials import fingerprint, generate_token
from oauth_server.config import OAuthConfigProvider
from oauth_server.models.auth import AuthorizationCode, OAuthConfig
from oauth_server.models.errors import (
    ClientInactiveError,
    RedirectMismatchError,
    UnknownClientError,
)
from oauth_server.storage.base import ClientRegistry, Storage
from oauth_server.utils.clock import Clock, utc_now
from oauth_server.utils.logging import get_logger

logger = get_logger(__name__)

# 32 random bytes, 256 bits of entropy
CODE_BYTES = 32


class AuthorizationCodeIssuer:
    """Creates and persists one-time authorization codes."""

    def __init__(
        self,
        clients: ClientRegistry,
        storage: Storage,
        config_provider: OAuthConfigProvider,
        clock: Clock = utc_now,
    ) -> None:
        self.clients = clients
        self.storage = storage
        self.config_provider = config_provider
        self.clock = clock

    def issue(
        self,
        client_id: str,
        redirect_uri: str,
        owner_id: str | int,
        scope: str,
        config: OAuthConfig | None = None,
    ) -> str:
        """
        Issue a code for ``client_id`` on behalf of ``owner_id``.

        Args:
            client_id: Public client identifier.
            redirect_uri: Must equal the client's registered redirect URI exactly.
            owner_id: Resource owner the code is issued for.
            scope: Space-delimited requested scope.
            config: Snapshot to use; the provider's current snapshot by default.

        Returns:
            The code value.

        Raises:
            UnknownClientError, ClientInactiveError, RedirectMismatchError
        """
        config = config or self.config_provider.current()

        client = self.clients.lookup(client_id)
        if client is None:
            logger.warning("authorization_code_unknown_client", client_id=client_id)
            raise UnknownClientError()
        if not client.is_active:
            logger.warning(
                "authorization_code_client_inactive", client_id=client_id, status=client.status.value
            )
            raise ClientInactiveError()
        if redirect_uri != client.redirect_uri:
            logger.warning("authorization_code_redirect_mismatch", client_id=client_id)
            raise RedirectMismatchError()

        code = generate_token(CODE_BYTES)
        record = AuthorizationCode(
            code=code,
            client_id=client_id,
            redirect_uri=redirect_uri,
            owner_id=str(owner_id),
            scope=scope,
            expires_at=self.clock() + timedelta(seconds=config.authorization_code_lifetime),
        )
        self.storage.save_authorization_code(record)

        logger.info(
            "authorization_code_issued",
            client_id=client_id,
            code_hash=fingerprint(code),
            scope=scope,
            expires_at=record.expires_at.isoformat(),
        )
        return code
