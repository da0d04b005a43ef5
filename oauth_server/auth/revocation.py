"""Token revocation and introspection."""

from oauth_server.auth.credentials import fingerprint
from oauth_server.auth.validation import TokenValidator
from oauth_server.models.auth import IntrospectionResult, OAuthConfig
from oauth_server.models.errors import TokenValidationError
from oauth_server.storage.base import Storage
from oauth_server.utils.logging import get_logger

logger = get_logger(__name__)


class Revoker:
    """Deletes tokens. Revoking an unknown token is a no-op, never an error."""

    def __init__(self, storage: Storage) -> None:
        self.storage = storage

    def revoke(self, access_token: str) -> None:
        removed = self.storage.delete_token(access_token)
        logger.info("oauth_token_revoked", token_hash=fingerprint(access_token), found=removed)

    def revoke_client_tokens(self, client_id: str) -> int:
        count = self.storage.delete_client_tokens(client_id)
        logger.info("oauth_client_tokens_revoked", client_id=client_id, count=count)
        return count

    def revoke_owner_tokens(self, owner_id: str) -> int:
        count = self.storage.delete_owner_tokens(owner_id)
        logger.info("oauth_owner_tokens_revoked", owner_id=owner_id, count=count)
        return count


class Introspector:
    """
    Reports whether a token is active.

    Inactive tokens all look the same: not found, expired, tampered and
    malformed tokens produce an identical ``active=False`` result.
    """

    def __init__(self, validator: TokenValidator) -> None:
        self.validator = validator

    def introspect(self, token: str, config: OAuthConfig | None = None) -> IntrospectionResult:
        try:
            claims = self.validator.validate(token, config)
        except TokenValidationError:
            return IntrospectionResult(active=False)
        return IntrospectionResult(active=True, claims=claims)
