from abc import ABC, abstractmethod
from datetime import datetime

from oauth_server.models.auth import AuthorizationCode, Client, Token


class ClientRegistry(ABC):
    """
    Read access to registered client applications.

    The token engine only ever looks clients up; registration and status
    changes belong to administrative tooling.
    """

    @abstractmethod
    def lookup(self, client_id: str) -> Client | None:
        """Return the client registered under ``client_id``, or None."""
        raise NotImplementedError

    @abstractmethod
    def count(self) -> int:
        raise NotImplementedError


class Storage(ABC):
    """
    Persistence contract for authorization codes and tokens.

    Implementations must make ``take_authorization_code`` and ``rotate_token``
    atomic: two concurrent callers racing on the same code or refresh token
    must see exactly one success.
    """

    # Authorization codes

    @abstractmethod
    def save_authorization_code(self, code: AuthorizationCode) -> None:
        raise NotImplementedError

    @abstractmethod
    def get_authorization_code(self, code: str) -> AuthorizationCode | None:
        raise NotImplementedError

    @abstractmethod
    def take_authorization_code(self, code: str) -> AuthorizationCode | None:
        """
        Fetch and delete a code in one step.

        Returns:
            The code record if it was present, None otherwise. A second call
            with the same value always returns None.
        """
        raise NotImplementedError

    # Tokens

    @abstractmethod
    def save_token(self, token: Token) -> None:
        raise NotImplementedError

    @abstractmethod
    def get_token_by_access_token(self, access_token: str) -> Token | None:
        raise NotImplementedError

    @abstractmethod
    def get_token_by_refresh_token(self, refresh_token: str) -> Token | None:
        raise NotImplementedError

    @abstractmethod
    def delete_token(self, access_token: str) -> bool:
        """Delete the record owning ``access_token``. Returns False if it was absent."""
        raise NotImplementedError

    @abstractmethod
    def rotate_token(self, old_refresh_token: str, replacement: Token) -> bool:
        """
        Replace the record owning ``old_refresh_token`` with ``replacement``.

        Compare-and-swap: when the old record is already gone nothing is stored
        and False is returned.
        """
        raise NotImplementedError

    @abstractmethod
    def list_client_tokens(self, client_id: str) -> list[Token]:
        raise NotImplementedError

    @abstractmethod
    def delete_client_tokens(self, client_id: str) -> int:
        """Delete every token issued to a client. Returns the number removed."""
        raise NotImplementedError

    @abstractmethod
    def delete_owner_tokens(self, owner_id: str) -> int:
        """Delete every token issued on behalf of a resource owner."""
        raise NotImplementedError

    @abstractmethod
    def purge_expired(self, now: datetime) -> int:
        """Drop expired codes and tokens that can no longer be used in any way."""
        raise NotImplementedError
