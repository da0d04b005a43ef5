"""In-process storage backends guarded by a lock."""

import threading
from datetime import datetime

from oauth_server.auth.credentials import hash_secret
from oauth_server.models.auth import (
    ApplicationType,
    AuthorizationCode,
    Client,
    ClientStatus,
    Token,
)
from oauth_server.storage.base import ClientRegistry, Storage
from oauth_server.utils.logging import get_logger

logger = get_logger(__name__)


class ClientRegistrationError(Exception):
    """Raised when a client cannot be registered."""


class InMemoryClientRegistry(ClientRegistry):
    """Client registry kept in a dict; secrets are hashed on registration."""

    def __init__(self, hash_rounds: int = 12) -> None:
        self._lock = threading.Lock()
        self._clients: dict[str, Client] = {}
        self._hash_rounds = hash_rounds

    def register(
        self,
        client_id: str,
        client_secret: str,
        name: str,
        redirect_uri: str,
        application_type: ApplicationType = ApplicationType.CONFIDENTIAL,
        status: ClientStatus = ClientStatus.ACTIVE,
    ) -> Client:
        if not client_id or not client_secret:
            raise ClientRegistrationError("Clients need a non-empty id and secret.")

        client = Client(
            client_id=client_id,
            secret_hash=hash_secret(client_secret, rounds=self._hash_rounds),
            name=name,
            redirect_uri=redirect_uri,
            application_type=application_type,
            status=status,
        )
        with self._lock:
            if client_id in self._clients:
                raise ClientRegistrationError(f"Client '{client_id}' already registered.")
            self._clients[client_id] = client

        logger.info("client_registered", client_id=client_id, status=status.value)
        return client

    def set_status(self, client_id: str, status: ClientStatus) -> Client | None:
        with self._lock:
            client = self._clients.get(client_id)
            if client is None:
                return None
            updated = client.model_copy(update={"status": status})
            self._clients[client_id] = updated
        logger.info("client_status_changed", client_id=client_id, status=status.value)
        return updated

    def lookup(self, client_id: str) -> Client | None:
        return self._clients.get(client_id)

    def count(self) -> int:
        return len(self._clients)


class InMemoryStorage(Storage):
    """
    Dict-backed Storage.

    One lock guards all maps, which makes take/rotate atomic and keeps the
    refresh-token index consistent with the token map.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._codes: dict[str, AuthorizationCode] = {}
        self._tokens: dict[str, Token] = {}
        self._refresh_index: dict[str, str] = {}

    def save_authorization_code(self, code: AuthorizationCode) -> None:
        with self._lock:
            self._codes[code.code] = code

    def get_authorization_code(self, code: str) -> AuthorizationCode | None:
        with self._lock:
            return self._codes.get(code)

    def take_authorization_code(self, code: str) -> AuthorizationCode | None:
        with self._lock:
            return self._codes.pop(code, None)

    def _insert(self, token: Token) -> None:
        self._tokens[token.access_token] = token
        if token.refresh_token:
            self._refresh_index[token.refresh_token] = token.access_token

    def _remove(self, access_token: str) -> Token | None:
        token = self._tokens.pop(access_token, None)
        if token is not None and token.refresh_token:
            self._refresh_index.pop(token.refresh_token, None)
        return token

    def save_token(self, token: Token) -> None:
        with self._lock:
            self._insert(token)

    def get_token_by_access_token(self, access_token: str) -> Token | None:
        with self._lock:
            return self._tokens.get(access_token)

    def get_token_by_refresh_token(self, refresh_token: str) -> Token | None:
        with self._lock:
            access_token = self._refresh_index.get(refresh_token)
            if access_token is None:
                return None
            return self._tokens.get(access_token)

    def delete_token(self, access_token: str) -> bool:
        with self._lock:
            return self._remove(access_token) is not None

    def rotate_token(self, old_refresh_token: str, replacement: Token) -> bool:
        with self._lock:
            access_token = self._refresh_index.get(old_refresh_token)
            if access_token is None:
                return False
            self._remove(access_token)
            self._insert(replacement)
            return True

    def list_client_tokens(self, client_id: str) -> list[Token]:
        with self._lock:
            return [t for t in self._tokens.values() if t.client_id == client_id]

    def _delete_where(self, predicate) -> int:
        with self._lock:
            doomed = [key for key, token in self._tokens.items() if predicate(token)]
            for key in doomed:
                self._remove(key)
            return len(doomed)

    def delete_client_tokens(self, client_id: str) -> int:
        return self._delete_where(lambda t: t.client_id == client_id)

    def delete_owner_tokens(self, owner_id: str) -> int:
        return self._delete_where(lambda t: t.owner_id == owner_id)

    def purge_expired(self, now: datetime) -> int:
        def spent(token: Token) -> bool:
            if token.expires_at >= now:
                return False
            return token.refresh_expires_at is None or token.refresh_expires_at < now

        removed = self._delete_where(spent)
        with self._lock:
            stale_codes = [c for c, record in self._codes.items() if record.expires_at < now]
            for c in stale_codes:
                del self._codes[c]
        removed += len(stale_codes)
        if removed:
            logger.info("storage_expired_purged", removed=removed)
        return removed
