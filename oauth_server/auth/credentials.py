"""Client secret hashing and HTTP credential parsing."""

import base64
import binascii
import hashlib
import secrets

import bcrypt

from oauth_server.models.errors import InvalidClientError

# bcrypt only looks at the first 72 bytes of its input
BCRYPT_MAX_BYTES = 72


def hash_secret(secret: str, rounds: int = 12) -> str:
    """Hash a client secret with a random salt."""
    secret_bytes = secret.encode("utf-8")[:BCRYPT_MAX_BYTES]
    return bcrypt.hashpw(secret_bytes, bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_secret(secret: str, secret_hash: str) -> bool:
    """Check a presented client secret against its stored hash."""
    if not secret or not secret_hash:
        return False
    secret_bytes = secret.encode("utf-8")[:BCRYPT_MAX_BYTES]
    try:
        return bcrypt.checkpw(secret_bytes, secret_hash.encode("utf-8"))
    except ValueError:
        # stored value is not a bcrypt hash
        return False


def generate_token(nbytes: int = 32) -> str:
    """Opaque high-entropy token value (URL safe)."""
    return secrets.token_urlsafe(nbytes)


def fingerprint(token: str) -> str:
    """Short, non-reversible token identifier for logs."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()[:8]


def parse_basic_auth(authorization_header: str | None) -> tuple[str, str]:
    """
    Extract ``(client_id, client_secret)`` from an ``Authorization: Basic`` header.

    Raises:
        InvalidClientError: header missing, not Basic, or not ``id:secret``.
    """
    if not authorization_header or not authorization_header.startswith("Basic "):
        raise InvalidClientError("Client credentials must be provided using Basic Authentication")

    encoded = authorization_header[len("Basic ") :].strip()
    try:
        decoded = base64.b64decode(encoded, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise InvalidClientError("Invalid client credentials format") from e

    client_id, sep, client_secret = decoded.partition(":")
    if not sep or not client_id or not client_secret:
        raise InvalidClientError("Invalid client credentials format")
    return client_id, client_secret
