"""
Compact HMAC-signed claim sets.

Tokens are HS256 JWS compact serializations::

    base64url(header) "." base64url(claims) "." base64url(HMAC-SHA256(secret, first two segments))

The codec only proves integrity. Expiry, issuer and audience are checked by
TokenValidator.
"""

import json
from typing import Any

from authlib.jose import JsonWebSignature
from authlib.jose.errors import BadSignatureError, JoseError

from oauth_server.models.errors import (
    InvalidSignatureError,
    MalformedPayloadError,
    MalformedTokenError,
)

ALGORITHM = "HS256"
HEADER = {"alg": ALGORITHM, "typ": "JWT"}


class SignedTokenCodec:
    """Encodes and verifies signed claim sets with a shared secret."""

    def __init__(self, secret: str | bytes) -> None:
        if not secret:
            raise ValueError("A signing secret is required")
        self._key = secret.encode("utf-8") if isinstance(secret, str) else secret
        self._jws = JsonWebSignature(algorithms=[ALGORITHM])

    def encode(self, claims: dict[str, Any]) -> str:
        payload = json.dumps(claims, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
        token = self._jws.serialize_compact(HEADER, payload, self._key)
        return token.decode("ascii")

    def decode(self, token: str) -> dict[str, Any]:
        """
        Verify ``token`` and return its claims.

        Raises:
            MalformedTokenError: not three segments, or an unreadable header.
            InvalidSignatureError: the signature does not match.
            MalformedPayloadError: the payload is not a JSON object.
        """
        if not isinstance(token, str) or token.count(".") != 2:
            raise MalformedTokenError("Invalid token format")

        try:
            data = self._jws.deserialize_compact(token, self._key)
        except BadSignatureError as e:
            raise InvalidSignatureError("Invalid token signature") from e
        except JoseError as e:
            raise MalformedTokenError(f"Invalid token format: {e}") from e

        try:
            claims = json.loads(data["payload"])
        except (UnicodeDecodeError, ValueError) as e:
            raise MalformedPayloadError("Failed to decode token payload") from e
        if not isinstance(claims, dict):
            raise MalformedPayloadError("Token payload is not a claim set")
        return claims
