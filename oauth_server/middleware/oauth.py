import time
from datetime import UTC, datetime

from fastapi import Depends, Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from oauth_server.auth.credentials import fingerprint
from oauth_server.auth.validation import check_scopes, token_scopes
from oauth_server.models.auth import AuthContext
from oauth_server.models.errors import TokenValidationError
from oauth_server.utils.context import auth_context_var
from oauth_server.utils.logging import get_logger

logger = get_logger(__name__)

# Constants
OAUTH_VALIDATION_SLOW_MS = 50

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


def _unauthorized(message: str, error: str | None = None) -> JSONResponse:
    """Builds a 401 response; ``error`` is only set once a token was actually presented."""
    content = {"message": message}
    challenge = "Bearer"
    if error:
        content["error"] = error
        challenge = f'Bearer error="{error}"'
    return JSONResponse(content=content, status_code=401, headers={"WWW-Authenticate": challenge})


def build_auth_context(token: str, claims: dict) -> AuthContext:
    exp = claims.get("exp")
    return AuthContext(
        is_valid=True,
        token_hash=fingerprint(token),
        scopes=token_scopes(claims),
        expires_at=datetime.fromtimestamp(exp, tz=UTC) if isinstance(exp, (int, float)) else None,
        client_id=claims.get("client_id"),
        user_id=claims.get("sub") or claims.get("user_id"),
        claims=claims,
    )


class OAuthMiddleware(BaseHTTPMiddleware):
    """
    Bearer token validation for protected resources.

    Every path not listed in ``exclude_paths`` requires ``Authorization: Bearer
    <token>``. The token is checked with the engine's TokenValidator found on
    ``app.state.engine``. Every validation failure gets the same 401 response.
    """

    def __init__(self, app: ASGIApp, exclude_paths: list[str] | None = None) -> None:
        super().__init__(app)
        self.exclude_paths = set(exclude_paths or [])
        logger.info("oauth_middleware_initialized", exclude_paths=sorted(self.exclude_paths))

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path in self.exclude_paths:
            return await call_next(request)

        authorization_header = request.headers.get("authorization")
        if not authorization_header:
            return _unauthorized("Authorization header is required")

        scheme, _, bearer_token = authorization_header.partition(" ")
        if scheme != "Bearer" or not bearer_token or " " in bearer_token:
            return _unauthorized("Authorization header must use Bearer scheme")

        engine = request.app.state.engine
        start_time = time.monotonic()
        try:
            claims = engine.validator.validate(bearer_token)
        except TokenValidationError as e:
            logger.info(
                "oauth_bearer_rejected",
                token_hash=fingerprint(bearer_token),
                reason=type(e).__name__,
                path=request.url.path,
            )
            return _unauthorized("Invalid access token", "invalid_token")

        duration_ms = (time.monotonic() - start_time) * 1000
        if duration_ms > OAUTH_VALIDATION_SLOW_MS:
            logger.warning(
                "oauth_validation_performance_alert",
                duration_ms=round(duration_ms, 2),
                threshold_ms=OAUTH_VALIDATION_SLOW_MS,
            )

        auth_context = build_auth_context(bearer_token, claims)
        request.state.auth_context = auth_context
        reset = auth_context_var.set(auth_context)
        try:
            response = await call_next(request)
        finally:
            auth_context_var.reset(reset)

        response.headers.update(SECURITY_HEADERS)
        return response


def get_auth_context(request: Request) -> AuthContext:
    """FastAPI dependency returning the context attached by OAuthMiddleware."""
    auth_context = getattr(request.state, "auth_context", None)
    if auth_context is None:
        raise TokenValidationError("Access token is required")
    return auth_context


def require_scopes(*scopes: str):
    """FastAPI dependency factory enforcing that the bearer token grants ``scopes``."""

    def dependency(auth_context: AuthContext = Depends(get_auth_context)) -> AuthContext:
        check_scopes(auth_context.claims, scopes)
        return auth_context

    return dependency
