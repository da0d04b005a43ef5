"""
Sample resource endpoints and the administrative configuration API.

Everything here except ``/api/status`` and ``/api/v1/products`` sits behind
OAuthMiddleware and receives the validated token as an AuthContext.
"""

from datetime import UTC, datetime
from typing import Any, Literal

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field, ValidationError
from starlette.concurrency import run_in_threadpool

from oauth_server.auth.validation import check_scopes
from oauth_server.middleware.oauth import get_auth_context
from oauth_server.models.auth import AuthContext, OAuthConfig
from oauth_server.models.errors import InvalidRequestError
from oauth_server.utils.logging import get_logger

router = APIRouter()
logger = get_logger(__name__)

PUBLIC_PATHS = frozenset({"/api/status", "/api/v1/products"})
API_RATE_LIMITED_PATHS = frozenset({"/api/v1/products"})

PRODUCTS = [
    {"id": 1, "name": "Product 1", "price": 9.99},
    {"id": 2, "name": "Product 2", "price": 19.99},
    {"id": 3, "name": "Product 3", "price": 29.99},
]


class OAuthConfigUpdate(BaseModel):
    """Partial update of the token engine settings; omitted fields are unchanged."""

    access_token_lifetime: int | None = Field(None, ge=1)
    refresh_token_lifetime: int | None = Field(None, ge=1)
    authorization_code_lifetime: int | None = Field(None, ge=1)
    token_format: Literal["jwt", "opaque"] | None = None
    issuer: str | None = None
    audience: str | None = None
    default_scope: str | None = None


def default_scope_required(
    request: Request, auth_context: AuthContext = Depends(get_auth_context)
) -> AuthContext:
    """Requires the baseline scope of the current configuration."""
    check_scopes(auth_context.claims, [request.app.state.engine.config_provider.current().default_scope])
    return auth_context


@router.get("/api/status")
async def api_status() -> dict[str, str]:
    return {"status": "ok", "time": datetime.now(UTC).isoformat()}


@router.get("/api/v1/products")
async def list_products() -> dict[str, Any]:
    """Public endpoint, throttled by the api-class limiter only."""
    return {"products": PRODUCTS}


@router.post("/api/v1/auth")
async def authenticated_ping(auth_context: AuthContext = Depends(get_auth_context)) -> dict[str, Any]:
    return {
        "message": "Authentication successful",
        "userId": auth_context.user_id,
        "scopes": " ".join(auth_context.scopes),
    }


@router.get("/api/v1/userinfo")
async def userinfo(auth_context: AuthContext = Depends(default_scope_required)) -> dict[str, Any]:
    return {
        "sub": auth_context.user_id,
        "client_id": auth_context.client_id,
        "scope": " ".join(auth_context.scopes),
    }


@router.get("/api/admin/oauth-config")
async def get_oauth_config(
    request: Request, _: AuthContext = Depends(get_auth_context)
) -> OAuthConfig:
    return request.app.state.engine.config_provider.current()


@router.put("/api/admin/oauth-config")
async def update_oauth_config(
    update: OAuthConfigUpdate, request: Request, auth_context: AuthContext = Depends(get_auth_context)
) -> OAuthConfig:
    changes = update.model_dump(exclude_unset=True, exclude_none=True)
    try:
        snapshot = request.app.state.engine.config_provider.update(**changes)
    except ValidationError as e:
        raise InvalidRequestError("Invalid OAuth configuration") from e
    logger.info("oauth_config_changed_via_api", client_id=auth_context.client_id, fields=sorted(changes))
    return snapshot


@router.delete("/api/admin/clients/{client_id}/tokens")
async def revoke_client_tokens(
    client_id: str, request: Request, _: AuthContext = Depends(get_auth_context)
) -> dict[str, Any]:
    """Revoke every token held by a client, e.g. after deactivating it."""
    revoked = await run_in_threadpool(request.app.state.engine.revoker.revoke_client_tokens, client_id)
    return {"client_id": client_id, "revoked": revoked}
