"""OAuth 2.0 Authorization Server Metadata (RFC 8414)."""

from typing import Any

from fastapi import APIRouter, Request

from oauth_server.models.auth import GrantType

router = APIRouter()


@router.get("/.well-known/oauth-authorization-server", include_in_schema=False)
async def get_authorization_server_metadata(request: Request) -> dict[str, Any]:
    """
    Describe this authorization server's endpoints and capabilities.

    Built from the current configuration snapshot, so an issuer change made
    through the admin API is reflected immediately.
    """
    config = request.app.state.config
    snapshot = request.app.state.engine.config_provider.current()
    base_url = config.public_base_url.rstrip("/")

    return {
        "issuer": snapshot.issuer,
        "authorization_endpoint": f"{base_url}/authorize",
        "token_endpoint": f"{base_url}/token",
        "revocation_endpoint": f"{base_url}/revoke",
        "introspection_endpoint": f"{base_url}/introspect",
        "response_types_supported": ["code"],
        "grant_types_supported": [grant.value for grant in GrantType],
        "token_endpoint_auth_methods_supported": ["client_secret_basic"],
        "revocation_endpoint_auth_methods_supported": ["client_secret_basic"],
        "introspection_endpoint_auth_methods_supported": ["client_secret_basic"],
        "scopes_supported": [snapshot.default_scope],
    }
