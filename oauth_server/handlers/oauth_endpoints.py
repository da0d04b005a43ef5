"""
OAuth 2.0 protocol endpoints.

``/authorize`` issues authorization codes; ``/token``, ``/revoke`` and
``/introspect`` authenticate the calling client with HTTP Basic credentials and
are throttled by the auth-class rate limiter (see RateLimitMiddleware).
"""

from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, RedirectResponse, Response
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import URL

from oauth_server.auth.credentials import parse_basic_auth
from oauth_server.engine import OAuthEngine
from oauth_server.models.errors import InvalidRequestError, OAuthServerError
from oauth_server.utils.logging import get_logger

router = APIRouter()
logger = get_logger(__name__)

AUTH_RATE_LIMITED_PATHS = frozenset({"/token", "/revoke", "/introspect"})

NO_STORE_HEADERS = {"Cache-Control": "no-store", "Pragma": "no-cache"}


def _engine(request: Request) -> OAuthEngine:
    return request.app.state.engine


async def _read_params(request: Request) -> dict[str, Any]:
    """Request body as a flat dict; accepts JSON or form encoding."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except ValueError as e:
            raise InvalidRequestError("Request body is not valid JSON") from e
        if not isinstance(body, dict):
            raise InvalidRequestError("Request body must be a JSON object")
        return body
    if not await request.body():
        return {}
    form = await request.form()
    return {key: value for key, value in form.items() if isinstance(value, str)}


async def _authenticate(request: Request) -> tuple[str, str]:
    client_id, client_secret = parse_basic_auth(request.headers.get("authorization"))
    await run_in_threadpool(_engine(request).tokens.authenticate_client, client_id, client_secret)
    return client_id, client_secret


@router.get("/authorize")
async def authorize(request: Request) -> Response:
    """
    Authorization endpoint for the authorization code flow.

    Redirects back to the client's redirect URI with ``code`` (and ``state``
    when given). The resource owner is the configured default owner, since this
    server has no login UI.
    """
    engine = _engine(request)
    query = request.query_params
    client_id = query.get("client_id")
    redirect_uri = query.get("redirect_uri")

    if not client_id or not redirect_uri or query.get("response_type") != "code":
        return JSONResponse(
            {
                "message": "Invalid request. Required parameters: "
                "client_id, redirect_uri, response_type=code"
            },
            status_code=400,
        )

    config = engine.config_provider.current()
    try:
        code = await run_in_threadpool(
            engine.authorization_codes.issue,
            client_id,
            redirect_uri,
            request.app.state.config.default_owner_id,
            query.get("scope") or config.default_scope,
            config,
        )
    except OAuthServerError as e:
        if e.status_code >= 500:
            raise
        return JSONResponse({"message": e.message}, status_code=400)

    params = {"code": code}
    state = query.get("state")
    if state:
        params["state"] = state
    return RedirectResponse(str(URL(redirect_uri).include_query_params(**params)), status_code=302)


@router.post("/token")
async def token(request: Request) -> JSONResponse:
    """Token endpoint: authorization_code, refresh_token and client_credentials grants."""
    client_id, client_secret = parse_basic_auth(request.headers.get("authorization"))
    params = await _read_params(request)
    params.update(client_id=client_id, client_secret=client_secret)

    result = await run_in_threadpool(
        _engine(request).tokens.issue, params.get("grant_type"), params
    )
    return JSONResponse(result.model_dump(exclude_none=True), headers=NO_STORE_HEADERS)


@router.post("/revoke")
async def revoke(request: Request) -> Response:
    """
    Token revocation endpoint.

    Authenticated requests always get an empty 200, whether or not the token
    existed.
    """
    client_id, _ = await _authenticate(request)
    try:
        params = await _read_params(request)
    except InvalidRequestError:
        # an unreadable body names no token
        params = {}
    token_value = params.get("token")
    if isinstance(token_value, str) and token_value:
        await run_in_threadpool(_engine(request).revoker.revoke, token_value)
    else:
        logger.info("oauth_revoke_without_token", client_id=client_id)
    return Response(status_code=200)


@router.post("/introspect")
async def introspect(request: Request) -> JSONResponse:
    """Token introspection endpoint; inactive tokens are reported without a reason."""
    await _authenticate(request)
    params = await _read_params(request)
    token_value = params.get("token")
    if not isinstance(token_value, str) or not token_value:
        return JSONResponse({"active": False}, headers=NO_STORE_HEADERS)

    result = await run_in_threadpool(_engine(request).introspector.introspect, token_value)
    if not result.active:
        return JSONResponse({"active": False}, headers=NO_STORE_HEADERS)

    claims = result.claims or {}
    body = {
        "active": True,
        "client_id": claims.get("client_id"),
        "username": claims.get("sub") or claims.get("user_id"),
        "scope": claims.get("scope"),
        "exp": claims.get("exp"),
        "iat": claims.get("iat"),
        "iss": claims.get("iss"),
        "aud": claims.get("aud"),
    }
    return JSONResponse(
        {key: value for key, value in body.items() if value is not None}, headers=NO_STORE_HEADERS
    )
