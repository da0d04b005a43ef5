"""
OAuth 2.0 authorization server ASGI application.

Serves the protocol endpoints (authorize, token, revoke, introspect), server
metadata, health, and the sample resource/admin API on a single port.
"""

import asyncio
import contextlib
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from oauth_server import __version__
from oauth_server.config import Config, get_config
from oauth_server.engine import OAuthEngine, build_engine
from oauth_server.handlers import discovery, oauth_endpoints, resources
from oauth_server.handlers.health import health_check
from oauth_server.middleware.oauth import OAuthMiddleware
from oauth_server.middleware.rate_limit import RateLimitMiddleware, RateLimitRule
from oauth_server.models.errors import (
    ErrorCode,
    ErrorDetail,
    InsufficientScopeError,
    InvalidClientError,
    OAuthServerError,
)
from oauth_server.utils.logging import get_logger

logger = get_logger(__name__)

UNAUTHENTICATED_PATHS = [
    "/health",
    "/authorize",
    "/.well-known/oauth-authorization-server",
    *sorted(oauth_endpoints.AUTH_RATE_LIMITED_PATHS),
    *sorted(resources.PUBLIC_PATHS),
]


async def _purge_periodically(engine: OAuthEngine, interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        engine.purge_expired()
        engine.auth_limiter.sweep()
        engine.api_limiter.sweep()


async def oauth_error_handler(request: Request, exc: OAuthServerError) -> JSONResponse:
    """Renders engine errors as ``{message, error}``."""
    if exc.status_code >= 500:
        logger.error("oauth_server_error", path=request.url.path, error=exc.message)

    required_scopes = None
    if isinstance(exc, InsufficientScopeError) and exc.details:
        required_scopes = exc.details["required_scopes"]
    detail = ErrorDetail(message=exc.message, error=exc.code, required_scopes=required_scopes)
    headers = {}
    if isinstance(exc, InvalidClientError):
        headers["WWW-Authenticate"] = "Basic"
    elif exc.code == ErrorCode.INVALID_TOKEN:
        headers["WWW-Authenticate"] = 'Bearer error="invalid_token"'
    return JSONResponse(
        detail.model_dump(mode="json", exclude_none=True),
        status_code=exc.status_code,
        headers=headers,
    )


def create_app(config: Config | None = None, engine: OAuthEngine | None = None) -> FastAPI:
    """
    Build the application.

    Args:
        config: Settings to use; loaded from the environment when omitted.
        engine: Pre-built engine (tests inject one with a fake clock).
    """
    config = config or get_config()
    engine = engine or build_engine(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "Starting OAuth token server",
            version=__version__,
            environment=config.environment,
            token_format=engine.config_provider.current().token_format,
            registered_clients=engine.clients.count(),
        )
        purger = asyncio.create_task(_purge_periodically(engine, config.purge_interval_seconds))
        yield
        purger.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await purger
        logger.info("Shutting down OAuth token server")

    app = FastAPI(
        title="OAuth 2.0 Token Server",
        description="Issues, validates, rotates and revokes OAuth 2.0 bearer tokens.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.engine = engine

    app.add_exception_handler(OAuthServerError, oauth_error_handler)

    app.include_router(discovery.router)
    app.include_router(oauth_endpoints.router)
    app.include_router(resources.router)

    @app.get("/health")
    async def health() -> JSONResponse:
        """Health check endpoint."""
        return await health_check(engine)

    # Starlette runs the last added middleware first: CORS, then throttling, then bearer auth.
    app.add_middleware(OAuthMiddleware, exclude_paths=UNAUTHENTICATED_PATHS)
    app.add_middleware(
        RateLimitMiddleware,
        rules=[
            RateLimitRule(oauth_endpoints.AUTH_RATE_LIMITED_PATHS, engine.auth_limiter),
            RateLimitRule(resources.API_RATE_LIMITED_PATHS, engine.api_limiter),
        ],
    )

    if config.cors_allowed_origins:
        origins = [origin.strip() for origin in config.cors_allowed_origins.split(",")]
        logger.info("CORS middleware enabled", allowed_origins=origins)
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    return app
