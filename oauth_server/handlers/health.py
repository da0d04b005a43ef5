"""Health check endpoint handler."""

from datetime import UTC, datetime

from fastapi.responses import JSONResponse

from oauth_server import __version__
from oauth_server.engine import OAuthEngine
from oauth_server.models.health import HealthCheckResponse


async def health_check(engine: OAuthEngine) -> JSONResponse:
    """
    Handles the health check request.
    Reports the token format in effect and how many clients are registered.
    """
    response_model = HealthCheckResponse(
        status="healthy",
        version=__version__,
        timestamp=datetime.now(UTC),
        token_format=engine.config_provider.current().token_format,
        registered_clients=engine.clients.count(),
    )

    return JSONResponse(content=response_model.model_dump(mode="json"))
