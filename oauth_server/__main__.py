"""Entry point for running the OAuth token server."""

import uvicorn

from oauth_server.config import get_config
from oauth_server.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)


def main() -> None:
    """Entry point for running the server."""
    config = get_config()
    configure_logging(config.log_level)

    logger.info("oauth_server_starting", host=config.server_host, port=config.server_port)

    uvicorn.run(
        "oauth_server.server:create_app",
        factory=True,
        host=config.server_host,
        port=config.server_port,
        log_config=None,  # Use our custom structlog configuration
        access_log=False,
    )


if __name__ == "__main__":
    main()
