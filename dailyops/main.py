"""
Daily operations checklist service - REST API.

Main entry point. All initialization logic is in app/factory.py.
"""
import logging
import uvicorn

from dailyops.app import create_app
from dailyops.config import Settings

# Get logger (logging is configured in app/factory.py)
logger = logging.getLogger(__name__)

# Create app instance for testing and running
app = create_app()


def run() -> None:
    """Run the service with uvicorn."""
    settings = Settings.from_env()
    config = uvicorn.Config(
        app,
        host="0.0.0.0",
        port=settings.service_port,
        log_level=settings.log_level.lower(),
        access_log=True,
        # Graceful shutdown settings
        timeout_keep_alive=30,
        timeout_graceful_shutdown=30,
    )
    server = uvicorn.Server(config)

    try:
        server.run()
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, shutting down...")
    finally:
        # Cleanup is handled by lifespan context manager in app/factory.py
        logger.info("Service stopped")


if __name__ == "__main__":
    run()
