"""
Application factory - creates and configures the FastAPI application.
This isolates all initialization logic from main.py.
"""
import os
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from dailyops.api.all_routes import router as all_routes_router
from dailyops.dependencies.services import get_services
from dailyops.exceptions.handlers import setup_exception_handlers
from dailyops.middleware.logging_setup import setup_logging
from dailyops.middleware.setup import setup_middleware
from dailyops.tracing import instrument_fastapi, setup_tracing

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan."""
    # Startup
    logger.info("Application starting up...")

    # Database schema and services are created on first access
    services = get_services()
    logger.info(f"Services initialized (database: {services.db.db_path})")

    # Initialize and enable distributed tracing
    try:
        setup_tracing()
        instrument_fastapi(app)
        logger.info("Distributed tracing enabled")
    except Exception:
        logger.warning("Failed to initialize tracing, continuing without it", exc_info=True)

    yield

    # Shutdown
    logger.info("Application shutting down...")
    services.cache.clear()
    logger.info("Shutdown complete")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI app instance ready to run.
    """
    setup_logging(os.getenv("LOG_LEVEL", "INFO"))

    app = FastAPI(
        title="Daily Operations Checklist",
        description="Recurring daily task checklists per site, with audit trail and day rollover",
        version="0.1.0",
        lifespan=lifespan
    )

    # Setup middleware (MetricsMiddleware with request ids)
    setup_middleware(app)

    # Setup exception handlers
    setup_exception_handlers(app)

    app.include_router(all_routes_router)

    return app
