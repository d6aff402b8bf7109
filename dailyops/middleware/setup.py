"""
Middleware setup and configuration.
"""
from dailyops.monitoring import MetricsMiddleware


def setup_middleware(app):
    """Set up all middleware for the FastAPI application."""
    # Add monitoring middleware (must be added before routes)
    app.add_middleware(MetricsMiddleware)
