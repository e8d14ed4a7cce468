"""
Application factory for FastAPI.

This module provides the create_app() function that creates and configures
the FastAPI application instance.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.v1 import api_router
from app.routes import health_router
from core.config import settings
from core.instrumentator import instrumentator
from core.lifespan import lifespan
from core.middleware import CorrelationIdMiddleware


def create_app() -> FastAPI:
    """
    Application factory function.

    Creates and configures the FastAPI application with middleware, routes
    and instrumentation.

    Returns:
        FastAPI: Configured FastAPI application instance
    """
    app = FastAPI(
        title=settings.api.app_name,
        version=settings.api.app_version,
        description="Seat-based inventory for shared subscription accounts",
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors.origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "Accept", "Origin", "X-Correlation-ID"],
        expose_headers=["X-Correlation-ID"],
    )

    # Correlation id for every request's log lines
    app.add_middleware(CorrelationIdMiddleware)

    # Include routers
    app.include_router(health_router)
    app.include_router(api_router, prefix=settings.api.api_v1_prefix)

    # Instrumentation
    if settings.monitoring.enable_metrics:
        instrumentator.instrument(app)
        instrumentator.expose(app, endpoint="/metrics")

    return app
