"""
BrokerForce API - FastAPI application entry point.

This module initializes the FastAPI application and configures
middleware, routers, and lifecycle events.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from brokerforce_core import get_logger, init_logging

from .config import settings
from .routers import auth

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifecycle manager.

    Opens the database engine and the Redis client on startup and releases
    both on shutdown.

    Args:
        app: The FastAPI application instance.

    Yields:
        None during application runtime.
    """
    from brokerforce_database.session import close_database, init_database

    init_logging(settings.log_level)
    logger.info("Starting BrokerForce API", extra={"version": settings.version})
    init_database(settings.database_url, echo=settings.debug)

    app.state.redis = aioredis.from_url(settings.redis_url, decode_responses=True)
    logger.info("Redis client initialized")

    yield

    await app.state.redis.aclose()
    await close_database()
    logger.info("Shutting down BrokerForce API")


def create_app() -> FastAPI:
    """
    Build the FastAPI application.

    Returns:
        Configured application instance.
    """
    application = FastAPI(
        title=settings.app_name,
        description="BrokerForce - account and sign-in API",
        version=settings.version,
        lifespan=lifespan,
        docs_url="/api/docs" if settings.debug else None,
        redoc_url="/api/redoc" if settings.debug else None,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])

    @application.get("/api/health")
    async def health_check() -> dict[str, str]:
        """
        Health check endpoint.

        Returns:
            Dictionary containing service status and version.
        """
        return {"status": "healthy", "version": settings.version}

    return application


app = create_app()
