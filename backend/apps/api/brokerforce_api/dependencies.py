"""
FastAPI dependencies.

Provides dependency injection for database sessions, Redis, authentication and services.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from brokerforce_core.auth import JWTConfig
from brokerforce_core.config import auth_provider_config
from brokerforce_core.exceptions import PersistenceError
from brokerforce_core.schemas import UserResponse
from brokerforce_core.services import AuthService
from brokerforce_database.session import get_session

from .config import settings
from .errors import to_http_exception

# Security scheme for JWT bearer tokens
security = HTTPBearer(auto_error=False)


def get_jwt_config() -> JWTConfig:
    """
    Get JWT configuration.

    Returns:
        JWT configuration instance.
    """
    return JWTConfig(
        secret_key=settings.secret_key,
        algorithm=settings.jwt_algorithm,
        access_token_expire_minutes=settings.jwt_access_token_expire_minutes,
        refresh_token_expire_days=settings.jwt_refresh_token_expire_days,
        link_token_expire_minutes=auth_provider_config.link_token_expire_minutes,
    )


async def get_redis_pool(request: Request) -> Redis:
    """
    Get the Redis client created at startup.

    Raises:
        RuntimeError: If Redis was not initialized.
    """
    redis: Redis | None = getattr(request.app.state, "redis", None)
    if redis is None:
        raise RuntimeError("Redis pool not initialized")
    return redis


def get_auth_service(
    session: Annotated[AsyncSession, Depends(get_session)],
    jwt_config: Annotated[JWTConfig, Depends(get_jwt_config)],
) -> AuthService:
    """Get authentication service instance."""
    provider_configs = {
        "local": auth_provider_config.local_provider_config(),
        "google": auth_provider_config.oidc_provider_config(),
    }
    return AuthService(session, jwt_config, provider_configs=provider_configs)


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> UserResponse:
    """
    Get current authenticated user from the bearer token.

    Raises:
        HTTPException: If the token is missing, invalid, or the user is gone.
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return await auth_service.get_current_user(credentials.credentials)
    except PersistenceError as e:
        raise to_http_exception(e)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )
