"""
Authentication router.

Provides endpoints for registration, username/password login, Google sign-in,
token refresh and the current user profile. Each endpoint wraps exactly one
identity operation.
"""

from secrets import token_urlsafe
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from redis.asyncio import Redis

from brokerforce_core import get_logger
from brokerforce_core.auth.providers import AuthProviderFactory, OIDCProvider
from brokerforce_core.config import auth_provider_config
from brokerforce_core.exceptions import IdentityError, PersistenceError
from brokerforce_core.redis_keys import RedisKeys
from brokerforce_core.schemas import (
    AuthorizeResponse,
    ExternalLoginResponse,
    LoginRequest,
    RefreshTokenRequest,
    RegisterRequest,
    RegisterResponse,
    TokenResponse,
    UsernameAvailability,
    UserResponse,
)
from brokerforce_core.services import AuthService

from ..dependencies import get_auth_service, get_current_user, get_redis_pool
from ..errors import to_http_exception

logger = get_logger(__name__)

router = APIRouter()

LOCAL_PROVIDER_ID = "local"
GOOGLE_PROVIDER_ID = "google"


def _client_id(request: Request) -> str:
    return request.client.host if request.client else "unknown"


async def _enforce_rate_limit(redis: Redis, action: str, request: Request, limit: int) -> None:
    """
    Fixed-window rate limit per client and action.

    Raises:
        HTTPException: 429 with Retry-After once the window's budget is spent.
    """
    window = auth_provider_config.oidc_rate_limit_window_seconds
    key = RedisKeys.auth_rate_limit(action, _client_id(request))

    count = await redis.incr(key)
    if count == 1:
        await redis.expire(key, window)
    if count > limit:
        retry_after = await redis.ttl(key)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many requests, try again later",
            headers={"Retry-After": str(retry_after if retry_after > 0 else window)},
        )


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    data: RegisterRequest,
    response: Response,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> RegisterResponse:
    """
    Register a username/password account.

    When the email already belongs to a Google account the response carries
    ``needs_linking`` (status 200) and nothing is stored. Resubmitting with
    ``link_to_external`` and the ``link_token`` from a Google sign-in links the
    credential to that account.

    Raises:
        HTTPException: 400 for invalid input or conflicts, 401 when linking is
            not confirmed, 403 when registration is disabled.
    """
    local_provider = AuthProviderFactory.create(
        LOCAL_PROVIDER_ID, auth_provider_config.local_provider_config()
    )
    if not (auth_provider_config.local_enabled and local_provider.supports_registration):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Registration is disabled")

    try:
        result = await auth_service.register(data)
    except IdentityError as e:
        raise to_http_exception(e)

    if result.needs_linking:
        response.status_code = status.HTTP_200_OK
    return result


@router.post("/login")
async def login(
    data: LoginRequest,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> dict[str, UserResponse | TokenResponse]:
    """
    Authenticate with username and password.

    Raises:
        HTTPException: 401 for any credential mismatch.
    """
    if not auth_provider_config.local_enabled:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Password login is disabled")

    try:
        user, tokens = await auth_service.login(data)
    except IdentityError as e:
        raise to_http_exception(e)
    return {"user": user, "tokens": tokens}


@router.get("/check-username/{username}")
async def check_username(
    username: str,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> UsernameAvailability:
    """Check whether a username is still available."""
    try:
        return await auth_service.check_username(username)
    except IdentityError as e:
        raise to_http_exception(e)


@router.get("/google")
async def google_authorize(
    request: Request,
    response: Response,
    redis: Annotated[Redis, Depends(get_redis_pool)],
) -> AuthorizeResponse:
    """
    Start Google sign-in.

    Stores state, nonce and PKCE verifier for the callback and returns the
    URL the browser should be sent to.

    Raises:
        HTTPException: 404 if Google sign-in is disabled, 429 if rate limited,
            502 if the client is misconfigured or Google's discovery
            document cannot be loaded.
    """
    if not auth_provider_config.oidc_enabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Google sign-in is not enabled")

    await _enforce_rate_limit(
        redis, "authorize", request, auth_provider_config.oidc_authorize_rate_limit
    )

    provider = AuthProviderFactory.create(
        GOOGLE_PROVIDER_ID, auth_provider_config.oidc_provider_config()
    )
    try:
        await provider.validate_config()
        state = token_urlsafe(32)
        nonce = token_urlsafe(32)
        code_verifier, code_challenge = OIDCProvider.generate_pkce_pair()
        redirect_uri = auth_provider_config.oidc_redirect_uri or str(
            request.url_for("google_callback")
        )
        authorization_url = provider.get_authorization_url(
            state, redirect_uri, nonce=nonce, code_challenge=code_challenge
        )
    except ValueError as e:
        logger.warning("Google authorization unavailable", extra={"error": str(e)})
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY, detail="Google sign-in is unavailable"
        )
    finally:
        await provider.aclose()

    ttl = RedisKeys.OAUTH_STATE_TTL
    pipe = redis.pipeline(transaction=True)
    pipe.setex(RedisKeys.oauth_state(state), ttl, "1")
    pipe.setex(RedisKeys.oauth_nonce(state), ttl, nonce)
    pipe.setex(RedisKeys.oauth_code_verifier(state), ttl, code_verifier)
    await pipe.execute()

    response.headers["Cache-Control"] = "no-store"
    return AuthorizeResponse(authorization_url=authorization_url or "", state=state)


@router.get("/google/callback", name="google_callback")
async def google_callback(
    request: Request,
    redis: Annotated[Redis, Depends(get_redis_pool)],
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
    code: Annotated[str | None, Query()] = None,
    state: Annotated[str | None, Query()] = None,
    error: Annotated[str | None, Query()] = None,
) -> ExternalLoginResponse:
    """
    Complete Google sign-in.

    Consumes the pending state exactly once, verifies the ID token and
    resolves the Google identity to a user.

    Raises:
        HTTPException: 400 for provider errors or unknown state/nonce, 401 if
            verification fails, 429 if rate limited, 500 on storage failure.
    """
    if not auth_provider_config.oidc_enabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Google sign-in is not enabled")

    await _enforce_rate_limit(
        redis, "callback", request, auth_provider_config.oidc_callback_rate_limit
    )

    if error:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Google sign-in failed: {error}")
    if not code or not state:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing code or state")

    state_key = RedisKeys.oauth_state(state)
    nonce_key = RedisKeys.oauth_nonce(state)
    verifier_key = RedisKeys.oauth_code_verifier(state)

    pipe = redis.pipeline(transaction=True)
    pipe.exists(state_key)
    pipe.get(nonce_key)
    pipe.get(verifier_key)
    pipe.delete(state_key, nonce_key, verifier_key)
    state_exists, nonce, code_verifier, _ = await pipe.execute()

    if not state_exists:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired state")
    if not nonce:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired nonce")
    if not code_verifier:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired PKCE verifier"
        )

    redirect_uri = auth_provider_config.oidc_redirect_uri or str(request.url_for("google_callback"))
    try:
        return await auth_service.login_with_provider(
            GOOGLE_PROVIDER_ID,
            {
                "code": code,
                "redirect_uri": redirect_uri,
                "nonce": nonce,
                "code_verifier": code_verifier,
            },
        )
    except PersistenceError as e:
        raise to_http_exception(e)
    except ValueError as e:
        logger.info("Google sign-in rejected", extra={"reason": str(e)})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))


@router.post("/refresh")
async def refresh_token(
    data: RefreshTokenRequest,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> TokenResponse:
    """
    Refresh access token using refresh token.

    Raises:
        HTTPException: If refresh token is invalid or expired.
    """
    try:
        return await auth_service.refresh_access_token(data.refresh_token)
    except PersistenceError as e:
        raise to_http_exception(e)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))


@router.post("/logout")
async def logout() -> dict[str, bool | str]:
    """
    Log out.

    Tokens are stateless; the client discards them.
    """
    return {"success": True, "message": "Logged out successfully"}


@router.get("/me")
async def get_me(
    current_user: Annotated[UserResponse, Depends(get_current_user)],
) -> dict[str, UserResponse]:
    """Get current authenticated user information."""
    return {"user": current_user}
