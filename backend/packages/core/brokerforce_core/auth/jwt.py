"""
JWT token utilities.

Issues and verifies the HS256 tokens the API hands to clients: short-lived
access tokens, refresh tokens, and link tokens that prove a completed
external login.
"""

from datetime import UTC, datetime, timedelta
from typing import Literal

from jose import JWTError, jwt
from pydantic import BaseModel, ValidationError

TokenType = Literal["access", "refresh", "link"]


class JWTConfig(BaseModel):
    """JWT signing configuration."""

    secret_key: str
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 30
    refresh_token_expire_days: int = 7
    link_token_expire_minutes: int = 10


class TokenData(BaseModel):
    """Decoded token claims."""

    sub: str
    exp: int
    iat: int
    type: TokenType
    email: str | None = None


def _create_token(
    subject: str,
    token_type: TokenType,
    expires_delta: timedelta,
    config: JWTConfig,
    extra_claims: dict[str, str] | None = None,
) -> str:
    now = datetime.now(UTC)
    claims: dict[str, str | int] = {
        "sub": subject,
        "type": token_type,
        "iat": int(now.timestamp()),
        "exp": int((now + expires_delta).timestamp()),
    }
    if extra_claims:
        claims.update(extra_claims)
    return jwt.encode(claims, config.secret_key, algorithm=config.algorithm)


def create_access_token(user_id: str, config: JWTConfig) -> str:
    """
    Create an access token.

    Args:
        user_id: User identifier stored in ``sub``.
        config: JWT configuration.

    Returns:
        Encoded JWT.
    """
    return _create_token(
        user_id, "access", timedelta(minutes=config.access_token_expire_minutes), config
    )


def create_refresh_token(user_id: str, config: JWTConfig) -> str:
    """
    Create a refresh token.

    Args:
        user_id: User identifier stored in ``sub``.
        config: JWT configuration.

    Returns:
        Encoded JWT.
    """
    return _create_token(
        user_id, "refresh", timedelta(days=config.refresh_token_expire_days), config
    )


def create_link_token(external_id: str, email: str, config: JWTConfig) -> str:
    """
    Create a link token asserting a verified external identity.

    Args:
        external_id: Subject id from the identity provider.
        email: Email the provider asserted for that subject.
        config: JWT configuration.

    Returns:
        Encoded JWT.
    """
    return _create_token(
        external_id,
        "link",
        timedelta(minutes=config.link_token_expire_minutes),
        config,
        extra_claims={"email": email},
    )


def verify_token(token: str, config: JWTConfig) -> TokenData | None:
    """
    Verify and decode a token.

    Args:
        token: Encoded JWT.
        config: JWT configuration.

    Returns:
        Decoded claims, or None if the token is invalid or expired.
    """
    try:
        payload = jwt.decode(token, config.secret_key, algorithms=[config.algorithm])
        return TokenData.model_validate(payload)
    except (JWTError, ValidationError):
        return None
