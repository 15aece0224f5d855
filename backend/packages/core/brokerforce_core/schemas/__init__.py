"""
Pydantic schemas for API requests and responses.
"""

from .auth import (
    AuthorizeResponse,
    ExternalLoginResponse,
    LoginRequest,
    RefreshTokenRequest,
    RegisterRequest,
    RegisterResponse,
    TokenResponse,
    UsernameAvailability,
)
from .identity import ExternalAssertion, ExternalProfile, LinkCandidate, LocalRegistration
from .user import UserResponse

__all__ = [
    # Auth
    "AuthorizeResponse",
    "ExternalLoginResponse",
    "LoginRequest",
    "RefreshTokenRequest",
    "RegisterRequest",
    "RegisterResponse",
    "TokenResponse",
    "UsernameAvailability",
    # Identity
    "ExternalAssertion",
    "ExternalProfile",
    "LinkCandidate",
    "LocalRegistration",
    # User
    "UserResponse",
]
