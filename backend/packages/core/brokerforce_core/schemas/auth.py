"""
Authentication schemas.

Request and response models for the auth endpoints. Field rules are enforced
by the identity service so violations surface as 400s with a field name.
"""

from pydantic import BaseModel

from .identity import LinkCandidate
from .user import UserResponse


class RegisterRequest(BaseModel):
    """Local registration request."""

    username: str = ""
    password: str = ""
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    link_to_external: bool = False
    link_token: str | None = None


class LoginRequest(BaseModel):
    """Username/password login request."""

    username: str = ""
    password: str = ""


class RefreshTokenRequest(BaseModel):
    """Refresh token request."""

    refresh_token: str


class TokenResponse(BaseModel):
    """Token pair response."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class RegisterResponse(BaseModel):
    """
    Registration outcome.

    When ``needs_linking`` is set nothing was written: the email belongs to an
    external account and the caller must confirm linking.
    """

    success: bool = True
    linked: bool = False
    needs_linking: bool = False
    existing_account: LinkCandidate | None = None
    user: UserResponse | None = None
    tokens: TokenResponse | None = None
    message: str | None = None


class ExternalLoginResponse(BaseModel):
    """Result of a completed external login."""

    user: UserResponse
    tokens: TokenResponse
    link_token: str


class UsernameAvailability(BaseModel):
    """Username availability check result."""

    available: bool
    error: str | None = None


class AuthorizeResponse(BaseModel):
    """Authorization redirect for an external provider."""

    authorization_url: str
    state: str
