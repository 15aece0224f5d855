"""
Base authentication provider interface.

This module defines the abstract base class for all authentication providers.
"""

from abc import ABC, abstractmethod
from typing import Any, TypedDict


class AuthResult(TypedDict):
    """Standard authentication result returned by all providers."""

    user_info: dict[str, Any]
    provider_user_id: str
    email: str | None  # None when the provider withheld the email scope
    name: str | None
    avatar_url: str | None
    email_verified: bool
    metadata: dict[str, Any]


class AuthProvider(ABC):
    """
    Abstract base class for authentication providers.

    Providers only establish who the caller is. Deciding which user row that
    identity maps to is the job of ``IdentityService``.
    """

    def __init__(self, provider_id: str, config: dict[str, Any]) -> None:
        """
        Initialize authentication provider.

        Args:
            provider_id: Provider identifier (e.g. 'local', 'google').
            config: Provider-specific configuration dictionary.
        """
        self.provider_id = provider_id
        self.config = config

    @abstractmethod
    async def authenticate(self, credentials: dict[str, Any]) -> AuthResult:
        """
        Authenticate with provider-specific credentials.

        Args:
            credentials: Username/password, OAuth code, etc.

        Returns:
            AuthResult describing the authenticated identity.

        Raises:
            ValueError: If credentials are missing or rejected.
        """

    @abstractmethod
    async def validate_config(self) -> bool:
        """
        Validate provider configuration.

        Raises:
            ValueError: If configuration is invalid.
        """

    async def prepare(self) -> None:
        """Load any remote metadata needed before building authorization URLs."""
        return None

    @abstractmethod
    def get_authorization_url(
        self,
        state: str,
        redirect_uri: str,
        nonce: str | None = None,
        code_challenge: str | None = None,
    ) -> str | None:
        """
        Get the authorization redirect URL.

        Returns:
            URL for redirect-based providers, None otherwise.
        """

    async def aclose(self) -> None:
        """Release network resources held by the provider."""
        return None

    @property
    def supports_registration(self) -> bool:
        """Whether this provider accepts new local registrations."""
        return False
