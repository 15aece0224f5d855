"""
Local username/password authentication provider.
"""

from typing import Any

from brokerforce_core.exceptions import ValidationError

from .base import AuthProvider, AuthResult


class LocalAuthProvider(AuthProvider):
    """
    Local username/password provider.

    Only checks that both credentials were supplied; the password is compared
    against the stored hash by ``IdentityService`` once the row is loaded.
    """

    async def authenticate(self, credentials: dict[str, Any]) -> AuthResult:
        """
        Accept a username and password.

        Args:
            credentials: Dictionary containing 'username' and 'password'.

        Returns:
            AuthResult with the lower-cased username as provider user id and
            the password in metadata for verification.

        Raises:
            ValidationError: If username or password is missing.
        """
        username = credentials.get("username")
        password = credentials.get("password")

        if not username or not password:
            raise ValidationError("credentials", "Username and password are required")

        return {
            "user_info": {"username": username},
            "provider_user_id": str(username).lower(),
            "email": None,
            "name": None,
            "avatar_url": None,
            "email_verified": False,
            "metadata": {"password": password},
        }

    async def validate_config(self) -> bool:
        return True

    def get_authorization_url(
        self,
        state: str,
        redirect_uri: str,
        nonce: str | None = None,
        code_challenge: str | None = None,
    ) -> str | None:
        return None

    @property
    def supports_registration(self) -> bool:
        return bool(self.config.get("allow_registration", True))
