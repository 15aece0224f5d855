"""
Authentication provider configuration.

This module provides configuration settings for authentication providers
loaded from environment variables.
"""

from pathlib import Path
from typing import Any

from pydantic_settings import BaseSettings, SettingsConfigDict

# Find .env file in project root
_env_file = Path(__file__).parent.parent.parent.parent.parent / ".env"

GOOGLE_ISSUER = "https://accounts.google.com"


class AuthProviderConfig(BaseSettings):
    """
    Authentication provider configuration from environment variables.

    All settings are prefixed with AUTH_ in environment.
    """

    model_config = SettingsConfigDict(
        env_prefix="AUTH_",
        env_file=str(_env_file) if _env_file.exists() else None,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Local provider (username/password)
    local_enabled: bool = True
    local_allow_registration: bool = True

    # OIDC provider, Google by default
    oidc_enabled: bool = False
    oidc_provider_name: str = "Google"
    oidc_client_id: str = ""
    oidc_client_secret: str = ""
    oidc_issuer: str = GOOGLE_ISSUER
    oidc_discovery_url: str = ""  # Optional, defaults to {issuer}/.well-known/openid-configuration
    oidc_scopes: str = "openid email profile"
    oidc_redirect_uri: str = ""  # e.g. "http://localhost:3001/api/auth/google/callback"
    oidc_jwks_cache_ttl_seconds: int = 86400
    oidc_rate_limit_window_seconds: int = 60
    oidc_authorize_rate_limit: int = 10
    oidc_callback_rate_limit: int = 5

    # Lifetime of the token proving a completed external login, used to confirm linking
    link_token_expire_minutes: int = 10

    def local_provider_config(self) -> dict[str, Any]:
        """Build the provider config dict consumed by ``LocalAuthProvider``."""
        return {"allow_registration": self.local_allow_registration}

    def oidc_provider_config(self) -> dict[str, Any]:
        """
        Build the provider config dict consumed by ``OIDCProvider``.

        Returns:
            Provider configuration dictionary.
        """
        config: dict[str, Any] = {
            "client_id": self.oidc_client_id,
            "client_secret": self.oidc_client_secret,
            "issuer": self.oidc_issuer,
            "scopes": self.oidc_scopes.split(),
            "redirect_uri": self.oidc_redirect_uri,
            "jwks_cache_ttl_seconds": self.oidc_jwks_cache_ttl_seconds,
        }
        if self.oidc_discovery_url:
            config["discovery_url"] = self.oidc_discovery_url
        return config


# Global instance
auth_provider_config = AuthProviderConfig()
