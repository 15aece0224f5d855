"""
Authentication service.

Handles registration, login, external provider login and token management.
Identity decisions are delegated to ``IdentityService``; this layer only
turns their results into tokens.
"""

from functools import partial
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from brokerforce_core import get_logger
from brokerforce_core.auth import (
    JWTConfig,
    create_access_token,
    create_link_token,
    create_refresh_token,
    verify_token,
)
from brokerforce_core.auth.credentials import EMAIL_MAX_LENGTH
from brokerforce_core.auth.providers import AuthProviderFactory, AuthResult
from brokerforce_core.exceptions import LinkVerificationError
from brokerforce_core.schemas import (
    ExternalAssertion,
    ExternalLoginResponse,
    ExternalProfile,
    LocalRegistration,
    LoginRequest,
    RegisterRequest,
    RegisterResponse,
    TokenResponse,
    UsernameAvailability,
    UserResponse,
)

from .identity_service import IdentityService

logger = get_logger(__name__)


class AuthService:
    """Authentication service."""

    def __init__(
        self,
        session: AsyncSession,
        jwt_config: JWTConfig,
        provider_configs: dict[str, dict[str, Any]] | None = None,
    ):
        """
        Initialize authentication service.

        Args:
            session: Database session.
            jwt_config: JWT configuration.
            provider_configs: Per-provider configuration keyed by provider id.
        """
        self.session = session
        self.jwt_config = jwt_config
        self.provider_configs = provider_configs or {}
        self.identity = IdentityService(session)

    def _issue_tokens(self, user_id: str) -> TokenResponse:
        return TokenResponse(
            access_token=create_access_token(user_id, self.jwt_config),
            refresh_token=create_refresh_token(user_id, self.jwt_config),
        )

    def _decode_link_token(self, link_token: str | None) -> ExternalAssertion | None:
        if not link_token:
            return None
        token_data = verify_token(link_token, self.jwt_config)
        if not token_data or token_data.type != "link" or not token_data.email:
            raise LinkVerificationError("Link confirmation expired, sign in with Google again")
        return ExternalAssertion(external_id=token_data.sub, email=token_data.email)

    async def register(self, request: RegisterRequest) -> RegisterResponse:
        """
        Register a local account, or link it to an external account.

        Args:
            request: Registration request data.

        Returns:
            Registration response. Tokens are omitted when linking needs confirmation.

        Raises:
            IdentityError: Subclasses describing why registration failed.
        """
        # Decoded only when the email turns out to belong to an external account
        assertion = partial(self._decode_link_token, request.link_token)
        result = await self.identity.register_local(
            LocalRegistration(
                username=request.username,
                password=request.password,
                first_name=request.first_name,
                last_name=request.last_name,
                email=request.email,
            ),
            link_to_external=request.link_to_external,
            external_assertion=assertion if request.link_to_external else None,
        )

        if result.needs_linking or result.user is None:
            return RegisterResponse(
                success=False,
                needs_linking=True,
                existing_account=result.existing_account,
                message=(
                    "An account using this email already signs in with Google. "
                    "Confirm to link your username and password to it."
                ),
            )

        message = (
            "Your username and password have been linked to your existing Google account. "
            "You can now sign in with either method."
            if result.linked
            else None
        )
        return RegisterResponse(
            linked=result.linked,
            user=UserResponse.model_validate(result.user),
            tokens=self._issue_tokens(result.user.id),
            message=message,
        )

    async def login(self, request: LoginRequest) -> tuple[UserResponse, TokenResponse]:
        """
        Authenticate with username and password.

        Args:
            request: Login request data.

        Returns:
            Tuple of (user response, token response).

        Raises:
            ValidationError: If a credential is missing.
            InvalidCredentialsError: If credentials are invalid.
        """
        provider = AuthProviderFactory.create("local", self.provider_configs.get("local"))
        auth_result = await provider.authenticate(
            {"username": request.username, "password": request.password}
        )
        user = await self.identity.authenticate_local(
            auth_result["provider_user_id"], auth_result["metadata"]["password"]
        )
        return UserResponse.model_validate(user), self._issue_tokens(user.id)

    @staticmethod
    def _to_external_profile(auth_result: AuthResult) -> ExternalProfile:
        email = auth_result.get("email")
        if not email:
            raise ValueError("Identity provider did not return an email address")
        if len(email) > EMAIL_MAX_LENGTH:
            raise ValueError("Identity provider returned an email address that is too long")
        return ExternalProfile(
            external_id=auth_result["provider_user_id"],
            email=email,
            display_name=auth_result.get("name"),
            avatar_url=auth_result.get("avatar_url"),
            email_verified=auth_result.get("email_verified", False),
        )

    async def login_with_provider(
        self, provider_id: str, credentials: dict[str, Any]
    ) -> ExternalLoginResponse:
        """
        Complete an external provider login.

        Args:
            provider_id: Provider identifier (e.g. 'google').
            credentials: Provider credentials (code, redirect_uri, nonce, code_verifier).

        Returns:
            User, tokens, and a link token proving this external login.

        Raises:
            ValueError: If the provider rejects the credentials.
            PersistenceError: If the store fails.
        """
        provider = AuthProviderFactory.create(provider_id, self.provider_configs.get(provider_id))
        try:
            auth_result = await provider.authenticate(credentials)
        finally:
            await provider.aclose()

        profile = self._to_external_profile(auth_result)
        user = await self.identity.resolve_external_login(profile)

        return ExternalLoginResponse(
            user=UserResponse.model_validate(user),
            tokens=self._issue_tokens(user.id),
            link_token=create_link_token(profile.external_id, profile.email, self.jwt_config),
        )

    async def refresh_access_token(self, refresh_token: str) -> TokenResponse:
        """
        Refresh access token using refresh token.

        Raises:
            ValueError: If refresh token is invalid or the user is gone.
        """
        token_data = verify_token(refresh_token, self.jwt_config)

        if not token_data or token_data.type != "refresh":
            raise ValueError("Invalid refresh token")

        user = await self.identity.get_user(token_data.sub)
        if user is None:
            raise ValueError("User not found")

        return self._issue_tokens(user.id)

    async def get_current_user(self, access_token: str) -> UserResponse:
        """
        Get current user from access token.

        Raises:
            ValueError: If token is invalid.
        """
        token_data = verify_token(access_token, self.jwt_config)

        if not token_data or token_data.type != "access":
            raise ValueError("Invalid access token")

        user = await self.identity.get_user(token_data.sub)
        if user is None:
            raise ValueError("User not found")

        return UserResponse.model_validate(user)

    async def check_username(self, username: str) -> UsernameAvailability:
        """Report whether a username is still available."""
        return await self.identity.check_username(username)
