"""Tests for AuthService token issuance and provider logins."""

from typing import Any

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from brokerforce_core.auth import JWTConfig, create_access_token, create_link_token, verify_token
from brokerforce_core.auth.providers import auth_factory
from brokerforce_core.exceptions import (
    InvalidCredentialsError,
    LinkVerificationError,
    ValidationError,
)
from brokerforce_core.schemas import LoginRequest, RegisterRequest
from brokerforce_core.services.auth_service import AuthService


class _FakeGoogleProvider:
    def __init__(self, result: dict[str, Any] | None = None, error: str | None = None):
        self.result = result or {
            "user_info": {"sub": "g-001"},
            "provider_user_id": "g-001",
            "email": "alice@x.io",
            "name": "Alice Doe",
            "avatar_url": "https://img/a.png",
            "email_verified": True,
            "metadata": {},
        }
        self.error = error
        self.closed = False

    async def authenticate(self, _credentials: dict[str, Any]) -> dict[str, Any]:
        if self.error:
            raise ValueError(self.error)
        return self.result

    async def aclose(self) -> None:
        self.closed = True


def _jwt_config() -> JWTConfig:
    return JWTConfig(secret_key="test-secret-key" + "0" * 32, algorithm="HS256")


def _register_request(**overrides: Any) -> RegisterRequest:
    fields: dict[str, Any] = {
        "username": "alice1",
        "password": "Secret1!x",
        "first_name": "Al",
        "last_name": "Ice",
        "email": "alice@x.io",
    }
    fields.update(overrides)
    return RegisterRequest(**fields)


def _patch_provider(monkeypatch: pytest.MonkeyPatch, provider: _FakeGoogleProvider) -> None:
    original_create = auth_factory.AuthProviderFactory.create

    def _create(provider_id: str, config: dict[str, Any] | None = None):
        if provider_id == "google":
            return provider
        return original_create(provider_id, config)

    monkeypatch.setattr(auth_factory.AuthProviderFactory, "create", _create)


GOOGLE_CREDENTIALS = {
    "code": "code",
    "redirect_uri": "http://localhost/callback",
    "nonce": "nonce",
    "code_verifier": "verifier",
}


@pytest.mark.asyncio
async def test_register_issues_tokens(db_session: AsyncSession) -> None:
    service = AuthService(db_session, _jwt_config())

    response = await service.register(_register_request())

    assert response.success is True
    assert response.linked is False
    assert response.user is not None
    assert response.user.username == "alice1"
    assert response.user.has_password is True
    assert response.user.external_linked is False
    assert response.tokens is not None
    token_data = verify_token(response.tokens.access_token, _jwt_config())
    assert token_data is not None
    assert token_data.sub == response.user.id


@pytest.mark.asyncio
async def test_login_returns_user_and_tokens(db_session: AsyncSession) -> None:
    service = AuthService(db_session, _jwt_config())
    await service.register(_register_request())

    user, tokens = await service.login(LoginRequest(username="Alice1", password="Secret1!x"))

    assert user.username == "alice1"
    assert tokens.token_type == "bearer"


@pytest.mark.asyncio
async def test_login_failures(db_session: AsyncSession) -> None:
    service = AuthService(db_session, _jwt_config())
    await service.register(_register_request())

    with pytest.raises(InvalidCredentialsError):
        await service.login(LoginRequest(username="alice1", password="Wrong1!xx"))
    with pytest.raises(ValidationError):
        await service.login(LoginRequest(username="alice1", password=""))


@pytest.mark.asyncio
async def test_login_with_provider_creates_user_and_link_token(
    db_session: AsyncSession, monkeypatch: pytest.MonkeyPatch
) -> None:
    provider = _FakeGoogleProvider()
    _patch_provider(monkeypatch, provider)
    service = AuthService(db_session, _jwt_config())

    response = await service.login_with_provider("google", GOOGLE_CREDENTIALS)

    assert response.user.email == "alice@x.io"
    assert response.user.external_linked is True
    assert response.user.has_password is False
    assert response.tokens.access_token
    link_data = verify_token(response.link_token, _jwt_config())
    assert link_data is not None
    assert link_data.type == "link"
    assert link_data.sub == "g-001"
    assert link_data.email == "alice@x.io"
    assert provider.closed is True


@pytest.mark.asyncio
async def test_login_with_provider_requires_email(
    db_session: AsyncSession, monkeypatch: pytest.MonkeyPatch
) -> None:
    provider = _FakeGoogleProvider(
        result={
            "user_info": {"sub": "g-002"},
            "provider_user_id": "g-002",
            "email": None,
            "name": None,
            "avatar_url": None,
            "email_verified": False,
            "metadata": {},
        }
    )
    _patch_provider(monkeypatch, provider)
    service = AuthService(db_session, _jwt_config())

    with pytest.raises(ValueError, match="did not return an email"):
        await service.login_with_provider("google", GOOGLE_CREDENTIALS)


@pytest.mark.asyncio
async def test_provider_failure_closes_provider(
    db_session: AsyncSession, monkeypatch: pytest.MonkeyPatch
) -> None:
    provider = _FakeGoogleProvider(error="Token verification failed")
    _patch_provider(monkeypatch, provider)
    service = AuthService(db_session, _jwt_config())

    with pytest.raises(ValueError, match="Token verification failed"):
        await service.login_with_provider("google", GOOGLE_CREDENTIALS)

    assert provider.closed is True


@pytest.mark.asyncio
async def test_register_against_google_account_then_link(
    db_session: AsyncSession, monkeypatch: pytest.MonkeyPatch
) -> None:
    _patch_provider(monkeypatch, _FakeGoogleProvider())
    service = AuthService(db_session, _jwt_config())
    google_login = await service.login_with_provider("google", GOOGLE_CREDENTIALS)

    pending = await service.register(_register_request())

    assert pending.success is False
    assert pending.needs_linking is True
    assert pending.tokens is None
    assert pending.existing_account is not None
    assert pending.existing_account.name == "Alice Doe"

    linked = await service.register(
        _register_request(link_to_external=True, link_token=google_login.link_token)
    )

    assert linked.success is True
    assert linked.linked is True
    assert linked.message
    assert linked.user is not None
    assert linked.user.id == google_login.user.id
    assert linked.user.first_name == "Alice"
    assert linked.user.has_password is True
    assert linked.user.external_linked is True


@pytest.mark.asyncio
async def test_link_without_token_is_rejected(
    db_session: AsyncSession, monkeypatch: pytest.MonkeyPatch
) -> None:
    _patch_provider(monkeypatch, _FakeGoogleProvider())
    service = AuthService(db_session, _jwt_config())
    await service.login_with_provider("google", GOOGLE_CREDENTIALS)

    with pytest.raises(LinkVerificationError):
        await service.register(_register_request(link_to_external=True))


@pytest.mark.asyncio
async def test_link_rejects_non_link_tokens(
    db_session: AsyncSession, monkeypatch: pytest.MonkeyPatch
) -> None:
    _patch_provider(monkeypatch, _FakeGoogleProvider())
    service = AuthService(db_session, _jwt_config())
    google_login = await service.login_with_provider("google", GOOGLE_CREDENTIALS)

    with pytest.raises(LinkVerificationError):
        await service.register(
            _register_request(
                link_to_external=True, link_token=google_login.tokens.access_token
            )
        )


@pytest.mark.asyncio
async def test_link_token_for_another_identity_is_rejected(
    db_session: AsyncSession, monkeypatch: pytest.MonkeyPatch
) -> None:
    _patch_provider(monkeypatch, _FakeGoogleProvider())
    service = AuthService(db_session, _jwt_config())
    await service.login_with_provider("google", GOOGLE_CREDENTIALS)
    foreign_token = create_link_token("g-404", "alice@x.io", _jwt_config())

    with pytest.raises(LinkVerificationError):
        await service.register(_register_request(link_to_external=True, link_token=foreign_token))


@pytest.mark.asyncio
async def test_fields_are_validated_before_link_token(db_session: AsyncSession) -> None:
    service = AuthService(db_session, _jwt_config())

    with pytest.raises(ValidationError) as exc_info:
        await service.register(
            _register_request(username="a", link_to_external=True, link_token="garbage")
        )

    assert exc_info.value.field == "username"


@pytest.mark.asyncio
async def test_link_token_unused_without_external_account(db_session: AsyncSession) -> None:
    service = AuthService(db_session, _jwt_config())

    response = await service.register(
        _register_request(link_to_external=True, link_token="garbage")
    )

    assert response.success is True
    assert response.linked is False
    assert response.user is not None
    assert response.user.external_linked is False


@pytest.mark.asyncio
async def test_long_provider_profile_fits_user_columns(
    db_session: AsyncSession, monkeypatch: pytest.MonkeyPatch
) -> None:
    provider = _FakeGoogleProvider(
        result={
            "user_info": {"sub": "g-003"},
            "provider_user_id": "g-003",
            "email": "long@x.io",
            "name": "A" * 150 + " " + "B" * 300,
            "avatar_url": "https://img/" + "a" * 2000,
            "email_verified": True,
            "metadata": {},
        }
    )
    _patch_provider(monkeypatch, provider)
    service = AuthService(db_session, _jwt_config())

    first = await service.login_with_provider("google", GOOGLE_CREDENTIALS)
    again = await service.login_with_provider("google", GOOGLE_CREDENTIALS)

    assert again.user.id == first.user.id
    assert again.user.first_name == "A" * 100
    assert again.user.last_name == "B" * 100
    assert again.user.name is not None and len(again.user.name) == 255
    assert again.user.avatar is None


@pytest.mark.asyncio
async def test_login_with_provider_rejects_oversized_email(
    db_session: AsyncSession, monkeypatch: pytest.MonkeyPatch
) -> None:
    provider = _FakeGoogleProvider(
        result={
            "user_info": {"sub": "g-004"},
            "provider_user_id": "g-004",
            "email": "a" * 250 + "@x.io",
            "name": None,
            "avatar_url": None,
            "email_verified": True,
            "metadata": {},
        }
    )
    _patch_provider(monkeypatch, provider)
    service = AuthService(db_session, _jwt_config())

    with pytest.raises(ValueError, match="too long"):
        await service.login_with_provider("google", GOOGLE_CREDENTIALS)


@pytest.mark.asyncio
async def test_refresh_and_current_user(db_session: AsyncSession) -> None:
    service = AuthService(db_session, _jwt_config())
    registered = await service.register(_register_request())
    assert registered.tokens is not None and registered.user is not None

    refreshed = await service.refresh_access_token(registered.tokens.refresh_token)
    current = await service.get_current_user(refreshed.access_token)

    assert current.id == registered.user.id


@pytest.mark.asyncio
async def test_token_types_are_not_interchangeable(db_session: AsyncSession) -> None:
    service = AuthService(db_session, _jwt_config())
    registered = await service.register(_register_request())
    assert registered.tokens is not None

    with pytest.raises(ValueError, match="Invalid refresh token"):
        await service.refresh_access_token(registered.tokens.access_token)
    with pytest.raises(ValueError, match="Invalid access token"):
        await service.get_current_user(registered.tokens.refresh_token)


@pytest.mark.asyncio
async def test_token_for_deleted_user(db_session: AsyncSession) -> None:
    service = AuthService(db_session, _jwt_config())
    token = create_access_token("no-such-user", _jwt_config())

    with pytest.raises(ValueError, match="User not found"):
        await service.get_current_user(token)
