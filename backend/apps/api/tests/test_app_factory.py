"""Tests for FastAPI app factory behavior."""

from brokerforce_api.main import create_app


def _route_paths(app) -> set[str]:
    return set(app.openapi()["paths"])


def test_create_app_mounts_auth_routes_under_prefix() -> None:
    paths = _route_paths(create_app())

    assert {
        "/api/auth/register",
        "/api/auth/login",
        "/api/auth/check-username/{username}",
        "/api/auth/google",
        "/api/auth/google/callback",
        "/api/auth/refresh",
        "/api/auth/logout",
        "/api/auth/me",
        "/api/health",
    } <= paths


def test_create_app_returns_independent_instances() -> None:
    app_one = create_app()
    app_two = create_app()

    assert app_one is not app_two
    assert app_one.router is not app_two.router
