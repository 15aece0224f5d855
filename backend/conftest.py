"""Global pytest fixtures for testing."""

import contextlib
import os
from collections.abc import AsyncGenerator
from typing import Any

import dotenv
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool, StaticPool

from brokerforce_api.main import app
from brokerforce_database import Base
from brokerforce_database.models import User
from brokerforce_database.session import get_session

with contextlib.suppress(OSError):
    dotenv.load_dotenv()

TEST_PASSWORD = "TestPass123!"


class MockRedis:
    """In-memory stand-in for the redis.asyncio client."""

    def __init__(self):
        self._store: dict[str, Any] = {}
        self._ttl: dict[str, int] = {}
        self._incr_counts: dict[str, int] = {}

    async def setex(self, key: str, ttl_seconds: int, value: Any) -> bool:
        self._store[key] = value
        self._ttl[key] = ttl_seconds
        return True

    async def exists(self, key: str) -> int:
        return 1 if key in self._store else 0

    async def get(self, key: str) -> Any:
        return self._store.get(key)

    async def delete(self, *keys: str) -> int:
        deleted = 0
        for key in keys:
            if key in self._store:
                deleted += 1
                self._store.pop(key, None)
                self._ttl.pop(key, None)
        return deleted

    async def incr(self, key: str) -> int:
        next_count = self._incr_counts.get(key, 0) + 1
        self._incr_counts[key] = next_count
        self._store[key] = next_count
        return next_count

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        if key not in self._store:
            return False
        self._ttl[key] = ttl_seconds
        return True

    async def ttl(self, key: str) -> int:
        return self._ttl.get(key, -1)

    def pipeline(self, transaction: bool = True) -> "MockRedisPipeline":
        return MockRedisPipeline(self)

    def reset(self) -> None:
        """Reset all in-memory redis state."""
        self._store.clear()
        self._ttl.clear()
        self._incr_counts.clear()

    def seed(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        """Seed redis key/value directly for tests."""
        self._store[key] = value
        if ttl_seconds is not None:
            self._ttl[key] = ttl_seconds

    def has_key(self, key: str) -> bool:
        """Return whether key exists in mock store."""
        return key in self._store

    def ttl_of(self, key: str) -> int | None:
        """Return the TTL recorded for a key."""
        return self._ttl.get(key)


class MockRedisPipeline:
    """Minimal async Redis pipeline used by auth tests."""

    def __init__(self, redis: MockRedis):
        self._redis = redis
        self._commands: list[tuple[str, tuple[Any, ...]]] = []

    def setex(self, key: str, ttl_seconds: int, value: Any) -> "MockRedisPipeline":
        self._commands.append(("setex", (key, ttl_seconds, value)))
        return self

    def exists(self, key: str) -> "MockRedisPipeline":
        self._commands.append(("exists", (key,)))
        return self

    def get(self, key: str) -> "MockRedisPipeline":
        self._commands.append(("get", (key,)))
        return self

    def delete(self, *keys: str) -> "MockRedisPipeline":
        self._commands.append(("delete", keys))
        return self

    async def execute(self) -> list[Any]:
        results: list[Any] = []
        for command_name, args in self._commands:
            method = getattr(self._redis, command_name)
            results.append(await method(*args))
        self._commands.clear()
        return results


# Global mock redis instance for testing
mock_redis = MockRedis()

# In-memory SQLite unless a real test database is configured
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")

# Safety check: ensure tests only run on a test database
if not TEST_DATABASE_URL.startswith("sqlite") and "test" not in TEST_DATABASE_URL:
    raise RuntimeError(
        f"Safety check failed: TEST_DATABASE_URL must point to a test database "
        f"(name should contain 'test'). Current: {TEST_DATABASE_URL}"
    )


def _create_test_engine() -> AsyncEngine:
    if TEST_DATABASE_URL.startswith("sqlite"):
        # One shared connection so every session sees the same in-memory database
        return create_async_engine(
            TEST_DATABASE_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_async_engine(TEST_DATABASE_URL, poolclass=NullPool)


@pytest_asyncio.fixture
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create a test database engine with a fresh schema."""
    engine = _create_test_engine()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return async_sessionmaker(bind=test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client with database and redis overrides."""
    from brokerforce_api.dependencies import get_redis_pool

    async def override_get_session():
        yield db_session

    async def override_get_redis_pool():
        return mock_redis

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_redis_pool] = override_get_redis_pool

    # Reset mock redis state before each test
    mock_redis.reset()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def test_mock_redis() -> MockRedis:
    """Provide access to the mock redis instance for testing."""
    return mock_redis


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    """Create a local test user."""
    from brokerforce_core.schemas import LocalRegistration
    from brokerforce_core.services import IdentityService

    service = IdentityService(db_session)
    result = await service.register_local(
        LocalRegistration(
            username="testuser",
            password=TEST_PASSWORD,
            first_name="Test",
            last_name="User",
            email="test@example.com",
        )
    )
    assert result.user is not None
    return result.user


@pytest_asyncio.fixture
async def auth_headers(test_user: User) -> dict[str, str]:
    """Generate auth headers for test user."""
    from brokerforce_api.dependencies import get_jwt_config
    from brokerforce_core.auth.jwt import create_access_token

    access_token = create_access_token(test_user.id, get_jwt_config())
    return {"Authorization": f"Bearer {access_token}"}
