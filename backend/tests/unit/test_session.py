"""Tests for database engine and session lifecycle."""

import pytest
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from brokerforce_database import session as db_session_module


@pytest.mark.asyncio
async def test_get_session_requires_init() -> None:
    await db_session_module.close_database()

    with pytest.raises(RuntimeError, match="Database not initialized"):
        await anext(db_session_module.get_session())


@pytest.mark.asyncio
async def test_session_lifecycle() -> None:
    db_session_module.init_database("sqlite+aiosqlite:///:memory:")
    try:
        sessions = db_session_module.get_session()
        session = await anext(sessions)

        assert isinstance(session, AsyncSession)
        assert (await session.execute(text("SELECT 1"))).scalar_one() == 1

        await sessions.aclose()
    finally:
        await db_session_module.close_database()

    with pytest.raises(RuntimeError):
        await anext(db_session_module.get_session())
