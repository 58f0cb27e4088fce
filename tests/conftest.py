import os

# Settings are read at import time; give them something before lifeline loads.
os.environ.setdefault("SECRET", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./data/test-unused.db")

from typing import AsyncGenerator  # noqa: E402

import pytest  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from lifeline.db import build_session_maker, get_change_feed, get_db_session  # noqa: E402
from lifeline.main import app  # noqa: E402
from lifeline.models import metadata  # noqa: E402
from lifeline.realtime.feed import ChangeFeed  # noqa: E402


# A file per test: concurrent sessions need their own connections, which an
# in-memory database shared through one connection cannot give them.
@pytest.fixture(scope="function")
async def test_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture(scope="function")
async def change_feed() -> AsyncGenerator[ChangeFeed, None]:
    feed = ChangeFeed()
    yield feed
    await feed.close()


@pytest.fixture(scope="function")
def db_test_session_manager(
    test_engine: AsyncEngine, change_feed: ChangeFeed
) -> async_sessionmaker[AsyncSession]:
    return build_session_maker(test_engine, change_feed)


@pytest.fixture(scope="function")
async def db_session(
    db_test_session_manager: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with db_test_session_manager() as session:
        yield session


@pytest.fixture(scope="function")
def test_app(
    db_test_session_manager: async_sessionmaker[AsyncSession],
    change_feed: ChangeFeed,
) -> FastAPI:
    async def override_get_db_session() -> AsyncGenerator[AsyncSession, None]:
        async with db_test_session_manager() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_get_db_session
    app.dependency_overrides[get_change_feed] = lambda: change_feed
    yield app
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def test_client(test_app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=test_app),
        base_url="http://test",
    ) as client:
        yield client
