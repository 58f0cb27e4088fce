import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lifeline.models import User
from tests.test_helpers import insert_user


@pytest.fixture
async def alice(db_test_session_manager: async_sessionmaker[AsyncSession]) -> User:
    return await insert_user(db_test_session_manager, full_name="Alice Example")


@pytest.fixture
async def bob(db_test_session_manager: async_sessionmaker[AsyncSession]) -> User:
    return await insert_user(db_test_session_manager, full_name="Bob Example")


@pytest.fixture
async def admin(db_test_session_manager: async_sessionmaker[AsyncSession]) -> User:
    return await insert_user(
        db_test_session_manager, full_name="Ada Admin", is_superuser=True
    )
