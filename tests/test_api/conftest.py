from dataclasses import dataclass

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lifeline.models import User
from lifeline.schemas.user import UserCreate
from tests.test_helpers import TEST_PASSWORD, create_registered_user, login


@dataclass
class LoggedInUser:
    user: User
    headers: dict

    @property
    def id(self):
        return self.user.id


async def register_and_login(
    client: AsyncClient,
    session_maker: async_sessionmaker[AsyncSession],
    email: str,
    **profile,
) -> LoggedInUser:
    user = await create_registered_user(
        session_maker,
        UserCreate(email=email, password=TEST_PASSWORD, **profile),
    )
    headers = await login(client, email)
    return LoggedInUser(user=user, headers=headers)


@pytest.fixture(scope="function")
async def alice(
    test_client: AsyncClient, db_test_session_manager: async_sessionmaker[AsyncSession]
) -> LoggedInUser:
    return await register_and_login(
        test_client,
        db_test_session_manager,
        "alice@example.com",
        full_name="Alice Example",
        blood_type="A-",
    )


@pytest.fixture(scope="function")
async def bob(
    test_client: AsyncClient, db_test_session_manager: async_sessionmaker[AsyncSession]
) -> LoggedInUser:
    return await register_and_login(
        test_client, db_test_session_manager, "bob@example.com", full_name="Bob Example"
    )


@pytest.fixture(scope="function")
async def admin(
    test_client: AsyncClient, db_test_session_manager: async_sessionmaker[AsyncSession]
) -> LoggedInUser:
    return await register_and_login(
        test_client,
        db_test_session_manager,
        "admin@example.com",
        full_name="Ada Admin",
        is_superuser=True,
    )
