from datetime import datetime, timezone
from unittest.mock import patch

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lifeline.middleware.presence import user_id_from_token
from lifeline.models import User
from lifeline.services.exceptions import GatewayError

pytestmark = pytest.mark.asyncio


async def last_seen(session_maker: async_sessionmaker[AsyncSession], user_id):
    async with session_maker() as session:
        user = await session.get(User, user_id)
        return user.last_seen_at


async def test_authenticated_request_stamps_last_seen(
    test_client: AsyncClient,
    alice,
    db_test_session_manager: async_sessionmaker[AsyncSession],
):
    assert await last_seen(db_test_session_manager, alice.id) is None
    before_request = datetime.now(timezone.utc)

    response = await test_client.get("/conversations", headers=alice.headers)
    assert response.status_code == 200

    seen = await last_seen(db_test_session_manager, alice.id)
    assert seen is not None
    if seen.tzinfo is None:
        seen = seen.replace(tzinfo=timezone.utc)
    assert before_request <= seen <= datetime.now(timezone.utc)


async def test_failed_request_does_not_stamp(
    test_client: AsyncClient,
    alice,
    db_test_session_manager: async_sessionmaker[AsyncSession],
):
    response = await test_client.get("/admin/stats", headers=alice.headers)
    assert response.status_code == 403

    assert await last_seen(db_test_session_manager, alice.id) is None


async def test_unauthenticated_requests_pass_through(test_client: AsyncClient):
    response = await test_client.get("/health")
    assert response.status_code == 200


async def test_presence_failure_does_not_break_the_request(
    test_client: AsyncClient, alice
):
    with patch(
        "lifeline.middleware.presence.PresenceService.update_user_presence",
        side_effect=GatewayError("DB Error"),
    ):
        response = await test_client.get("/conversations", headers=alice.headers)

    assert response.status_code == 200


async def test_user_id_from_token_rejects_garbage():
    assert user_id_from_token(None) is None
    assert user_id_from_token("not-a-jwt") is None
