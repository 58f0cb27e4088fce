import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.asyncio


async def test_health(test_client: AsyncClient):
    res = await test_client.get("/health")

    assert res.status_code == 200
    assert res.json()["status"] == "healthy"


async def test_register_and_read_profile(test_client: AsyncClient):
    res = await test_client.post(
        "/auth/register",
        json={
            "email": "new@example.com",
            "password": "password123",
            "full_name": "New Person",
            "blood_type": "B+",
        },
    )
    assert res.status_code == 201, res.text

    login = await test_client.post(
        "/auth/jwt/login",
        data={"username": "new@example.com", "password": "password123"},
    )
    assert login.status_code == 204
    token = login.headers["set-cookie"].split(";")[0].split("=", 1)[1]

    me = await test_client.get("/users/me", headers={"Cookie": f"fastapiusersauth={token}"})
    assert me.status_code == 200
    assert me.json()["full_name"] == "New Person"
    assert me.json()["blood_type"] == "B+"
