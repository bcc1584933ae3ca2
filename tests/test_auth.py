import pytest
from httpx import AsyncClient

from app.models.user import UserRoleEnum

pytestmark = pytest.mark.asyncio


async def register(client: AsyncClient, **overrides):
    payload = {
        "name": "Nina Agent",
        "email": "nina@agency.io",
        "password": "secret123",
        "role": "agent",
    }
    payload.update(overrides)
    return await client.post("/auth/register", json=payload)


async def test_register_login_and_session(async_client: AsyncClient, seed):
    resp = await register(async_client)
    assert resp.status_code == 201
    user = resp.json()
    assert user["email"] == "nina@agency.io"
    assert user["role"] == "agent"
    assert user["isActive"] is True
    assert "passwordHash" not in user and "password" not in user

    resp = await async_client.post(
        "/auth/token", data={"username": "nina@agency.io", "password": "secret123"}
    )
    assert resp.status_code == 200
    token = resp.json()
    assert token["tokenType"] == "bearer"
    assert resp.cookies.get("access_token")

    resp = await async_client.get(
        "/auth/session", headers={"Authorization": f"Bearer {token['accessToken']}"}
    )
    assert resp.status_code == 200
    assert resp.json()["userId"] == user["userId"]


async def test_session_cookie_is_accepted(async_client: AsyncClient, seed):
    await register(async_client)
    resp = await async_client.post(
        "/auth/token", data={"username": "nina@agency.io", "password": "secret123"}
    )
    assert resp.cookies.get("access_token")

    # no Authorization header, the client's cookie jar carries the session
    resp = await async_client.get("/auth/session")
    assert resp.status_code == 200
    assert resp.json()["email"] == "nina@agency.io"


async def test_wrong_password_is_401(async_client: AsyncClient, seed):
    await register(async_client)
    resp = await async_client.post(
        "/auth/token", data={"username": "nina@agency.io", "password": "wrong1234"}
    )
    assert resp.status_code == 401


@pytest.mark.parametrize("overrides", [
    {"password": "short1"},
    {"password": "lettersonly"},
    {"email": "not-an-email"},
    {"role": "superuser"},
    {"role": "admin"},
])
async def test_register_rejects_bad_input(async_client: AsyncClient, seed, overrides):
    resp = await register(async_client, **overrides)
    assert resp.status_code == 400


async def test_duplicate_email_is_400(async_client: AsyncClient, seed):
    assert (await register(async_client)).status_code == 201
    resp = await register(async_client, name="Someone Else")
    assert resp.status_code == 400


async def test_session_checks(async_client: AsyncClient, make_headers):
    resp = await async_client.get("/auth/session")
    assert resp.status_code == 401

    resp = await async_client.get("/auth/session", headers={"Authorization": "Bearer garbage"})
    assert resp.status_code == 401

    resp = await async_client.get("/auth/session", headers=make_headers("ghost", UserRoleEnum.agent))
    assert resp.status_code == 401

    resp = await async_client.get("/auth/session", headers=make_headers("disabled-1", UserRoleEnum.agent))
    assert resp.status_code == 400
