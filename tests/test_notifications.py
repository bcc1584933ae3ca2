import pytest
from httpx import AsyncClient
from sqlalchemy import select

from app.models.notification import Notification

pytestmark = pytest.mark.asyncio


def ids_of(resp):
    return [n["id"] for n in resp.json()]


async def test_list_scoped_to_own_clients(async_client: AsyncClient, am_headers: dict):
    resp = await async_client.get("/notifications", headers=am_headers)
    assert resp.status_code == 200
    # newest first, never the other AM's notification (id 5)
    assert ids_of(resp) == [6, 4, 3, 2, 1]
    first = resp.json()[0]
    assert set(first) >= {"id", "type", "message", "isRead", "createdAt", "taskId", "userId"}


async def test_other_am_sees_only_their_tenant(async_client: AsyncClient, other_am_headers: dict):
    resp = await async_client.get("/notifications", headers=other_am_headers)
    assert resp.status_code == 200
    assert ids_of(resp) == [5]


async def test_filter_by_read_state(async_client: AsyncClient, am_headers: dict):
    resp = await async_client.get("/notifications", params={"isRead": "true"}, headers=am_headers)
    assert ids_of(resp) == [2]

    resp = await async_client.get("/notifications", params={"onlyUnread": "1"}, headers=am_headers)
    assert ids_of(resp) == [6, 4, 3, 1]


async def test_explicit_is_read_wins_over_only_unread(async_client: AsyncClient, am_headers: dict):
    resp = await async_client.get(
        "/notifications", params={"isRead": "true", "onlyUnread": "1"}, headers=am_headers
    )
    assert ids_of(resp) == [2]


async def test_filter_by_type_and_invalid_type_ignored(async_client: AsyncClient, am_headers: dict):
    resp = await async_client.get("/notifications", params={"type": "performance"}, headers=am_headers)
    assert ids_of(resp) == [6, 2]

    resp = await async_client.get("/notifications", params={"type": "bogus"}, headers=am_headers)
    assert ids_of(resp) == [6, 4, 3, 2, 1]


async def test_text_search_is_case_insensitive_and_literal(async_client: AsyncClient, am_headers: dict):
    resp = await async_client.get("/notifications", params={"q": "  started "}, headers=am_headers)
    assert ids_of(resp) == [4, 1]

    # '%' is matched literally, not as a wildcard
    resp = await async_client.get("/notifications", params={"q": "100%"}, headers=am_headers)
    assert ids_of(resp) == [3]


async def test_date_range_includes_whole_end_day(async_client: AsyncClient, am_headers: dict):
    resp = await async_client.get(
        "/notifications", params={"from": "2026-01-11", "to": "2026-01-12"}, headers=am_headers
    )
    assert ids_of(resp) == [3, 2]


async def test_invalid_date_is_400(async_client: AsyncClient, am_headers: dict):
    resp = await async_client.get("/notifications", params={"from": "yesterday"}, headers=am_headers)
    assert resp.status_code == 400


async def test_cursor_pagination(async_client: AsyncClient, am_headers: dict):
    first = await async_client.get("/notifications", params={"take": 2}, headers=am_headers)
    assert ids_of(first) == [6, 4]

    second = await async_client.get(
        "/notifications", params={"take": 2, "cursorId": 4}, headers=am_headers
    )
    assert ids_of(second) == [3, 2]

    ascending = await async_client.get(
        "/notifications", params={"take": 2, "cursorId": 2, "sort": "asc"}, headers=am_headers
    )
    assert ids_of(ascending) == [3, 4]


@pytest.mark.parametrize("params", [
    {"cursorId": "abc"},
    {"cursorId": 999},
    {"take": 0},
    {"take": 101},
])
async def test_bad_paging_params_are_400(async_client: AsyncClient, am_headers: dict, params: dict):
    resp = await async_client.get("/notifications", params=params, headers=am_headers)
    assert resp.status_code == 400


async def test_other_tenants_cursor_looks_unknown(
    async_client: AsyncClient, am_headers: dict, other_am_headers: dict
):
    # notification 5 belongs to am-2's tenant
    foreign = await async_client.get("/notifications", params={"cursorId": 5}, headers=am_headers)
    missing = await async_client.get("/notifications", params={"cursorId": 999}, headers=am_headers)
    assert foreign.status_code == missing.status_code == 400
    assert foreign.json() == missing.json()

    own = await async_client.get("/notifications", params={"cursorId": 5}, headers=other_am_headers)
    assert own.status_code == 200
    assert ids_of(own) == []


async def test_requires_session(async_client: AsyncClient, seed):
    resp = await async_client.get("/notifications")
    assert resp.status_code == 401


async def test_mark_read_is_idempotent(async_client: AsyncClient, am_headers: dict, session_maker):
    for _ in range(2):
        resp = await async_client.patch("/notifications/mark-read", json={"id": 1}, headers=am_headers)
        assert resp.status_code == 200
        assert resp.json() == {"ok": True}

    async with session_maker() as session:
        notification = await session.get(Notification, 1)
        assert notification.is_read is True


async def test_mark_read_other_tenant_is_404(async_client: AsyncClient, am_headers: dict, session_maker):
    resp = await async_client.patch("/notifications/mark-read", json={"id": 5}, headers=am_headers)
    assert resp.status_code == 404

    async with session_maker() as session:
        notification = await session.get(Notification, 5)
        assert notification.is_read is False


@pytest.mark.parametrize("body", [{}, {"id": 0}, {"id": -3}, {"id": "abc"}])
async def test_mark_read_invalid_id_is_400(async_client: AsyncClient, am_headers: dict, body: dict):
    resp = await async_client.patch("/notifications/mark-read", json=body, headers=am_headers)
    assert resp.status_code == 400


async def test_mark_all_read_leaves_other_tenant_alone(async_client: AsyncClient, am_headers: dict, session_maker):
    resp = await async_client.patch("/notifications/mark-all-read", headers=am_headers)
    assert resp.status_code == 200
    assert resp.json() == {"ok": True}

    count = await async_client.get("/notifications/unread-count", headers=am_headers)
    assert count.json() == {"count": 0}

    async with session_maker() as session:
        result = await session.execute(select(Notification.is_read).where(Notification.notification_id == 5))
        assert result.scalar_one() is False


async def test_unread_count(async_client: AsyncClient, am_headers: dict, other_am_headers: dict):
    resp = await async_client.get("/notifications/unread-count", headers=am_headers)
    assert resp.json() == {"count": 4}

    resp = await async_client.get("/notifications/unread-count", headers=other_am_headers)
    assert resp.json() == {"count": 1}


async def test_my_notifications_and_mark_my_read(async_client: AsyncClient, agent_headers: dict, am_headers: dict):
    resp = await async_client.get("/notifications/my", headers=agent_headers)
    assert resp.status_code == 200
    assert ids_of(resp) == [6]

    resp = await async_client.patch("/notifications/6/read", headers=agent_headers)
    assert resp.status_code == 200

    # not addressed to this user
    resp = await async_client.patch("/notifications/1/read", headers=agent_headers)
    assert resp.status_code == 404
