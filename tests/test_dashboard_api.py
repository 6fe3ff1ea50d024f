"""Tests for the dashboard API endpoints."""

from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from tests.conftest import auth_headers, create_board, create_feature_request, create_user


async def test_stats_require_auth(client: AsyncClient):
    resp = await client.get("/api/dashboard/stats")
    assert resp.status_code == 401


async def test_stats_empty(client: AsyncClient, db: AsyncSession):
    user = await create_user(db)
    await db.commit()
    resp = await client.get("/api/dashboard/stats", headers=auth_headers(user))
    assert resp.status_code == 200
    assert resp.json()["data"] == {
        "total_boards": 0,
        "total_requests": 0,
        "total_upvotes": 0,
        "active_boards": 0,
    }


async def test_stats_aggregate_own_boards(client: AsyncClient, db: AsyncSession):
    """GET /api/dashboard/stats sums over the caller's boards only."""
    owner = await create_user(db)
    other = await create_user(db)
    busy = await create_board(db, owner, slug="busy")
    quiet = await create_board(db, owner, slug="quiet")
    await create_feature_request(db, busy, upvote_count=2)
    await create_feature_request(db, busy, upvote_count=3)
    await create_feature_request(db, quiet, created_at="2020-01-01T00:00:00+00:00")
    foreign = await create_board(db, other, slug="foreign")
    await create_feature_request(db, foreign, upvote_count=50)
    await db.commit()

    resp = await client.get("/api/dashboard/stats", headers=auth_headers(owner))
    assert resp.json()["data"] == {
        "total_boards": 2,
        "total_requests": 3,
        "total_upvotes": 5,
        "active_boards": 1,
    }


async def test_stats_refresh_after_new_request(client: AsyncClient, db: AsyncSession):
    """Cached stats are invalidated when a request lands on one of the owner's boards."""
    owner = await create_user(db)
    await create_board(db, owner, slug="roadmap")
    await db.commit()
    headers = auth_headers(owner)

    assert (await client.get("/api/dashboard/stats", headers=headers)).json()["data"][
        "total_requests"
    ] == 0
    await client.post(
        "/api/boards/roadmap/requests",
        json={"title": "Anonymous idea", "submitter_email": "anon@example.com"},
    )
    stats = (await client.get("/api/dashboard/stats", headers=headers)).json()["data"]
    assert stats["total_requests"] == 1
