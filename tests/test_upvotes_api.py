"""Tests for upvote toggling, over HTTP and at the service layer."""

from fastapi import FastAPI
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from featureboard.app.models.feature_request import FeatureRequest
from featureboard.app.models.upvote import Upvote
from featureboard.app.services.upvotes import add_upvote, remove_upvote, toggle_upvote
from tests.conftest import (
    auth_headers,
    create_board,
    create_feature_request,
    create_upvote,
    create_user,
    reload,
)


async def _upvote_rows(db: AsyncSession, feature_request_id: str) -> int:
    await db.commit()
    return await db.scalar(
        select(func.count())
        .select_from(Upvote)
        .where(Upvote.feature_request_id == feature_request_id)
    )


async def test_toggle_adds_then_removes(client: AsyncClient, db: AsyncSession):
    """POST /api/feature-requests/{id}/upvote flips the caller's upvote."""
    owner = await create_user(db)
    voter = await create_user(db)
    board = await create_board(db, owner)
    fr = await create_feature_request(db, board)
    await db.commit()
    url = f"/api/feature-requests/{fr.id}/upvote"

    resp = await client.post(url, headers=auth_headers(voter))
    assert resp.status_code == 200
    assert resp.json() == {
        "success": True,
        "data": {"upvoted": True, "upvote_count": 1},
        "message": "Upvote added",
    }

    resp = await client.post(url, headers=auth_headers(voter))
    assert resp.json()["data"] == {"upvoted": False, "upvote_count": 0}
    assert resp.json()["message"] == "Upvote removed"
    assert await _upvote_rows(db, fr.id) == 0


async def test_upvote_requires_auth(client: AsyncClient, db: AsyncSession):
    owner = await create_user(db)
    board = await create_board(db, owner)
    fr = await create_feature_request(db, board)
    await db.commit()

    resp = await client.post(f"/api/feature-requests/{fr.id}/upvote")
    assert resp.status_code == 401


async def test_upvote_missing_request(client: AsyncClient, db: AsyncSession):
    voter = await create_user(db)
    await db.commit()
    resp = await client.post("/api/feature-requests/missing/upvote", headers=auth_headers(voter))
    assert resp.status_code == 404


async def test_get_upvote_state(client: AsyncClient, db: AsyncSession):
    """GET /api/feature-requests/{id}/upvote reports the caller's state."""
    owner = await create_user(db)
    voter = await create_user(db)
    board = await create_board(db, owner)
    fr = await create_feature_request(db, board)
    await create_upvote(db, fr, voter)
    await db.commit()

    resp = await client.get(f"/api/feature-requests/{fr.id}/upvote", headers=auth_headers(voter))
    assert resp.json()["data"] == {"upvoted": True, "upvote_count": 1}
    resp = await client.get(f"/api/feature-requests/{fr.id}/upvote", headers=auth_headers(owner))
    assert resp.json()["data"] == {"upvoted": False, "upvote_count": 1}


async def test_upvote_refreshes_cached_list(client: AsyncClient, db: AsyncSession):
    owner = await create_user(db)
    voter = await create_user(db)
    board = await create_board(db, owner, slug="roadmap")
    fr = await create_feature_request(db, board)
    await db.commit()

    assert (await client.get("/api/boards/roadmap/requests")).json()["data"][0]["upvote_count"] == 0
    await client.post(f"/api/feature-requests/{fr.id}/upvote", headers=auth_headers(voter))
    listed = (await client.get("/api/boards/roadmap/requests")).json()["data"]
    assert listed[0]["upvote_count"] == 1


async def test_add_upvote_losing_race_is_already_upvoted(app: FastAPI, db: AsyncSession):
    """A second insert for the same pair hits the unique key and changes nothing."""
    owner = await create_user(db)
    voter = await create_user(db)
    board = await create_board(db, owner)
    fr = await create_feature_request(db, board)
    await db.commit()

    async with app.state.database.session() as first:
        assert await add_upvote(first, fr.id, voter.id) is True
        await first.commit()

    async with app.state.database.session() as second:
        assert await add_upvote(second, fr.id, voter.id) is False
        await second.commit()

    assert (await reload(db, FeatureRequest, fr.id)).upvote_count == 1
    assert await _upvote_rows(db, fr.id) == 1


async def test_remove_upvote_without_row(db: AsyncSession):
    owner = await create_user(db)
    board = await create_board(db, owner)
    fr = await create_feature_request(db, board)
    await db.commit()

    assert await remove_upvote(db, fr.id, owner.id) is False
    await db.commit()
    assert (await reload(db, FeatureRequest, fr.id)).upvote_count == 0


async def test_toggle_service_returns_new_state(db: AsyncSession):
    owner = await create_user(db)
    voter = await create_user(db)
    board = await create_board(db, owner)
    fr = await create_feature_request(db, board)
    await db.commit()

    assert await toggle_upvote(db, fr.id, voter.id) is True
    await db.commit()
    assert await toggle_upvote(db, fr.id, voter.id) is False
    await db.commit()
    assert await toggle_upvote(db, fr.id, voter.id) is True
    await db.commit()
    assert (await reload(db, FeatureRequest, fr.id)).upvote_count == 1


async def test_toggles_by_many_users_keep_counter_consistent(client: AsyncClient, db: AsyncSession):
    """Counter matches stored rows after toggles from several users."""
    owner = await create_user(db)
    voters = [await create_user(db) for _ in range(5)]
    board = await create_board(db, owner)
    fr = await create_feature_request(db, board)
    await db.commit()
    url = f"/api/feature-requests/{fr.id}/upvote"

    for voter in voters:
        assert (await client.post(url, headers=auth_headers(voter))).status_code == 200
    # One change of heart
    await client.post(url, headers=auth_headers(voters[0]))

    rows = await _upvote_rows(db, fr.id)
    assert rows == 4
    assert (await reload(db, FeatureRequest, fr.id)).upvote_count == rows
