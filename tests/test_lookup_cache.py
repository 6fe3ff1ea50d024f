"""Tests for the request-scoped lookup cache."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from featureboard.app.services.lookup import LookupCache, ResourceKind
from tests.conftest import create_board, create_comment, create_feature_request, create_user


class CountingLoader:
    def __init__(self, result=None, error: Exception | None = None) -> None:
        self.calls = 0
        self.result = result
        self.error = error

    async def __call__(self, db, key):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.result


async def test_lookup_reads_once_per_key():
    loader = CountingLoader(result="board")
    lookups = LookupCache(db=None, loaders={ResourceKind.BOARD: loader})

    assert await lookups.lookup(ResourceKind.BOARD, "roadmap") == "board"
    assert await lookups.lookup(ResourceKind.BOARD, "roadmap") == "board"
    assert loader.calls == 1


async def test_misses_are_memoized():
    loader = CountingLoader(result=None)
    lookups = LookupCache(db=None, loaders={ResourceKind.BOARD: loader})

    assert await lookups.lookup(ResourceKind.BOARD, "ghost") is None
    assert await lookups.lookup(ResourceKind.BOARD, "ghost") is None
    assert loader.calls == 1
    assert (ResourceKind.BOARD, "ghost") in lookups


async def test_failures_are_not_memoized():
    loader = CountingLoader(error=RuntimeError("store down"))
    lookups = LookupCache(db=None, loaders={ResourceKind.BOARD: loader})

    with pytest.raises(RuntimeError):
        await lookups.lookup(ResourceKind.BOARD, "roadmap")
    assert (ResourceKind.BOARD, "roadmap") not in lookups

    loader.error = None
    loader.result = "board"
    assert await lookups.lookup(ResourceKind.BOARD, "roadmap") == "board"
    assert loader.calls == 2


async def test_fresh_bypasses_memo():
    loader = CountingLoader(result="v1")
    lookups = LookupCache(db=None, loaders={ResourceKind.USER: loader})
    await lookups.lookup(ResourceKind.USER, "u1")
    loader.result = "v2"
    assert await lookups.lookup(ResourceKind.USER, "u1") == "v1"
    assert await lookups.lookup(ResourceKind.USER, "u1", fresh=True) == "v2"
    assert await lookups.lookup(ResourceKind.USER, "u1") == "v2"


async def test_prime_and_forget():
    loader = CountingLoader(result="from-store")
    lookups = LookupCache(db=None, loaders={ResourceKind.BOARD: loader})
    lookups.prime(ResourceKind.BOARD, "roadmap", "primed")
    assert await lookups.lookup(ResourceKind.BOARD, "roadmap") == "primed"
    lookups.forget(ResourceKind.BOARD, "roadmap")
    assert await lookups.lookup(ResourceKind.BOARD, "roadmap") == "from-store"


async def test_separate_caches_share_nothing():
    loader = CountingLoader(result="board")
    first = LookupCache(db=None, loaders={ResourceKind.BOARD: loader})
    second = LookupCache(db=None, loaders={ResourceKind.BOARD: loader})
    await first.lookup(ResourceKind.BOARD, "roadmap")
    await second.lookup(ResourceKind.BOARD, "roadmap")
    assert loader.calls == 2


async def test_default_loaders_include_board_chain(db: AsyncSession):
    """Feature requests and comments come back with their board loaded."""
    owner = await create_user(db)
    board = await create_board(db, owner, slug="roadmap")
    fr = await create_feature_request(db, board)
    comment = await create_comment(db, fr)
    await db.commit()
    db.expunge_all()

    lookups = LookupCache(db)
    loaded_board = await lookups.lookup(ResourceKind.BOARD, "roadmap")
    assert loaded_board.id == board.id

    loaded_fr = await lookups.lookup(ResourceKind.FEATURE_REQUEST, fr.id)
    assert loaded_fr.board.creator_id == owner.id

    loaded_comment = await lookups.lookup(ResourceKind.COMMENT, comment.id)
    assert loaded_comment.feature_request.board.slug == "roadmap"

    assert await lookups.lookup(ResourceKind.USER, owner.id) is not None
    assert await lookups.lookup(ResourceKind.FEATURE_REQUEST, "missing") is None
