"""Request-scoped entity lookups.

One ``LookupCache`` lives for exactly one inbound request (FastAPI caches the
``get_lookup_cache`` dependency per request), so the gate's ownership check and
the handler behind it share a single read per (kind, key). Misses are memoized
too; store failures are not.
"""

import enum
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from featureboard.app.db import get_db
from featureboard.app.models.board import Board
from featureboard.app.models.comment import Comment
from featureboard.app.models.feature_request import FeatureRequest
from featureboard.app.models.user import User

logger = logging.getLogger(__name__)


class ResourceKind(str, enum.Enum):
    BOARD = "board"  # keyed by slug
    FEATURE_REQUEST = "feature_request"
    COMMENT = "comment"
    USER = "user"


Loader = Callable[[AsyncSession, str], Awaitable[Any | None]]


async def _load_board(db: AsyncSession, slug: str) -> Board | None:
    result = await db.execute(select(Board).where(Board.slug == slug))
    return result.scalar_one_or_none()


async def _load_feature_request(db: AsyncSession, feature_request_id: str) -> FeatureRequest | None:
    result = await db.execute(
        select(FeatureRequest)
        .options(joinedload(FeatureRequest.board))
        .where(FeatureRequest.id == feature_request_id)
    )
    return result.scalar_one_or_none()


async def _load_comment(db: AsyncSession, comment_id: str) -> Comment | None:
    result = await db.execute(
        select(Comment)
        .options(joinedload(Comment.feature_request).joinedload(FeatureRequest.board))
        .where(Comment.id == comment_id)
    )
    return result.scalar_one_or_none()


async def _load_user(db: AsyncSession, user_id: str) -> User | None:
    return await db.get(User, user_id)


DEFAULT_LOADERS: Mapping[ResourceKind, Loader] = {
    ResourceKind.BOARD: _load_board,
    ResourceKind.FEATURE_REQUEST: _load_feature_request,
    ResourceKind.COMMENT: _load_comment,
    ResourceKind.USER: _load_user,
}

_MISSING = object()


class LookupCache:
    def __init__(self, db: AsyncSession, loaders: Mapping[ResourceKind, Loader] | None = None):
        self._db = db
        self._loaders = dict(DEFAULT_LOADERS if loaders is None else loaders)
        self._memo: dict[tuple[ResourceKind, str], Any] = {}

    async def lookup(self, kind: ResourceKind, key: str, *, fresh: bool = False) -> Any | None:
        """Return the entity for (kind, key), or None if it does not exist.

        ``fresh=True`` bypasses the memo and re-reads (and re-memoizes) the row,
        for handlers that need the post-write state.
        """
        memo_key = (kind, key)
        if not fresh:
            cached = self._memo.get(memo_key, _MISSING)
            if cached is not _MISSING:
                return cached

        # A raising loader leaves the memo untouched so the next call retries
        entity = await self._loaders[kind](self._db, key)
        logger.debug("[LOOKUP] %s %s -> %s", kind.value, key, "hit" if entity else "missing")
        self._memo[memo_key] = entity
        return entity

    def prime(self, kind: ResourceKind, key: str, entity: Any) -> None:
        self._memo[(kind, key)] = entity

    def forget(self, kind: ResourceKind, key: str) -> None:
        self._memo.pop((kind, key), None)

    def __contains__(self, memo_key: tuple[ResourceKind, str]) -> bool:
        return memo_key in self._memo


async def get_lookup_cache(db: AsyncSession = Depends(get_db)) -> LookupCache:
    """FastAPI dependency: a fresh, empty cache for every request."""
    return LookupCache(db)
