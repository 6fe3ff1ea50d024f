"""Upvote toggling.

The (feature_request_id, user_id) primary key is the only guard against
double votes; there is no locking here. A concurrent toggle that loses the
insert race hits the constraint and is treated as "already upvoted", so the
counter moves once per stored row.
"""

import logging
from datetime import UTC, datetime

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from featureboard.app.models.feature_request import FeatureRequest
from featureboard.app.models.upvote import Upvote

logger = logging.getLogger(__name__)


async def has_upvoted(db: AsyncSession, feature_request_id: str, user_id: str) -> bool:
    result = await db.execute(
        select(Upvote.user_id).where(
            Upvote.feature_request_id == feature_request_id,
            Upvote.user_id == user_id,
        )
    )
    return result.scalar_one_or_none() is not None


async def _bump_upvote_count(db: AsyncSession, feature_request_id: str, delta: int) -> None:
    await db.execute(
        update(FeatureRequest)
        .where(FeatureRequest.id == feature_request_id)
        .values(upvote_count=FeatureRequest.upvote_count + delta)
        .execution_options(synchronize_session=False)
    )


async def add_upvote(db: AsyncSession, feature_request_id: str, user_id: str) -> bool:
    """Insert the upvote row and increment the counter.

    Returns False, changing nothing, when the row already exists.
    """
    try:
        async with db.begin_nested():
            db.add(
                Upvote(
                    feature_request_id=feature_request_id,
                    user_id=user_id,
                    created_at=datetime.now(UTC).isoformat(),
                )
            )
    except IntegrityError:
        logger.info(
            "[UPVOTE] Duplicate upvote by %s on %s; already upvoted", user_id, feature_request_id
        )
        return False
    await _bump_upvote_count(db, feature_request_id, 1)
    return True


async def remove_upvote(db: AsyncSession, feature_request_id: str, user_id: str) -> bool:
    """Delete the upvote row and decrement the counter; False if there was none."""
    result = await db.execute(
        delete(Upvote)
        .where(
            Upvote.feature_request_id == feature_request_id,
            Upvote.user_id == user_id,
        )
    )
    if result.rowcount == 0:
        return False
    await _bump_upvote_count(db, feature_request_id, -1)
    return True


async def toggle_upvote(db: AsyncSession, feature_request_id: str, user_id: str) -> bool:
    """Flip the caller's upvote. Returns the new state (True means upvoted)."""
    if await has_upvoted(db, feature_request_id, user_id):
        if await remove_upvote(db, feature_request_id, user_id):
            return False
        # Removed concurrently by another toggle; fall through and add
    # False here means a concurrent toggle inserted the row first; either way it exists
    await add_upvote(db, feature_request_id, user_id)
    return True


async def current_upvote_count(db: AsyncSession, feature_request_id: str) -> int:
    result = await db.execute(
        select(FeatureRequest.upvote_count).where(FeatureRequest.id == feature_request_id)
    )
    return result.scalar_one()
