"""Comment threads: one level of replies under top-level comments."""

from sqlalchemy import asc, delete, desc, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from featureboard.app.models.comment import Comment
from featureboard.app.models.feature_request import FeatureRequest
from featureboard.app.schemas.comment import CommentResponse, CommentThread


async def load_threads(db: AsyncSession, feature_request_id: str) -> list[dict]:
    """Top-level comments newest first, each with its replies oldest first.

    Grandchildren are never queried; creation refuses to make them.
    """
    top_result = await db.execute(
        select(Comment)
        .where(
            Comment.feature_request_id == feature_request_id,
            Comment.parent_comment_id.is_(None),
        )
        .order_by(desc(Comment.created_at))
    )
    top_level = list(top_result.scalars().all())
    if not top_level:
        return []

    reply_result = await db.execute(
        select(Comment)
        .where(Comment.parent_comment_id.in_([c.id for c in top_level]))
        .order_by(asc(Comment.created_at))
    )
    replies: dict[str, list[CommentResponse]] = {}
    for reply in reply_result.scalars().all():
        replies.setdefault(reply.parent_comment_id, []).append(
            CommentResponse.model_validate(reply)
        )

    return [
        CommentThread(
            **CommentResponse.model_validate(comment).model_dump(),
            replies=replies.get(comment.id, []),
        ).model_dump()
        for comment in top_level
    ]


async def load_thread(db: AsyncSession, comment: Comment) -> dict:
    reply_result = await db.execute(
        select(Comment)
        .where(Comment.parent_comment_id == comment.id)
        .order_by(asc(Comment.created_at))
    )
    return CommentThread(
        **CommentResponse.model_validate(comment).model_dump(),
        replies=[CommentResponse.model_validate(r) for r in reply_result.scalars().all()],
    ).model_dump()


async def bump_comment_count(db: AsyncSession, feature_request_id: str, delta: int) -> None:
    await db.execute(
        update(FeatureRequest)
        .where(FeatureRequest.id == feature_request_id)
        .values(comment_count=FeatureRequest.comment_count + delta)
        .execution_options(synchronize_session=False)
    )


async def delete_thread(db: AsyncSession, comment: Comment) -> int:
    """Delete a comment and its direct replies; decrement comment_count by the rows removed.

    Replies go first, in their own statement, so each row is counted by the
    statement that removed it rather than by a foreign-key cascade.
    """
    replies = await db.execute(
        delete(Comment)
        .where(Comment.parent_comment_id == comment.id)
        .execution_options(synchronize_session=False)
    )
    parent = await db.execute(
        delete(Comment).where(Comment.id == comment.id).execution_options(synchronize_session=False)
    )
    removed = replies.rowcount + parent.rowcount
    if removed:
        await bump_comment_count(db, comment.feature_request_id, -removed)
    return removed
