"""Board endpoints."""

import json
import uuid
from datetime import UTC, datetime, timedelta

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy import delete, desc, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from featureboard.app.errors import ConstraintViolation, Forbidden, NotFound
from featureboard.app.models.board import Board
from featureboard.app.models.comment import Comment
from featureboard.app.models.feature_request import FeatureRequest, RequestStatus
from featureboard.app.models.upvote import Upvote
from featureboard.app.models.user import User
from featureboard.app.schemas.board import (
    ActivityPoint,
    BoardAnalytics,
    BoardCreate,
    BoardDetailResponse,
    BoardResponse,
    BoardUpdate,
    CreatorSummary,
    FeatureRequestSummary,
    StatusBreakdown,
)
from featureboard.app.services.gate import (
    GateContext,
    HandlerResult,
    auth_gate,
    get_gate_context,
    ownership_gate,
    public_gate,
)
from featureboard.app.services.invalidation import (
    USER_BOARDS_PATH,
    CacheTag,
    Mutation,
    MutationKind,
    analytics_path,
    board_details_path,
)
from featureboard.app.services.lookup import ResourceKind
from featureboard.app.services.permissions import can_view_board, owns_board

router = APIRouter(prefix="/boards", tags=["boards"])

_DETAIL_REQUEST_LIMIT = 10
_ACTIVITY_WINDOW = timedelta(days=30)


class BoardListQuery(BaseModel):
    limit: int | None = None


def _encode_theme(theme: dict | None) -> str | None:
    return json.dumps(theme) if theme is not None else None


async def _summaries_by_board(db: AsyncSession, board_ids: list[str]) -> dict[str, list[dict]]:
    if not board_ids:
        return {}
    result = await db.execute(
        select(FeatureRequest)
        .where(FeatureRequest.board_id.in_(board_ids))
        .order_by(desc(FeatureRequest.created_at))
    )
    grouped: dict[str, list[dict]] = {}
    for fr in result.scalars().all():
        grouped.setdefault(fr.board_id, []).append(
            FeatureRequestSummary.model_validate(fr).model_dump()
        )
    return grouped


async def _board_detail(db: AsyncSession, board: Board) -> dict:
    creator = await db.get(User, board.creator_id)
    count = await db.scalar(
        select(func.count()).select_from(FeatureRequest).where(FeatureRequest.board_id == board.id)
    )
    top = await db.execute(
        select(FeatureRequest)
        .where(FeatureRequest.board_id == board.id)
        .order_by(desc(FeatureRequest.upvote_count), desc(FeatureRequest.created_at))
        .limit(_DETAIL_REQUEST_LIMIT)
    )
    detail = BoardDetailResponse(
        **BoardResponse.model_validate(board).model_dump(),
        creator=CreatorSummary.model_validate(creator),
        feature_requests=[FeatureRequestSummary.model_validate(fr) for fr in top.scalars().all()],
        feature_request_count=count or 0,
    )
    return detail.model_dump()


# --- Handlers ---


async def _list_boards(ctx: GateContext) -> HandlerResult:
    actor = ctx.actor
    limit = ctx.payload.limit if ctx.payload else None

    async def load() -> list[dict]:
        query = (
            select(Board).where(Board.creator_id == actor.id).order_by(desc(Board.updated_at))
        )
        if limit:
            query = query.limit(limit)
        boards = list((await ctx.db.execute(query)).scalars().all())
        summaries = await _summaries_by_board(ctx.db, [b.id for b in boards])
        return [
            {
                **BoardResponse.model_validate(board).model_dump(),
                "feature_requests": summaries.get(board.id, []),
            }
            for board in boards
        ]

    data = await ctx.cache.get_or_load(
        f"user-boards:{actor.id}:{limit or 'all'}",
        load,
        tags=[CacheTag.USER_BOARDS.of(actor.id)],
        path=USER_BOARDS_PATH,
    )
    return HandlerResult(data=data)


async def _create_board(ctx: GateContext) -> HandlerResult:
    data: BoardCreate = ctx.payload
    actor = ctx.actor
    if await ctx.lookups.lookup(ResourceKind.BOARD, data.slug) is not None:
        raise ConstraintViolation("Slug is already taken")

    now = datetime.now(UTC).isoformat()
    board = Board(
        id=str(uuid.uuid4()),
        slug=data.slug,
        title=data.title.strip(),
        description=data.description,
        theme_config=_encode_theme(data.theme_config),
        is_public=data.is_public,
        creator_id=actor.id,
        created_at=now,
        updated_at=now,
    )
    ctx.db.add(board)
    try:
        await ctx.db.flush()
    except IntegrityError as exc:
        # Lost a race with another create using the same slug
        raise ConstraintViolation("Slug is already taken") from exc
    ctx.lookups.prime(ResourceKind.BOARD, board.slug, board)

    return HandlerResult(
        data=BoardResponse.model_validate(board).model_dump(),
        message="Board created successfully",
        status_code=201,
        mutation=Mutation(
            MutationKind.BOARD_CREATED, board_slug=board.slug, board_creator_id=actor.id
        ),
    )


async def _get_board(ctx: GateContext) -> HandlerResult:
    slug = ctx.params["slug"]
    board = await ctx.lookups.lookup(ResourceKind.BOARD, slug)
    if board is None:
        raise NotFound("Board not found")
    if not can_view_board(ctx.actor.id if ctx.actor else None, board):
        raise Forbidden("This board is private")

    data = await ctx.cache.get_or_load(
        f"board-details:{slug}",
        lambda: _board_detail(ctx.db, board),
        tags=[CacheTag.BOARD_DETAILS.of(slug), CacheTag.FEATURE_REQUESTS.of(slug)],
        path=board_details_path(slug),
    )
    return HandlerResult(data=data)


async def _update_board(ctx: GateContext) -> HandlerResult:
    data: BoardUpdate = ctx.payload
    board: Board = ctx.resource
    previous_slug = board.slug

    if data.slug != previous_slug:
        if await ctx.lookups.lookup(ResourceKind.BOARD, data.slug) is not None:
            raise ConstraintViolation("Slug already taken")

    board.title = data.title.strip()
    board.slug = data.slug
    board.description = data.description
    if data.is_public is not None:
        board.is_public = data.is_public
    if data.theme_config is not None:
        board.theme_config = _encode_theme(data.theme_config)
    board.updated_at = datetime.now(UTC).isoformat()
    try:
        await ctx.db.flush()
    except IntegrityError as exc:
        raise ConstraintViolation("Slug already taken") from exc

    ctx.lookups.forget(ResourceKind.BOARD, previous_slug)
    ctx.lookups.prime(ResourceKind.BOARD, board.slug, board)
    return HandlerResult(
        data=BoardResponse.model_validate(board).model_dump(),
        message="Board updated successfully",
        mutation=Mutation(
            MutationKind.BOARD_UPDATED,
            board_slug=board.slug,
            previous_slug=previous_slug,
            board_creator_id=board.creator_id,
        ),
    )


async def _delete_board(ctx: GateContext) -> HandlerResult:
    board: Board = ctx.resource
    request_ids = select(FeatureRequest.id).where(FeatureRequest.board_id == board.id)

    await ctx.db.execute(
        delete(Upvote)
        .where(Upvote.feature_request_id.in_(request_ids))
        .execution_options(synchronize_session=False)
    )
    await ctx.db.execute(
        delete(Comment)
        .where(Comment.feature_request_id.in_(request_ids))
        .execution_options(synchronize_session=False)
    )
    await ctx.db.execute(
        delete(FeatureRequest)
        .where(FeatureRequest.board_id == board.id)
        .execution_options(synchronize_session=False)
    )
    await ctx.db.delete(board)
    await ctx.db.flush()
    ctx.lookups.forget(ResourceKind.BOARD, board.slug)

    return HandlerResult(
        message="Board deleted successfully",
        mutation=Mutation(
            MutationKind.BOARD_DELETED, board_slug=board.slug, board_creator_id=board.creator_id
        ),
    )


async def _board_analytics(ctx: GateContext) -> HandlerResult:
    board: Board = ctx.resource

    async def load() -> dict:
        result = await ctx.db.execute(
            select(FeatureRequest).where(FeatureRequest.board_id == board.id)
        )
        requests = list(result.scalars().all())

        breakdown = StatusBreakdown()
        for fr in requests:
            if fr.status in RequestStatus.__members__:
                setattr(breakdown, fr.status, getattr(breakdown, fr.status) + 1)

        since = (datetime.now(UTC) - _ACTIVITY_WINDOW).isoformat()
        day = func.substr(FeatureRequest.created_at, 1, 10).label("day")
        activity = await ctx.db.execute(
            select(
                day,
                func.count(FeatureRequest.id),
                func.coalesce(func.sum(FeatureRequest.upvote_count), 0),
            )
            .where(FeatureRequest.board_id == board.id, FeatureRequest.created_at >= since)
            .group_by(day)
            .order_by(desc(day))
            .limit(30)
        )

        top = sorted(requests, key=lambda fr: fr.upvote_count, reverse=True)[:10]
        analytics = BoardAnalytics(
            total_requests=len(requests),
            total_upvotes=sum(fr.upvote_count for fr in requests),
            total_comments=sum(fr.comment_count for fr in requests),
            status_breakdown=breakdown,
            recent_activity=[
                ActivityPoint(date=d, requests_count=n, upvotes_count=u)
                for d, n, u in activity.all()
            ],
            top_requests=[FeatureRequestSummary.model_validate(fr) for fr in top],
            board_info=BoardResponse.model_validate(board),
        )
        return analytics.model_dump()

    data = await ctx.cache.get_or_load(
        f"analytics:{board.slug}",
        load,
        tags=[CacheTag.FEATURE_REQUESTS.of(board.slug)],
        path=analytics_path(board.slug),
    )
    return HandlerResult(data=data)


_LIST_BOARDS = auth_gate(_list_boards)
_CREATE_BOARD = auth_gate(_create_board)
_GET_BOARD = public_gate(_get_board)
_UPDATE_BOARD = ownership_gate(
    ResourceKind.BOARD, "slug", owns_board, _update_board, "Board owner permissions required"
)
_DELETE_BOARD = ownership_gate(
    ResourceKind.BOARD, "slug", owns_board, _delete_board, "Board owner permissions required"
)
_BOARD_ANALYTICS = ownership_gate(
    ResourceKind.BOARD, "slug", owns_board, _board_analytics, "Board owner permissions required"
)


# --- Routes ---


@router.get("")
async def list_boards(
    limit: int | None = Query(default=None, ge=1, le=100),
    ctx: GateContext = Depends(get_gate_context),
) -> JSONResponse:
    return await _LIST_BOARDS.respond(ctx.with_payload(BoardListQuery(limit=limit)))


@router.post("")
async def create_board(
    data: BoardCreate, ctx: GateContext = Depends(get_gate_context)
) -> JSONResponse:
    return await _CREATE_BOARD.respond(ctx.with_payload(data))


@router.get("/slug/{slug}")
async def get_board(slug: str, ctx: GateContext = Depends(get_gate_context)) -> JSONResponse:
    return await _GET_BOARD.respond(ctx)


@router.put("/{slug}")
async def update_board(
    slug: str, data: BoardUpdate, ctx: GateContext = Depends(get_gate_context)
) -> JSONResponse:
    return await _UPDATE_BOARD.respond(ctx.with_payload(data))


@router.delete("/{slug}")
async def delete_board(slug: str, ctx: GateContext = Depends(get_gate_context)) -> JSONResponse:
    return await _DELETE_BOARD.respond(ctx)


@router.get("/{slug}/analytics")
async def board_analytics(slug: str, ctx: GateContext = Depends(get_gate_context)) -> JSONResponse:
    return await _BOARD_ANALYTICS.respond(ctx)
