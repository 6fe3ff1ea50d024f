"""Feature request endpoints, including upvotes."""

import enum
import uuid
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy import asc, delete, desc, or_, select

from featureboard.app.errors import Forbidden, NotFound, ValidationFailed
from featureboard.app.models.board import Board
from featureboard.app.models.comment import Comment
from featureboard.app.models.feature_request import FeatureRequest, RequestStatus
from featureboard.app.models.upvote import Upvote
from featureboard.app.schemas.feature_request import (
    FeatureRequestCreate,
    FeatureRequestResponse,
    FeatureRequestUpdate,
    StatusUpdate,
    UpvoteState,
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
    CacheTag,
    Mutation,
    MutationKind,
    feature_request_path,
    feature_requests_path,
)
from featureboard.app.services.lookup import ResourceKind
from featureboard.app.services.permissions import (
    can_modify_feature_request,
    can_view_board,
    is_board_owner,
    owns_feature_request_board,
)
from featureboard.app.services.threads import load_threads
from featureboard.app.services.upvotes import current_upvote_count, has_upvoted, toggle_upvote

router = APIRouter(prefix="/feature-requests", tags=["feature-requests"])
board_requests_router = APIRouter(prefix="/boards/{slug}/requests", tags=["feature-requests"])


class SortBy(str, enum.Enum):
    UPVOTES = "upvotes"
    NEWEST = "newest"
    OLDEST = "oldest"


class RequestFilters(BaseModel):
    status: str | None = None
    search: str | None = None
    sort_by: SortBy = SortBy.UPVOTES


_ORDERING = {
    SortBy.UPVOTES: (desc(FeatureRequest.upvote_count), desc(FeatureRequest.created_at)),
    SortBy.NEWEST: (desc(FeatureRequest.created_at),),
    SortBy.OLDEST: (asc(FeatureRequest.created_at),),
}


def _actor_id(ctx: GateContext) -> str | None:
    return ctx.actor.id if ctx.actor else None


async def _visible_board(ctx: GateContext, slug: str) -> Board:
    board = await ctx.lookups.lookup(ResourceKind.BOARD, slug)
    if board is None:
        raise NotFound("Board not found")
    if not can_view_board(_actor_id(ctx), board):
        raise Forbidden("This board is private")
    return board


async def _visible_request(ctx: GateContext) -> FeatureRequest:
    fr = await ctx.lookups.lookup(ResourceKind.FEATURE_REQUEST, ctx.params["feature_request_id"])
    if fr is None:
        raise NotFound("Feature request not found")
    if not can_view_board(_actor_id(ctx), fr.board):
        raise Forbidden("This board is private")
    return fr


def _mutation(kind: MutationKind, fr: FeatureRequest, board: Board) -> Mutation:
    return Mutation(
        kind,
        board_slug=board.slug,
        board_creator_id=board.creator_id,
        feature_request_id=fr.id,
        submitter_id=fr.submitter_id,
    )


# --- Handlers ---


async def _list_requests(ctx: GateContext) -> HandlerResult:
    slug = ctx.params["slug"]
    board = await _visible_board(ctx, slug)
    filters: RequestFilters = ctx.payload

    async def load() -> list[dict]:
        query = select(FeatureRequest).where(FeatureRequest.board_id == board.id)
        if filters.status and filters.status != "ALL":
            query = query.where(FeatureRequest.status == filters.status)
        if filters.search:
            pattern = f"%{filters.search}%"
            query = query.where(
                or_(FeatureRequest.title.ilike(pattern), FeatureRequest.description.ilike(pattern))
            )
        query = query.order_by(*_ORDERING[filters.sort_by])
        result = await ctx.db.execute(query)
        return [
            FeatureRequestResponse.model_validate(fr).model_dump() for fr in result.scalars().all()
        ]

    data = await ctx.cache.get_or_load(
        f"feature-requests:{slug}:{filters.status or 'ALL'}:{filters.search or ''}:"
        f"{filters.sort_by.value}",
        load,
        tags=[CacheTag.FEATURE_REQUESTS.of(slug)],
        path=feature_requests_path(slug),
    )
    return HandlerResult(data=data)


async def _create_request(ctx: GateContext) -> HandlerResult:
    board = await _visible_board(ctx, ctx.params["slug"])
    data: FeatureRequestCreate = ctx.payload
    actor = ctx.actor

    submitter_name = data.submitter_name or (actor.display_name if actor else None)
    submitter_email = data.submitter_email or (actor.email if actor else None)
    if not submitter_email:
        raise ValidationFailed("Title and email are required")

    now = datetime.now(UTC).isoformat()
    fr = FeatureRequest(
        id=str(uuid.uuid4()),
        board_id=board.id,
        title=data.title.strip(),
        description=(data.description or "").strip() or None,
        status=RequestStatus.NEW.value,
        submitter_id=actor.id if actor else None,
        submitter_name=submitter_name,
        submitter_email=submitter_email,
        upvote_count=0,
        comment_count=0,
        is_edited=False,
        created_at=now,
        updated_at=now,
    )
    ctx.db.add(fr)
    await ctx.db.flush()

    return HandlerResult(
        data=FeatureRequestResponse.model_validate(fr).model_dump(),
        message="Feature request created successfully",
        status_code=201,
        mutation=_mutation(MutationKind.FEATURE_REQUEST_CREATED, fr, board),
    )


async def _get_request(ctx: GateContext) -> HandlerResult:
    fr = await _visible_request(ctx)

    async def load() -> dict:
        return {
            **FeatureRequestResponse.model_validate(fr).model_dump(),
            "board": {"id": fr.board.id, "slug": fr.board.slug, "title": fr.board.title},
            "comments": await load_threads(ctx.db, fr.id),
        }

    data = await ctx.cache.get_or_load(
        f"feature-request:{fr.id}",
        load,
        tags=[CacheTag.FEATURE_REQUESTS.of(fr.board.slug), CacheTag.COMMENTS.of(fr.id)],
        path=feature_request_path(fr.id),
    )
    return HandlerResult(data=data)


async def _update_request(ctx: GateContext) -> HandlerResult:
    fr: FeatureRequest = ctx.resource
    data: FeatureRequestUpdate = ctx.payload

    status_changed = data.status is not None and data.status.value != fr.status
    if status_changed and not is_board_owner(ctx.actor.id, fr.board.creator_id):
        raise Forbidden("Only board owners can change status")

    fr.title = data.title.strip()
    fr.description = (data.description or "").strip() or None
    if status_changed:
        fr.status = data.status.value
    fr.is_edited = True
    fr.updated_at = datetime.now(UTC).isoformat()
    await ctx.db.flush()

    # Counters may have moved under us since the lookup; re-read before replying
    await ctx.db.refresh(fr, ["upvote_count", "comment_count"])
    kind = (
        MutationKind.FEATURE_REQUEST_STATUS_CHANGED
        if status_changed
        else MutationKind.FEATURE_REQUEST_UPDATED
    )
    return HandlerResult(
        data=FeatureRequestResponse.model_validate(fr).model_dump(),
        message="Feature request updated successfully",
        mutation=_mutation(kind, fr, fr.board),
    )


async def _delete_request(ctx: GateContext) -> HandlerResult:
    fr: FeatureRequest = ctx.resource
    await ctx.db.execute(
        delete(Upvote)
        .where(Upvote.feature_request_id == fr.id)
        .execution_options(synchronize_session=False)
    )
    await ctx.db.execute(
        delete(Comment)
        .where(Comment.feature_request_id == fr.id)
        .execution_options(synchronize_session=False)
    )
    await ctx.db.execute(
        delete(FeatureRequest)
        .where(FeatureRequest.id == fr.id)
        .execution_options(synchronize_session=False)
    )
    ctx.lookups.forget(ResourceKind.FEATURE_REQUEST, fr.id)
    return HandlerResult(
        message="Feature request deleted successfully",
        mutation=_mutation(MutationKind.FEATURE_REQUEST_DELETED, fr, fr.board),
    )


async def _update_status(ctx: GateContext) -> HandlerResult:
    fr: FeatureRequest = ctx.resource
    data: StatusUpdate = ctx.payload
    fr.status = data.status.value
    fr.updated_at = datetime.now(UTC).isoformat()
    await ctx.db.flush()
    await ctx.db.refresh(fr, ["upvote_count", "comment_count"])
    return HandlerResult(
        data=FeatureRequestResponse.model_validate(fr).model_dump(),
        message="Feature request status updated successfully",
        mutation=_mutation(MutationKind.FEATURE_REQUEST_STATUS_CHANGED, fr, fr.board),
    )


async def _get_upvote(ctx: GateContext) -> HandlerResult:
    fr = await _visible_request(ctx)
    upvoted = await has_upvoted(ctx.db, fr.id, ctx.actor.id)
    count = await current_upvote_count(ctx.db, fr.id)
    return HandlerResult(data=UpvoteState(upvoted=upvoted, upvote_count=count).model_dump())


async def _toggle_upvote(ctx: GateContext) -> HandlerResult:
    fr = await _visible_request(ctx)
    upvoted = await toggle_upvote(ctx.db, fr.id, ctx.actor.id)
    count = await current_upvote_count(ctx.db, fr.id)
    return HandlerResult(
        data=UpvoteState(upvoted=upvoted, upvote_count=count).model_dump(),
        message="Upvote added" if upvoted else "Upvote removed",
        mutation=_mutation(MutationKind.UPVOTE_TOGGLED, fr, fr.board),
    )


_LIST_REQUESTS = public_gate(_list_requests)
_CREATE_REQUEST = public_gate(_create_request)
_GET_REQUEST = public_gate(_get_request)
_UPDATE_REQUEST = ownership_gate(
    ResourceKind.FEATURE_REQUEST, "feature_request_id", can_modify_feature_request, _update_request
)
_DELETE_REQUEST = ownership_gate(
    ResourceKind.FEATURE_REQUEST, "feature_request_id", can_modify_feature_request, _delete_request
)
_UPDATE_STATUS = ownership_gate(
    ResourceKind.FEATURE_REQUEST,
    "feature_request_id",
    owns_feature_request_board,
    _update_status,
    "Only board creators can update feature request status",
)
_GET_UPVOTE = auth_gate(_get_upvote)
_TOGGLE_UPVOTE = auth_gate(_toggle_upvote)


# --- Routes ---


@board_requests_router.get("")
async def list_feature_requests(
    slug: str,
    status: str | None = Query(default=None),
    search: str | None = Query(default=None),
    sort_by: SortBy = Query(default=SortBy.UPVOTES),
    ctx: GateContext = Depends(get_gate_context),
) -> JSONResponse:
    filters = RequestFilters(status=status, search=search, sort_by=sort_by)
    return await _LIST_REQUESTS.respond(ctx.with_payload(filters))


@board_requests_router.post("")
async def create_feature_request(
    slug: str, data: FeatureRequestCreate, ctx: GateContext = Depends(get_gate_context)
) -> JSONResponse:
    return await _CREATE_REQUEST.respond(ctx.with_payload(data))


@router.get("/{feature_request_id}")
async def get_feature_request(
    feature_request_id: str, ctx: GateContext = Depends(get_gate_context)
) -> JSONResponse:
    return await _GET_REQUEST.respond(ctx)


@router.put("/{feature_request_id}")
async def update_feature_request(
    feature_request_id: str,
    data: FeatureRequestUpdate,
    ctx: GateContext = Depends(get_gate_context),
) -> JSONResponse:
    return await _UPDATE_REQUEST.respond(ctx.with_payload(data))


@router.delete("/{feature_request_id}")
async def delete_feature_request(
    feature_request_id: str, ctx: GateContext = Depends(get_gate_context)
) -> JSONResponse:
    return await _DELETE_REQUEST.respond(ctx)


@router.put("/{feature_request_id}/status")
async def update_feature_request_status(
    feature_request_id: str, data: StatusUpdate, ctx: GateContext = Depends(get_gate_context)
) -> JSONResponse:
    return await _UPDATE_STATUS.respond(ctx.with_payload(data))


@router.get("/{feature_request_id}/upvote")
async def get_upvote(
    feature_request_id: str, ctx: GateContext = Depends(get_gate_context)
) -> JSONResponse:
    return await _GET_UPVOTE.respond(ctx)


@router.post("/{feature_request_id}/upvote")
async def upvote_feature_request(
    feature_request_id: str, ctx: GateContext = Depends(get_gate_context)
) -> JSONResponse:
    return await _TOGGLE_UPVOTE.respond(ctx)
