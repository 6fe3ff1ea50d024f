"""Comment endpoints. Threads are one level deep: replies never have replies."""

import uuid
from datetime import UTC, datetime

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from featureboard.app.errors import Forbidden, NotFound, ValidationFailed
from featureboard.app.models.comment import Comment
from featureboard.app.models.feature_request import FeatureRequest
from featureboard.app.schemas.comment import CommentCreate, CommentResponse, CommentUpdate
from featureboard.app.services.gate import (
    GateContext,
    HandlerResult,
    get_gate_context,
    ownership_gate,
    public_gate,
)
from featureboard.app.services.invalidation import (
    CacheTag,
    Mutation,
    MutationKind,
    comments_path,
)
from featureboard.app.services.lookup import ResourceKind
from featureboard.app.services.permissions import can_modify_comment, can_view_board
from featureboard.app.services.threads import (
    bump_comment_count,
    delete_thread,
    load_thread,
    load_threads,
)

router = APIRouter(prefix="/feature-requests/{feature_request_id}/comments", tags=["comments"])


def _actor_id(ctx: GateContext) -> str | None:
    return ctx.actor.id if ctx.actor else None


async def _visible_request(ctx: GateContext) -> FeatureRequest:
    fr = await ctx.lookups.lookup(ResourceKind.FEATURE_REQUEST, ctx.params["feature_request_id"])
    if fr is None:
        raise NotFound("Feature request not found")
    if not can_view_board(_actor_id(ctx), fr.board):
        raise Forbidden("This board is private")
    return fr


def _owned_comment(ctx: GateContext) -> Comment:
    """The gate-resolved comment, provided it belongs to the request in the path."""
    comment: Comment = ctx.resource
    if comment.feature_request_id != ctx.params["feature_request_id"]:
        raise NotFound("Comment not found")
    return comment


def _mutation(kind: MutationKind, fr: FeatureRequest) -> Mutation:
    return Mutation(
        kind,
        board_slug=fr.board.slug,
        board_creator_id=fr.board.creator_id,
        feature_request_id=fr.id,
        submitter_id=fr.submitter_id,
    )


# --- Handlers ---


async def _list_comments(ctx: GateContext) -> HandlerResult:
    fr = await _visible_request(ctx)
    data = await ctx.cache.get_or_load(
        f"comments:{fr.id}",
        lambda: load_threads(ctx.db, fr.id),
        tags=[CacheTag.COMMENTS.of(fr.id)],
        path=comments_path(fr.id),
    )
    return HandlerResult(data=data)


async def _create_comment(ctx: GateContext) -> HandlerResult:
    fr = await _visible_request(ctx)
    data: CommentCreate = ctx.payload
    actor = ctx.actor

    content = data.content.strip()
    author_name = data.author_name or (actor.display_name if actor else None)
    author_email = data.author_email or (actor.email if actor else None)
    if not content or not author_name or not author_email:
        raise ValidationFailed("Content, name, and email are required")

    if data.parent_comment_id:
        parent = await ctx.lookups.lookup(ResourceKind.COMMENT, data.parent_comment_id)
        if parent is None or parent.feature_request_id != fr.id:
            raise NotFound("Parent comment not found")
        if parent.parent_comment_id is not None:
            raise ValidationFailed("Replies cannot be nested more than one level")

    now = datetime.now(UTC).isoformat()
    comment = Comment(
        id=str(uuid.uuid4()),
        feature_request_id=fr.id,
        parent_comment_id=data.parent_comment_id or None,
        author_id=actor.id if actor else None,
        author_name=author_name,
        author_email=author_email,
        content=content,
        is_edited=False,
        created_at=now,
        updated_at=now,
    )
    ctx.db.add(comment)
    await ctx.db.flush()
    await bump_comment_count(ctx.db, fr.id, 1)

    return HandlerResult(
        data=CommentResponse.model_validate(comment).model_dump(),
        message="Comment created successfully",
        status_code=201,
        mutation=_mutation(MutationKind.COMMENT_CREATED, fr),
    )


async def _get_comment(ctx: GateContext) -> HandlerResult:
    fr = await _visible_request(ctx)
    comment = await ctx.lookups.lookup(ResourceKind.COMMENT, ctx.params["comment_id"])
    if comment is None or comment.feature_request_id != fr.id:
        raise NotFound("Comment not found")
    return HandlerResult(data=await load_thread(ctx.db, comment))


async def _update_comment(ctx: GateContext) -> HandlerResult:
    comment = _owned_comment(ctx)
    data: CommentUpdate = ctx.payload
    content = data.content.strip()
    if not content:
        raise ValidationFailed("Content is required")

    comment.content = content
    comment.is_edited = True
    comment.updated_at = datetime.now(UTC).isoformat()
    await ctx.db.flush()
    return HandlerResult(
        data=CommentResponse.model_validate(comment).model_dump(),
        message="Comment updated successfully",
        mutation=_mutation(MutationKind.COMMENT_UPDATED, comment.feature_request),
    )


async def _delete_comment(ctx: GateContext) -> HandlerResult:
    comment = _owned_comment(ctx)
    fr = comment.feature_request
    removed = await delete_thread(ctx.db, comment)
    ctx.lookups.forget(ResourceKind.COMMENT, comment.id)
    return HandlerResult(
        data={"deleted_count": removed},
        message="Comment deleted successfully",
        mutation=_mutation(MutationKind.COMMENT_DELETED, fr),
    )


_LIST_COMMENTS = public_gate(_list_comments)
_CREATE_COMMENT = public_gate(_create_comment)
_GET_COMMENT = public_gate(_get_comment)
_UPDATE_COMMENT = ownership_gate(
    ResourceKind.COMMENT,
    "comment_id",
    can_modify_comment,
    _update_comment,
    "You can only edit your own comments",
)
_DELETE_COMMENT = ownership_gate(
    ResourceKind.COMMENT,
    "comment_id",
    can_modify_comment,
    _delete_comment,
    "You can only delete your own comments",
)


# --- Routes ---


@router.get("")
async def list_comments(
    feature_request_id: str, ctx: GateContext = Depends(get_gate_context)
) -> JSONResponse:
    return await _LIST_COMMENTS.respond(ctx)


@router.post("")
async def create_comment(
    feature_request_id: str, data: CommentCreate, ctx: GateContext = Depends(get_gate_context)
) -> JSONResponse:
    return await _CREATE_COMMENT.respond(ctx.with_payload(data))


@router.get("/{comment_id}")
async def get_comment(
    feature_request_id: str, comment_id: str, ctx: GateContext = Depends(get_gate_context)
) -> JSONResponse:
    return await _GET_COMMENT.respond(ctx)


@router.put("/{comment_id}")
async def update_comment(
    feature_request_id: str,
    comment_id: str,
    data: CommentUpdate,
    ctx: GateContext = Depends(get_gate_context),
) -> JSONResponse:
    return await _UPDATE_COMMENT.respond(ctx.with_payload(data))


@router.delete("/{comment_id}")
async def delete_comment(
    feature_request_id: str, comment_id: str, ctx: GateContext = Depends(get_gate_context)
) -> JSONResponse:
    return await _DELETE_COMMENT.respond(ctx)
