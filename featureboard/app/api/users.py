"""User profile endpoints."""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from featureboard.app.errors import ConstraintViolation
from featureboard.app.models.user import User
from featureboard.app.schemas.user import ProfileUpdate, UserResponse
from featureboard.app.services.gate import GateContext, HandlerResult, auth_gate, get_gate_context
from featureboard.app.services.identity import profile_mutation

router = APIRouter(prefix="/users", tags=["users"])


async def _taken_by_other(ctx: GateContext, column, value: str) -> bool:
    result = await ctx.db.execute(select(User.id).where(column == value))
    owner_id = result.scalar_one_or_none()
    return owner_id is not None and owner_id != ctx.actor.id


async def _get_me(ctx: GateContext) -> HandlerResult:
    return HandlerResult(data=UserResponse.model_validate(ctx.actor).model_dump())


async def _update_me(ctx: GateContext) -> HandlerResult:
    data: ProfileUpdate = ctx.payload
    user = ctx.actor

    if data.email != user.email and await _taken_by_other(ctx, User.email, data.email):
        raise ConstraintViolation("Email already taken")
    if data.username and await _taken_by_other(ctx, User.username, data.username):
        raise ConstraintViolation("Username already taken")

    user.name = data.name
    user.email = data.email
    user.username = data.username or None
    user.country = data.country or None
    user.updated_at = datetime.now(UTC).isoformat()
    try:
        await ctx.db.flush()
    except IntegrityError as exc:
        raise ConstraintViolation("Email or username already taken") from exc

    return HandlerResult(
        data=UserResponse.model_validate(user).model_dump(),
        message="Profile updated successfully",
        mutation=await profile_mutation(ctx.db, user),
    )


_GET_ME = auth_gate(_get_me)
_UPDATE_ME = auth_gate(_update_me)


@router.get("/me")
async def get_me(ctx: GateContext = Depends(get_gate_context)) -> JSONResponse:
    return await _GET_ME.respond(ctx)


@router.put("/me")
async def update_me(data: ProfileUpdate, ctx: GateContext = Depends(get_gate_context)) -> JSONResponse:
    return await _UPDATE_ME.respond(ctx.with_payload(data))
