"""Authorization gate: an ordered pipeline of stages in front of a handler.

Each stage takes a ``GateContext`` and returns either the next context or a
``Rejection``. ``Gate.run`` stops at the first rejection, so a handler runs
only once every stage before it has passed:

    resolve-identity -> sync-identity -> resolve-resource -> check-ownership
        -> invoke-handler -> fan-out-invalidate

The handler's transaction is committed by ``InvokeHandler`` before
``FanOut`` invalidates cached views; invalidation never runs for a write that
did not commit, and an invalidation failure never fails the write.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from fastapi import Depends, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from featureboard.app.db import get_db
from featureboard.app.errors import BoardError, ErrorKind, Rejection, Unauthenticated
from featureboard.app.models.user import User
from featureboard.app.services.identity import (
    IdentityProvider,
    IdentitySession,
    profile_mutation,
    upsert_identity,
)
from featureboard.app.services.invalidation import CacheInvalidator, Mutation, plan_invalidation
from featureboard.app.services.lookup import LookupCache, ResourceKind, get_lookup_cache
from featureboard.app.services.response_cache import ResponseCache

logger = logging.getLogger(__name__)

_NOT_FOUND_MESSAGES = {
    ResourceKind.BOARD: "Board not found",
    ResourceKind.FEATURE_REQUEST: "Feature request not found",
    ResourceKind.COMMENT: "Comment not found",
    ResourceKind.USER: "User not found",
}


@dataclass(frozen=True)
class HandlerResult:
    data: Any = None
    message: str | None = None
    status_code: int = 200
    # Set by handlers that wrote something; drives the invalidation fan-out
    mutation: Mutation | None = None

    def to_response(self) -> JSONResponse:
        content: dict[str, Any] = {"success": True}
        if self.data is not None:
            content["data"] = jsonable_encoder(self.data)
        if self.message is not None:
            content["message"] = self.message
        return JSONResponse(status_code=self.status_code, content=content)


@dataclass(frozen=True)
class GateContext:
    request: Request
    db: AsyncSession
    lookups: LookupCache
    identity_provider: IdentityProvider
    invalidator: CacheInvalidator
    cache: ResponseCache
    params: Mapping[str, str] = field(default_factory=dict)
    payload: BaseModel | None = None
    session: IdentitySession | None = None
    actor: User | None = None
    resource: Any = None
    result: HandlerResult | None = None

    def with_payload(self, payload: BaseModel) -> "GateContext":
        return replace(self, payload=payload)


StageOutcome = GateContext | Rejection
Handler = Callable[[GateContext], Awaitable[HandlerResult]]
OwnershipRule = Callable[[str, Any], bool]


@dataclass(frozen=True)
class ResolveIdentity:
    """Read the caller's session; without one, reject unless anonymous callers are allowed.

    A provider failure is not "no session": the caller may well be signed in,
    so it fails closed even where anonymous callers are allowed.
    """

    required: bool = True
    name: str = "resolve-identity"

    async def __call__(self, ctx: GateContext) -> StageOutcome:
        try:
            session = await ctx.identity_provider.resolve(ctx.request)
        except Exception:
            logger.exception("[GATE] Identity provider failed")
            return Rejection(ErrorKind.IDENTITY_SYNC_FAILED, "User authentication failed")
        if session is None:
            if self.required:
                return Unauthenticated().rejection()
            return ctx
        return replace(ctx, session=session)


async def _invalidate_profile(ctx: GateContext, actor: User) -> None:
    # The profile change is committed; a failure here only leaves stale views
    try:
        mutation = await profile_mutation(ctx.db, actor)
    except Exception:
        logger.exception("[CACHE] Could not plan invalidation for user %s", actor.id)
        await ctx.db.rollback()
        return
    await ctx.invalidator.invalidate(mutation)


@dataclass(frozen=True)
class SyncIdentity:
    """Upsert the session's user and commit it, failing closed.

    A sync that changed the stored profile drops the cached views showing it.
    """

    name: str = "sync-identity"

    async def __call__(self, ctx: GateContext) -> StageOutcome:
        if ctx.session is None:
            return ctx
        try:
            actor, changed = await upsert_identity(ctx.db, ctx.session)
            await ctx.db.commit()
        except Exception:
            logger.exception("[IDENTITY] User sync failed for %s", ctx.session.id)
            await ctx.db.rollback()
            return Rejection(ErrorKind.IDENTITY_SYNC_FAILED, "User authentication failed")
        ctx.lookups.prime(ResourceKind.USER, actor.id, actor)
        if changed:
            await _invalidate_profile(ctx, actor)
        return replace(ctx, actor=actor)


@dataclass(frozen=True)
class ResolveResource:
    """Load the target resource named by a route parameter."""

    kind: ResourceKind
    param: str
    name: str = "resolve-resource"

    async def __call__(self, ctx: GateContext) -> StageOutcome:
        key = ctx.params.get(self.param)
        if not key:
            return Rejection(ErrorKind.VALIDATION, f"{self.param} is required")
        resource = await ctx.lookups.lookup(self.kind, key)
        if resource is None:
            return Rejection(ErrorKind.NOT_FOUND, _NOT_FOUND_MESSAGES[self.kind])
        return replace(ctx, resource=resource)


@dataclass(frozen=True)
class CheckOwnership:
    rule: OwnershipRule
    message: str = "Insufficient permissions"
    name: str = "check-ownership"

    async def __call__(self, ctx: GateContext) -> StageOutcome:
        if ctx.actor is None:
            return Unauthenticated().rejection()
        if not self.rule(ctx.actor.id, ctx.resource):
            return Rejection(ErrorKind.FORBIDDEN, self.message)
        return ctx


@dataclass(frozen=True)
class InvokeHandler:
    """Run the handler and commit its transaction; map handler errors to rejections."""

    handler: Handler
    name: str = "invoke-handler"

    async def __call__(self, ctx: GateContext) -> StageOutcome:
        try:
            result = await self.handler(ctx)
            await ctx.db.commit()
        except BoardError as exc:
            await ctx.db.rollback()
            return exc.rejection()
        except Exception:
            logger.exception("[GATE] Handler %s failed", getattr(self.handler, "__name__", "?"))
            await ctx.db.rollback()
            return Rejection(ErrorKind.INTERNAL, "Internal server error")
        return replace(ctx, result=result)


@dataclass(frozen=True)
class FanOut:
    name: str = "fan-out-invalidate"

    async def __call__(self, ctx: GateContext) -> StageOutcome:
        if ctx.result is None or ctx.result.mutation is None:
            return ctx
        plan = plan_invalidation(ctx.result.mutation)
        # The write is committed; finish invalidating even if the caller went away
        try:
            await asyncio.shield(ctx.invalidator.apply(plan))
        except asyncio.CancelledError:
            logger.warning("[CACHE] Caller cancelled during invalidation; continuing in background")
            raise
        return ctx


Stage = Callable[[GateContext], Awaitable[StageOutcome]]


class Gate:
    """Runs stages in order, all-or-nothing."""

    def __init__(self, *stages: Stage) -> None:
        self.stages = stages

    async def run(self, ctx: GateContext) -> StageOutcome:
        for stage in self.stages:
            stage_name = getattr(stage, "name", type(stage).__name__)
            try:
                outcome = await stage(ctx)
            except Exception:
                logger.exception("[GATE] Stage %s raised", stage_name)
                await ctx.db.rollback()
                return Rejection(ErrorKind.INTERNAL, "Internal server error")
            if isinstance(outcome, Rejection):
                logger.debug(
                    "[GATE] %s %s rejected at %s: %s",
                    ctx.request.method,
                    ctx.request.url.path,
                    stage_name,
                    outcome.kind.value,
                )
                return outcome
            ctx = outcome
        return ctx

    async def respond(self, ctx: GateContext) -> JSONResponse:
        outcome = await self.run(ctx)
        if isinstance(outcome, Rejection):
            return outcome.to_response()
        if outcome.result is None:
            return HandlerResult().to_response()
        return outcome.result.to_response()


def public_gate(handler: Handler) -> Gate:
    """Anonymous callers allowed; a session, when present, is still synced."""
    return Gate(ResolveIdentity(required=False), SyncIdentity(), InvokeHandler(handler), FanOut())


def auth_gate(handler: Handler) -> Gate:
    return Gate(ResolveIdentity(), SyncIdentity(), InvokeHandler(handler), FanOut())


def ownership_gate(
    kind: ResourceKind,
    param: str,
    rule: OwnershipRule,
    handler: Handler,
    message: str = "Insufficient permissions",
) -> Gate:
    return Gate(
        ResolveIdentity(),
        SyncIdentity(),
        ResolveResource(kind, param),
        CheckOwnership(rule, message),
        InvokeHandler(handler),
        FanOut(),
    )


async def get_gate_context(
    request: Request,
    db: AsyncSession = Depends(get_db),
    lookups: LookupCache = Depends(get_lookup_cache),
) -> GateContext:
    """FastAPI dependency assembling the per-request context from app state."""
    state = request.app.state
    return GateContext(
        request=request,
        db=db,
        lookups=lookups,
        identity_provider=state.identity_provider,
        invalidator=state.invalidator,
        cache=state.response_cache,
        params=dict(request.path_params),
    )
