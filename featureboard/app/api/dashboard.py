"""Dashboard endpoints: aggregate stats over the caller's boards."""

from datetime import UTC, datetime, timedelta

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import case, distinct, func, select

from featureboard.app.models.board import Board
from featureboard.app.models.feature_request import FeatureRequest
from featureboard.app.schemas.dashboard import DashboardStats
from featureboard.app.services.gate import GateContext, HandlerResult, auth_gate, get_gate_context
from featureboard.app.services.invalidation import DASHBOARD_STATS_PATH, CacheTag

router = APIRouter(prefix="/dashboard", tags=["dashboard"])

_ACTIVE_WINDOW = timedelta(days=30)


async def _dashboard_stats(ctx: GateContext) -> HandlerResult:
    user_id = ctx.actor.id

    async def load() -> dict:
        since = (datetime.now(UTC) - _ACTIVE_WINDOW).isoformat()
        row = (
            await ctx.db.execute(
                select(
                    func.count(distinct(Board.id)),
                    func.count(FeatureRequest.id),
                    func.coalesce(func.sum(FeatureRequest.upvote_count), 0),
                    func.count(
                        distinct(case((FeatureRequest.created_at > since, Board.id), else_=None))
                    ),
                )
                .select_from(Board)
                .outerjoin(FeatureRequest, FeatureRequest.board_id == Board.id)
                .where(Board.creator_id == user_id)
            )
        ).one()
        total_boards, total_requests, total_upvotes, active_boards = row
        return DashboardStats(
            total_boards=total_boards,
            total_requests=total_requests,
            total_upvotes=total_upvotes,
            active_boards=active_boards,
        ).model_dump()

    data = await ctx.cache.get_or_load(
        f"dashboard-stats:{user_id}",
        load,
        tags=[CacheTag.DASHBOARD_STATS.of(user_id)],
        path=DASHBOARD_STATS_PATH,
    )
    return HandlerResult(data=data)


_DASHBOARD_STATS = auth_gate(_dashboard_stats)


@router.get("/stats")
async def dashboard_stats(ctx: GateContext = Depends(get_gate_context)) -> JSONResponse:
    return await _DASHBOARD_STATS.respond(ctx)
