"""Cache invalidation fan-out.

Every mutation handler reports a ``Mutation`` naming exactly the ids it
touched. ``plan_invalidation`` turns that into the fixed set of tags and paths
whose cached views are now stale; ``CacheInvalidator`` applies the plan after
the transaction has committed.

Fan-out per mutation:

=============================  ==================================================
Board created                  user-boards(owner), dashboard-stats(owner)
Board updated / deleted        board-details(slug), feature-requests(slug),
                               user-boards(owner), dashboard-stats(owner);
                               old slug as well when the slug changed
Feature request mutated        feature-requests(slug), user-boards + dashboard-stats
                               (owner), user-boards + dashboard-stats(submitter)
Upvote toggled                 feature-requests(slug), user-boards +
                               dashboard-stats(owner)
Comment mutated                comments(request), then as a feature request
                               mutation since comment_count changed
Profile updated                user-boards(user), dashboard-stats(user),
                               board-details of every board the user owns
=============================  ==================================================
"""

import enum
import logging
from dataclasses import dataclass, field

from featureboard.app.services.response_cache import ResponseCache

logger = logging.getLogger(__name__)


class CacheTag(str, enum.Enum):
    BOARD_DETAILS = "board-details"
    FEATURE_REQUESTS = "feature-requests"
    USER_BOARDS = "user-boards"
    COMMENTS = "comments"
    DASHBOARD_STATS = "dashboard-stats"

    def of(self, scope: str) -> str:
        return f"{self.value}-{scope}"


# Read paths served by the API; entries are registered under these in the cache


def board_details_path(slug: str) -> str:
    return f"/api/boards/slug/{slug}"


def feature_requests_path(slug: str) -> str:
    return f"/api/boards/{slug}/requests"


def analytics_path(slug: str) -> str:
    return f"/api/boards/{slug}/analytics"


def feature_request_path(feature_request_id: str) -> str:
    return f"/api/feature-requests/{feature_request_id}"


def comments_path(feature_request_id: str) -> str:
    return f"/api/feature-requests/{feature_request_id}/comments"


USER_BOARDS_PATH = "/api/boards"
DASHBOARD_STATS_PATH = "/api/dashboard/stats"


class MutationKind(str, enum.Enum):
    BOARD_CREATED = "board_created"
    BOARD_UPDATED = "board_updated"
    BOARD_DELETED = "board_deleted"
    FEATURE_REQUEST_CREATED = "feature_request_created"
    FEATURE_REQUEST_UPDATED = "feature_request_updated"
    FEATURE_REQUEST_DELETED = "feature_request_deleted"
    FEATURE_REQUEST_STATUS_CHANGED = "feature_request_status_changed"
    UPVOTE_TOGGLED = "upvote_toggled"
    COMMENT_CREATED = "comment_created"
    COMMENT_UPDATED = "comment_updated"
    COMMENT_DELETED = "comment_deleted"
    PROFILE_UPDATED = "profile_updated"


_BOARD_MUTATIONS = {MutationKind.BOARD_UPDATED, MutationKind.BOARD_DELETED}
_FEATURE_REQUEST_MUTATIONS = {
    MutationKind.FEATURE_REQUEST_CREATED,
    MutationKind.FEATURE_REQUEST_UPDATED,
    MutationKind.FEATURE_REQUEST_DELETED,
    MutationKind.FEATURE_REQUEST_STATUS_CHANGED,
}
_COMMENT_MUTATIONS = {
    MutationKind.COMMENT_CREATED,
    MutationKind.COMMENT_UPDATED,
    MutationKind.COMMENT_DELETED,
}


@dataclass(frozen=True)
class Mutation:
    """What a committed write touched, as reported by its handler."""

    kind: MutationKind
    board_slug: str | None = None
    board_creator_id: str | None = None
    previous_slug: str | None = None
    feature_request_id: str | None = None
    submitter_id: str | None = None
    user_id: str | None = None
    # Boards owned by user_id, for views that embed the owner profile
    owned_board_slugs: tuple[str, ...] = ()


@dataclass(frozen=True)
class InvalidationPlan:
    tags: frozenset[str] = frozenset()
    paths: frozenset[str] = frozenset()

    def __bool__(self) -> bool:
        return bool(self.tags or self.paths)


@dataclass
class _PlanBuilder:
    tags: set[str] = field(default_factory=set)
    paths: set[str] = field(default_factory=set)

    def user(self, user_id: str) -> None:
        self.tags.add(CacheTag.USER_BOARDS.of(user_id))
        self.tags.add(CacheTag.DASHBOARD_STATS.of(user_id))
        self.paths.update({USER_BOARDS_PATH, DASHBOARD_STATS_PATH})

    def board_details(self, slug: str) -> None:
        self.tags.add(CacheTag.BOARD_DETAILS.of(slug))
        self.paths.add(board_details_path(slug))

    def board(self, slug: str, owner_id: str | None) -> None:
        self.board_details(slug)
        self.feature_requests(slug, owner_id)

    def feature_requests(self, slug: str, owner_id: str | None) -> None:
        self.tags.add(CacheTag.FEATURE_REQUESTS.of(slug))
        self.paths.update({feature_requests_path(slug), analytics_path(slug)})
        # Board detail and the owner's board list embed request summaries
        self.paths.add(board_details_path(slug))
        if owner_id:
            self.user(owner_id)

    def comments(self, feature_request_id: str) -> None:
        self.tags.add(CacheTag.COMMENTS.of(feature_request_id))
        self.paths.update(
            {comments_path(feature_request_id), feature_request_path(feature_request_id)}
        )

    def build(self) -> InvalidationPlan:
        return InvalidationPlan(tags=frozenset(self.tags), paths=frozenset(self.paths))


def plan_invalidation(mutation: Mutation) -> InvalidationPlan:
    """Compute the tags and paths made stale by a committed mutation."""
    plan = _PlanBuilder()
    slug = mutation.board_slug
    owner = mutation.board_creator_id

    if mutation.kind is MutationKind.BOARD_CREATED:
        if owner:
            plan.user(owner)
    elif mutation.kind in _BOARD_MUTATIONS:
        if slug:
            plan.board(slug, owner)
        if mutation.previous_slug and mutation.previous_slug != slug:
            plan.board(mutation.previous_slug, owner)
    elif mutation.kind in _FEATURE_REQUEST_MUTATIONS or mutation.kind in _COMMENT_MUTATIONS:
        if mutation.kind in _COMMENT_MUTATIONS and mutation.feature_request_id:
            plan.comments(mutation.feature_request_id)
        elif mutation.feature_request_id:
            plan.paths.add(feature_request_path(mutation.feature_request_id))
        if slug:
            plan.feature_requests(slug, owner)
        if mutation.submitter_id and mutation.submitter_id != owner:
            plan.user(mutation.submitter_id)
    elif mutation.kind is MutationKind.UPVOTE_TOGGLED:
        if mutation.feature_request_id:
            plan.paths.add(feature_request_path(mutation.feature_request_id))
        if slug:
            plan.feature_requests(slug, owner)
    elif mutation.kind is MutationKind.PROFILE_UPDATED:
        if mutation.user_id:
            plan.user(mutation.user_id)
        for owned_slug in mutation.owned_board_slugs:
            plan.board_details(owned_slug)

    return plan.build()


class CacheInvalidator:
    """Applies invalidation plans to the response cache.

    Never raises: a failed invalidation leaves a stale view until its TTL
    runs out, while the entity store stays the source of truth.
    """

    def __init__(self, cache: ResponseCache) -> None:
        self.cache = cache

    async def apply(self, plan: InvalidationPlan) -> int:
        removed = 0
        for tag in sorted(plan.tags):
            try:
                removed += self.cache.invalidate_tag(tag)
            except Exception:
                logger.exception("[CACHE] Failed to invalidate tag %s", tag)
        for path in sorted(plan.paths):
            try:
                removed += self.cache.invalidate_path(path)
            except Exception:
                logger.exception("[CACHE] Failed to invalidate path %s", path)
        logger.debug(
            "[CACHE] Invalidated %d tags, %d paths (%d entries)",
            len(plan.tags),
            len(plan.paths),
            removed,
        )
        return removed

    async def invalidate(self, mutation: Mutation) -> int:
        return await self.apply(plan_invalidation(mutation))
