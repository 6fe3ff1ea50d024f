"""Ownership predicates: who may mutate what.

Pure functions, no I/O. Callers pass fully loaded entities, including the
board reached through a feature request (and through a comment's feature
request). A null submitter/author never matches an actor, so legacy anonymous
content is only modifiable by the board owner.
"""

from typing import Protocol


class _BoardRef(Protocol):
    creator_id: str


class FeatureRequestWithBoard(Protocol):
    submitter_id: str | None
    board: _BoardRef


class _FeatureRequestRef(Protocol):
    board: _BoardRef


class CommentWithFeatureRequest(Protocol):
    author_id: str | None
    feature_request: _FeatureRequestRef


def is_board_owner(actor_id: str, board_creator_id: str) -> bool:
    return actor_id == board_creator_id


def _is_own(actor_id: str, owner_id: str | None) -> bool:
    return owner_id is not None and actor_id == owner_id


def can_modify_feature_request(actor_id: str, feature_request: FeatureRequestWithBoard) -> bool:
    """Submitters edit their own requests; board owners moderate any request on their board."""
    return _is_own(actor_id, feature_request.submitter_id) or is_board_owner(
        actor_id, feature_request.board.creator_id
    )


def can_modify_comment(actor_id: str, comment: CommentWithFeatureRequest) -> bool:
    """Authors edit their own comments; board owners moderate any comment on their board."""
    return _is_own(actor_id, comment.author_id) or is_board_owner(
        actor_id, comment.feature_request.board.creator_id
    )


class _VisibleBoard(Protocol):
    creator_id: str
    is_public: bool


def can_view_board(actor_id: str | None, board: _VisibleBoard) -> bool:
    """Private boards are readable by their owner only."""
    return board.is_public or (actor_id is not None and is_board_owner(actor_id, board.creator_id))


# Rules in the (actor_id, resource) shape used by the gate's ownership stage


def owns_board(actor_id: str, board: _BoardRef) -> bool:
    return is_board_owner(actor_id, board.creator_id)


def owns_feature_request_board(actor_id: str, feature_request: FeatureRequestWithBoard) -> bool:
    return is_board_owner(actor_id, feature_request.board.creator_id)
