"""Tests for the ownership predicates."""

from types import SimpleNamespace

from featureboard.app.services.permissions import (
    can_modify_comment,
    can_modify_feature_request,
    can_view_board,
    is_board_owner,
    owns_board,
    owns_feature_request_board,
)


def _board(creator_id: str = "owner", is_public: bool = True) -> SimpleNamespace:
    return SimpleNamespace(creator_id=creator_id, is_public=is_public)


def _request(submitter_id: str | None, creator_id: str = "owner") -> SimpleNamespace:
    return SimpleNamespace(submitter_id=submitter_id, board=_board(creator_id))


def _comment(author_id: str | None, creator_id: str = "owner") -> SimpleNamespace:
    return SimpleNamespace(
        author_id=author_id, feature_request=SimpleNamespace(board=_board(creator_id))
    )


def test_is_board_owner():
    assert is_board_owner("owner", "owner")
    assert not is_board_owner("someone", "owner")


def test_submitter_can_modify_own_request():
    assert can_modify_feature_request("alice", _request("alice"))


def test_board_owner_can_modify_any_request():
    assert can_modify_feature_request("owner", _request("alice"))


def test_stranger_cannot_modify_request():
    assert not can_modify_feature_request("mallory", _request("alice"))


def test_anonymous_request_only_modifiable_by_owner():
    """A null submitter never matches an actor."""
    assert not can_modify_feature_request("alice", _request(None))
    assert can_modify_feature_request("owner", _request(None))


def test_comment_author_and_owner_can_modify():
    comment = _comment("bob")
    assert can_modify_comment("bob", comment)
    assert can_modify_comment("owner", comment)
    assert not can_modify_comment("mallory", comment)


def test_anonymous_comment_only_modifiable_by_owner():
    assert not can_modify_comment("bob", _comment(None))
    assert can_modify_comment("owner", _comment(None))


def test_can_view_board():
    assert can_view_board(None, _board(is_public=True))
    assert not can_view_board(None, _board(is_public=False))
    assert not can_view_board("alice", _board(is_public=False))
    assert can_view_board("owner", _board(is_public=False))


def test_gate_rules():
    assert owns_board("owner", _board())
    assert not owns_board("alice", _board())
    assert owns_feature_request_board("owner", _request("alice"))
    assert not owns_feature_request_board("alice", _request("alice"))
