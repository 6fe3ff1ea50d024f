from featureboard.app.models.user import User
from featureboard.app.models.board import Board
from featureboard.app.models.feature_request import FeatureRequest, RequestStatus
from featureboard.app.models.comment import Comment
from featureboard.app.models.upvote import Upvote

__all__ = [
    "User",
    "Board",
    "FeatureRequest",
    "RequestStatus",
    "Comment",
    "Upvote",
]
