from featureboard.app.schemas.board import (
    BoardAnalytics,
    BoardCreate,
    BoardDetailResponse,
    BoardResponse,
    BoardUpdate,
)
from featureboard.app.schemas.comment import (
    CommentCreate,
    CommentResponse,
    CommentThread,
    CommentUpdate,
)
from featureboard.app.schemas.dashboard import DashboardStats
from featureboard.app.schemas.feature_request import (
    FeatureRequestCreate,
    FeatureRequestResponse,
    FeatureRequestUpdate,
    StatusUpdate,
    UpvoteState,
)
from featureboard.app.schemas.user import ProfileUpdate, UserResponse

__all__ = [
    "BoardCreate",
    "BoardUpdate",
    "BoardResponse",
    "BoardDetailResponse",
    "BoardAnalytics",
    "FeatureRequestCreate",
    "FeatureRequestUpdate",
    "FeatureRequestResponse",
    "StatusUpdate",
    "UpvoteState",
    "CommentCreate",
    "CommentUpdate",
    "CommentResponse",
    "CommentThread",
    "DashboardStats",
    "ProfileUpdate",
    "UserResponse",
]
