"""Board schemas."""

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

SLUG_PATTERN = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"


class BoardCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    slug: str = Field(min_length=2, max_length=64, pattern=SLUG_PATTERN)
    description: str | None = None
    theme_config: dict[str, Any] | None = None
    is_public: bool = True


class BoardUpdate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    slug: str = Field(min_length=2, max_length=64, pattern=SLUG_PATTERN)
    description: str | None = None
    theme_config: dict[str, Any] | None = None
    is_public: bool | None = None


class CreatorSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str | None = None
    email: str
    image: str | None = None


class FeatureRequestSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    status: str
    upvote_count: int
    comment_count: int
    created_at: str


class BoardResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    slug: str
    title: str
    description: str | None = None
    theme_config: dict[str, Any] | None = None
    is_public: bool
    creator_id: str
    created_at: str
    updated_at: str

    @field_validator("theme_config", mode="before")
    @classmethod
    def _decode_theme(cls, value: Any) -> Any:
        # Stored as JSON text
        if isinstance(value, str):
            return json.loads(value)
        return value


class BoardDetailResponse(BoardResponse):
    creator: CreatorSummary
    feature_requests: list[FeatureRequestSummary] = []
    feature_request_count: int = 0


class StatusBreakdown(BaseModel):
    NEW: int = 0
    IN_PROGRESS: int = 0
    SHIPPED: int = 0
    CANCELLED: int = 0


class ActivityPoint(BaseModel):
    date: str
    requests_count: int
    upvotes_count: int


class BoardAnalytics(BaseModel):
    total_requests: int
    total_upvotes: int
    total_comments: int
    status_breakdown: StatusBreakdown
    recent_activity: list[ActivityPoint]
    top_requests: list[FeatureRequestSummary]
    board_info: BoardResponse
