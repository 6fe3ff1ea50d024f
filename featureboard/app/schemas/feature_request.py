"""Feature request schemas."""

from pydantic import BaseModel, ConfigDict, Field

from featureboard.app.models.feature_request import RequestStatus


class FeatureRequestCreate(BaseModel):
    title: str = Field(min_length=1, max_length=300)
    description: str | None = None
    # Required for anonymous submitters; defaulted from the session otherwise
    submitter_name: str | None = None
    submitter_email: str | None = None


class FeatureRequestUpdate(BaseModel):
    title: str = Field(min_length=1, max_length=300)
    description: str | None = None
    status: RequestStatus | None = None


class StatusUpdate(BaseModel):
    status: RequestStatus


class FeatureRequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    board_id: str
    title: str
    description: str | None = None
    status: str
    submitter_id: str | None = None
    submitter_name: str | None = None
    upvote_count: int
    comment_count: int
    is_edited: bool
    created_at: str
    updated_at: str


class UpvoteState(BaseModel):
    upvoted: bool
    upvote_count: int | None = None
