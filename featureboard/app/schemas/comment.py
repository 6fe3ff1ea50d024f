"""Comment schemas."""

from pydantic import BaseModel, ConfigDict, Field


class CommentCreate(BaseModel):
    content: str = Field(min_length=1, max_length=5000)
    # Required for anonymous authors; defaulted from the session otherwise
    author_name: str | None = None
    author_email: str | None = None
    parent_comment_id: str | None = None


class CommentUpdate(BaseModel):
    content: str = Field(min_length=1, max_length=5000)


class CommentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    feature_request_id: str
    parent_comment_id: str | None = None
    author_id: str | None = None
    author_name: str | None = None
    content: str
    is_edited: bool
    created_at: str
    updated_at: str


class CommentThread(CommentResponse):
    replies: list[CommentResponse] = []
