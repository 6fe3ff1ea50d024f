from __future__ import annotations

from sqlalchemy import Boolean, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from featureboard.app.db import Base


class Comment(Base):
    __tablename__ = "comments"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    feature_request_id: Mapped[str] = mapped_column(
        String, ForeignKey("feature_requests.id", ondelete="CASCADE"), nullable=False
    )
    # One level of nesting only: a reply's parent is always a top-level comment
    parent_comment_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("comments.id", ondelete="CASCADE"), nullable=True
    )
    author_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    author_name: Mapped[str | None] = mapped_column(String, nullable=True)
    author_email: Mapped[str | None] = mapped_column(String, nullable=True)
    content: Mapped[str] = mapped_column(String, nullable=False)
    is_edited: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[str] = mapped_column(String, nullable=False)
    updated_at: Mapped[str] = mapped_column(String, nullable=False)

    __table_args__ = (
        Index("idx_comments_request_parent", "feature_request_id", "parent_comment_id"),
    )

    # Relationships
    feature_request: Mapped[FeatureRequest] = relationship("FeatureRequest")
