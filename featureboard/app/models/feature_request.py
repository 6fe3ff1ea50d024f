from __future__ import annotations

import enum

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from featureboard.app.db import Base


class RequestStatus(str, enum.Enum):
    NEW = "NEW"
    IN_PROGRESS = "IN_PROGRESS"
    SHIPPED = "SHIPPED"
    CANCELLED = "CANCELLED"


class FeatureRequest(Base):
    __tablename__ = "feature_requests"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    board_id: Mapped[str] = mapped_column(
        String, ForeignKey("boards.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default=RequestStatus.NEW.value)

    # submitter_id is the only field used for authorization. The name/email pair
    # is display data captured at creation time (and the only identity anonymous
    # submissions have).
    submitter_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    submitter_name: Mapped[str | None] = mapped_column(String, nullable=True)
    submitter_email: Mapped[str | None] = mapped_column(String, nullable=True)

    # Denormalized counters, maintained by atomic increment/decrement only
    upvote_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    comment_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    is_edited: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[str] = mapped_column(String, nullable=False)
    updated_at: Mapped[str] = mapped_column(String, nullable=False)

    __table_args__ = (
        Index("idx_feature_requests_board_upvotes", "board_id", "upvote_count"),
    )

    # Relationships
    board: Mapped[Board] = relationship("Board", back_populates="feature_requests")
