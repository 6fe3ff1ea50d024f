from __future__ import annotations

from sqlalchemy import Boolean, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from featureboard.app.db import Base


class Board(Base):
    __tablename__ = "boards"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    slug: Mapped[str] = mapped_column(String, unique=True, nullable=False, index=True)
    title: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(String, nullable=True)
    theme_config: Mapped[str | None] = mapped_column(String, nullable=True)  # JSON text
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    creator_id: Mapped[str] = mapped_column(
        String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at: Mapped[str] = mapped_column(String, nullable=False)
    updated_at: Mapped[str] = mapped_column(String, nullable=False)

    # Relationships
    creator: Mapped[User] = relationship("User", back_populates="boards")
    feature_requests: Mapped[list[FeatureRequest]] = relationship(
        "FeatureRequest", back_populates="board", passive_deletes=True
    )
