from __future__ import annotations

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from featureboard.app.db import Base


class User(Base):
    __tablename__ = "users"

    # Stable id issued by the identity provider, not generated here
    id: Mapped[str] = mapped_column(String, primary_key=True)
    email: Mapped[str] = mapped_column(String, unique=True, nullable=False)
    name: Mapped[str | None] = mapped_column(String, nullable=True, default=None)
    image: Mapped[str | None] = mapped_column(String, nullable=True, default=None)
    username: Mapped[str | None] = mapped_column(String, unique=True, nullable=True, default=None)
    country: Mapped[str | None] = mapped_column(String, nullable=True, default=None)
    # Timestamps are stored as ISO 8601 strings (not datetime columns) throughout
    # the schema. This avoids timezone/serialization issues with SQLite and keeps
    # JSON output consistent.
    created_at: Mapped[str] = mapped_column(String, nullable=False)
    updated_at: Mapped[str] = mapped_column(String, nullable=False)

    # Relationships
    boards: Mapped[list[Board]] = relationship("Board", back_populates="creator")

    @property
    def display_name(self) -> str:
        """Name shown on content this user posts; falls back when the profile has none."""
        return self.name or self.username or self.email
