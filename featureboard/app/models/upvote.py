from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from featureboard.app.db import Base


class Upvote(Base):
    __tablename__ = "upvotes"

    # Composite primary key: at most one upvote per (request, user)
    feature_request_id: Mapped[str] = mapped_column(
        String, ForeignKey("feature_requests.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[str] = mapped_column(
        String, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    created_at: Mapped[str] = mapped_column(String, nullable=False)
