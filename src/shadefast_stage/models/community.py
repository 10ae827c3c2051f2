"""SQLAlchemy models for community membership and metadata."""
import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from shadefast_stage.db.session import Base
from shadefast_stage.db.time import utcnow


def _new_id() -> str:
    return str(uuid.uuid4())


class Community(Base):
    """Community metadata used for grouping posts and members."""

    __tablename__ = "communities"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    # Private communities are visible to their creator and members only.
    is_private: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    creator_id: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )


class CommunityMembership(Base):
    """Join table mapping users into communities."""

    __tablename__ = "community_memberships"

    community_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("communities.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
