"""Models for polls attached to posts and the votes cast on them."""

import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from shadefast_stage.db.session import Base
from shadefast_stage.db.time import utcnow


class Poll(Base):
    """A question with a fixed list of options, published through a post."""

    __tablename__ = "polls"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    post_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("posts.id", ondelete="CASCADE"),
        nullable=False,
    )
    question: Mapped[str] = mapped_column(Text, nullable=False)
    # Option labels in display order; votes reference them by index.
    options: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )


class PollVote(Base):
    """One vote per user per poll."""

    __tablename__ = "poll_votes"

    poll_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("polls.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    option_index: Mapped[int] = mapped_column(Integer, nullable=False)
