# src/shadefast_stage/models/media.py
"""Persisted upload moderation verdicts."""

from datetime import datetime

from sqlalchemy import JSON, BigInteger, DateTime, Float, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from shadefast_stage.db.session import Base
from shadefast_stage.db.time import utcnow


class MediaPolicyCheck(Base):
    """Latest policy verdict for one stored media object.

    Keyed by object path: a new check for the same path overwrites the row, so
    only the most recent verdict is retained.
    """

    __tablename__ = "media_policy_checks"

    object_path: Mapped[str] = mapped_column(Text, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    # "image" or "video", derived from the storage prefix.
    media_type: Mapped[str] = mapped_column(String(16), nullable=False)
    mime_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    byte_size: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    # "approved", "blocked" or "error".
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    provider: Mapped[str] = mapped_column(Text, nullable=False)
    provider_reference: Mapped[str | None] = mapped_column(Text, nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Provider-defined scale; stored as received.
    confidence: Mapped[float | None] = mapped_column(Float, nullable=True)
    labels: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)

    checked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
