# models/rate.py
from sqlalchemy import BigInteger, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from shadefast_stage.db.session import Base


class RateLimitCounter(Base):
    __tablename__ = "rate_limit_counters"
    # (user, action, window) -> number of calls seen in that fixed window.
    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    action: Mapped[str] = mapped_column(String(64), primary_key=True)
    # Epoch seconds of the window start, aligned to the window length.
    window_start: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    request_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
