"""Fixed-window rate limiting backed by the datastore."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from shadefast_stage.db.time import utcnow
from shadefast_stage.models import RateLimitCounter


class RateLimitCheckError(RuntimeError):
    """Raised when the rate-limit counter cannot be read or bumped."""


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    current_count: int


def window_start_for(moment: datetime, window_seconds: int) -> int:
    """Return the epoch second at which the fixed window containing ``moment`` began."""
    epoch = int(moment.timestamp())
    return epoch - (epoch % window_seconds)


def check_and_bump_rate_limit(
    db: Session,
    user_id: str,
    action: str,
    window_seconds: int,
    max_requests: int,
    now: datetime | None = None,
) -> RateLimitResult:
    """Count this call against the caller's window and report whether it is allowed.

    The counter is incremented before the comparison, so the call that trips
    the limit is itself counted.

    Raises:
        RateLimitCheckError: If the counter cannot be updated.
    """
    if window_seconds <= 0:
        raise ValueError("window_seconds must be positive")

    window_start = window_start_for(now or utcnow(), window_seconds)
    try:
        counter = db.get(RateLimitCounter, (user_id, action, window_start))
        if counter is None:
            counter = RateLimitCounter(
                user_id=user_id,
                action=action,
                window_start=window_start,
                request_count=0,
            )
            db.add(counter)
        counter.request_count += 1
        db.commit()
        current = counter.request_count
    except SQLAlchemyError as exc:
        db.rollback()
        raise RateLimitCheckError(f"rate_limit_update_failed:{exc}") from exc

    return RateLimitResult(allowed=current <= max_requests, current_count=current)
