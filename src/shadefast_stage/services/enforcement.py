"""Ban lookups used to restrict what enforced users may do."""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from shadefast_stage.db.time import utcnow
from shadefast_stage.models import UserBan

logger = logging.getLogger(__name__)


class EnforcementCheckError(RuntimeError):
    """Raised when ban status cannot be determined."""


def is_user_banned(db: Session, user_id: str, now: datetime | None = None) -> bool:
    """Return True if the user has an active, unrevoked ban.

    Args:
        db: Database session
        user_id: Identity of the user to check
        now: Reference time for expiry; defaults to the current UTC time

    Raises:
        EnforcementCheckError: If the datastore lookup fails
    """
    reference = now or utcnow()
    try:
        active_ban = (
            db.query(UserBan.id)
            .filter(
                UserBan.user_id == user_id,
                UserBan.revoked_at.is_(None),
                or_(UserBan.expires_at.is_(None), UserBan.expires_at > reference),
            )
            .first()
        )
    except SQLAlchemyError as exc:
        raise EnforcementCheckError(f"enforcement_check_failed:{exc}") from exc
    return active_ban is not None
