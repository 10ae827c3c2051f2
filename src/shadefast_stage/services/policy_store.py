"""Persistence of upload policy verdicts and the freshness gate that reads them."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Final

from fastapi import status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from shadefast_stage.core.errors import ApiError
from shadefast_stage.db.time import ensure_utc, utcnow
from shadefast_stage.models import MediaPolicyCheck
from shadefast_stage.services.media import (
    MediaType,
    extract_media_path,
    infer_media_type_from_path,
    is_owned_media_path,
)
from shadefast_stage.services.policy import PolicyVerdict, VerdictStatus

logger = logging.getLogger(__name__)

MEDIA_POLICY_MAX_AGE: Final[timedelta] = timedelta(hours=48)


@dataclass(frozen=True)
class AdvisoryOutcome:
    """Result of a non-fatal collaborator call.

    Advisory steps never change the response already decided for a request;
    their outcome is kept so failures stay visible to callers and tests.
    """

    step: str
    ok: bool
    error: str | None = None


@dataclass(frozen=True)
class PolicyCheckInput:
    """Everything recorded about one moderation attempt."""

    user_id: str
    object_path: str
    media_type: MediaType
    mime_type: str | None
    byte_size: int
    verdict: PolicyVerdict


def persist_policy_check(
    db: Session,
    check: PolicyCheckInput,
    now: datetime | None = None,
) -> AdvisoryOutcome:
    """Upsert the verdict for an object path, whatever its status.

    Failures are rolled back and logged; they are reported through the
    returned outcome instead of being raised.
    """
    verdict = check.verdict
    try:
        record = db.get(MediaPolicyCheck, check.object_path)
        if record is None:
            record = MediaPolicyCheck(object_path=check.object_path)
            db.add(record)

        record.user_id = check.user_id
        record.media_type = check.media_type
        record.mime_type = check.mime_type
        record.byte_size = check.byte_size
        record.status = verdict.status.value
        record.provider = verdict.provider
        record.provider_reference = verdict.provider_reference
        record.reason = verdict.reason
        record.confidence = verdict.confidence
        record.labels = list(verdict.labels) if verdict.labels else None
        record.checked_at = now or utcnow()
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(
            "moderate-upload policy persistence failed for %s",
            check.object_path,
            exc_info=True,
        )
        return AdvisoryOutcome(step="persist_policy_check", ok=False, error=str(exc))

    return AdvisoryOutcome(step="persist_policy_check", ok=True)


def get_policy_check(db: Session, object_path: str, user_id: str) -> MediaPolicyCheck | None:
    """Return the stored verdict for an object uploaded by ``user_id``."""
    return (
        db.query(MediaPolicyCheck)
        .filter(
            MediaPolicyCheck.object_path == object_path,
            MediaPolicyCheck.user_id == user_id,
        )
        .first()
    )


def require_fresh_policy_check(
    db: Session,
    user_id: str,
    media_url: str,
    expected_type: MediaType,
    now: datetime | None = None,
) -> MediaPolicyCheck:
    """Ensure media referenced by a new post passed a recent upload check.

    Args:
        db: Database session
        user_id: Author of the post
        media_url: Storage URL the post wants to reference
        expected_type: Kind of media the post field expects
        now: Reference time for the staleness window

    Returns:
        The approved policy check record.

    Raises:
        ApiError: If the URL is foreign, mistyped, unchecked, blocked, errored
            or older than the staleness window.
    """
    object_path = extract_media_path(media_url)
    if not object_path:
        raise ApiError(
            status.HTTP_400_BAD_REQUEST,
            "invalid_media_url",
            "Media URL must reference the media bucket.",
        )

    if not is_owned_media_path(object_path, user_id):
        raise ApiError(
            status.HTTP_403_FORBIDDEN,
            "media_not_owned",
            "Media must be uploaded by the current anonymous user.",
        )

    if infer_media_type_from_path(object_path) != expected_type:
        raise ApiError(
            status.HTTP_400_BAD_REQUEST,
            "invalid_media_type",
            "Media type does not match upload policy.",
        )

    try:
        record = get_policy_check(db, object_path, user_id)
    except SQLAlchemyError as exc:
        logger.error("media policy lookup failed for %s", object_path, exc_info=True)
        raise ApiError(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "media_policy_lookup_failed",
            "Unable to verify media safety checks.",
        ) from exc

    if record is None:
        raise ApiError(
            status.HTTP_400_BAD_REQUEST,
            "media_policy_missing",
            "Media has not passed upload safety checks yet.",
        )

    if record.status == VerdictStatus.BLOCKED.value:
        raise ApiError(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "media_policy_blocked",
            record.reason or "Media violated upload safety checks.",
        )

    if record.status == VerdictStatus.ERROR.value:
        raise ApiError(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "media_policy_error",
            "Media safety checks could not be completed. Please re-upload.",
        )

    reference = now or utcnow()
    if ensure_utc(record.checked_at) < reference - MEDIA_POLICY_MAX_AGE:
        raise ApiError(
            status.HTTP_400_BAD_REQUEST,
            "media_policy_expired",
            "Media safety check expired. Please re-upload before posting.",
        )

    return record
