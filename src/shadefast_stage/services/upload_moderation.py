"""Upload moderation pipeline.

One request runs strictly in sequence and stops at the first failing gate:

1. resolve the object path and check the caller owns it
2. reconcile the media kind
3. ban and rate-limit enforcement
4. download the bytes, sniff the format, apply the built-in policy
5. ask the external policy webhook when the built-in policy approved
6. record the verdict, then remove the object if it was rejected

Recording the verdict and removing rejected objects are advisory steps: their
failures are logged and reported on the outcome, never turned into a
different response.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Final, Protocol

from fastapi import status
from sqlalchemy.orm import Session

from shadefast_stage.core.errors import ApiError
from shadefast_stage.db.time import utcnow
from shadefast_stage.schemas.uploads import ApprovedVerdict, ModerateUploadResponse
from shadefast_stage.services.enforcement import EnforcementCheckError, is_user_banned
from shadefast_stage.services.media import (
    MediaType,
    is_owned_media_path,
    resolve_media_type,
    resolve_object_path,
)
from shadefast_stage.services.policy import (
    PROVIDER_BUILTIN,
    PolicyVerdict,
    evaluate_builtin_policy,
)
from shadefast_stage.services.policy_store import (
    AdvisoryOutcome,
    PolicyCheckInput,
    persist_policy_check,
)
from shadefast_stage.services.policy_webhook import (
    PolicyCheckRequest,
    PolicyWebhookClient,
    UploadPolicyConfig,
)
from shadefast_stage.services.rate_limit import RateLimitCheckError, check_and_bump_rate_limit
from shadefast_stage.services.sniffer import detect_mime_type
from shadefast_stage.services.storage import ObjectNotFoundError, ObjectReadError, StorageError

logger = logging.getLogger(__name__)

RATE_LIMIT_ACTION: Final[str] = "moderate_upload_10m"
RATE_LIMIT_WINDOW_SECONDS: Final[int] = 10 * 60
RATE_LIMIT_MAX_REQUESTS: Final[int] = 30

REASON_UNREADABLE_MEDIA: Final[str] = "unable_to_read_media"


class MediaObjectStore(Protocol):
    async def download(self, object_path: str) -> bytes: ...

    async def create_signed_url(self, object_path: str, expires_in: int) -> str | None: ...

    async def remove(self, object_paths: Sequence[str]) -> None: ...


@dataclass(frozen=True)
class ModerateUploadCommand:
    """Caller identity plus the raw request fields."""

    user_id: str
    object_path: str | None = None
    media_url: str | None = None
    media_type: str | None = None


@dataclass(frozen=True)
class ModerationOutcome:
    """Final state of a request that reached the download step.

    ``failure`` is set when the request must be answered with an error;
    otherwise the upload was accepted and ``to_response()`` builds the body.
    """

    object_path: str
    media_type: MediaType
    mime_type: str | None
    byte_size: int
    verdict: PolicyVerdict
    persistence: AdvisoryOutcome
    removal: AdvisoryOutcome | None = None
    failure: ApiError | None = None

    @property
    def accepted(self) -> bool:
        return self.failure is None

    def to_response(self) -> ModerateUploadResponse:
        return ModerateUploadResponse(
            verdict=ApprovedVerdict(
                media_type=self.media_type,
                object_path=self.object_path,
                mime_type=self.mime_type,
                byte_size=self.byte_size,
                provider=self.verdict.provider,
                provider_reference=self.verdict.provider_reference,
                confidence=self.verdict.confidence,
                labels=list(self.verdict.labels or ()),
            )
        )


class UploadModerationPipeline:
    """Runs the moderation gates for a single uploaded object."""

    def __init__(
        self,
        db: Session,
        storage: MediaObjectStore,
        config: UploadPolicyConfig,
        policy_client: PolicyWebhookClient | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.db = db
        self.storage = storage
        self.config = config
        self.policy_client = policy_client
        self.clock = clock

    async def run(self, command: ModerateUploadCommand) -> ModerationOutcome:
        """Moderate one upload.

        Raises:
            ApiError: For every gate that fails before a verdict exists
                (target, ownership, type, enforcement, rate limit, not found).
        """
        object_path = resolve_object_path(command.object_path, command.media_url)
        if not object_path:
            raise ApiError(
                status.HTTP_400_BAD_REQUEST,
                "missing_media_target",
                "Provide a valid objectPath or mediaUrl.",
            )

        if not is_owned_media_path(object_path, command.user_id):
            raise ApiError(
                status.HTTP_403_FORBIDDEN,
                "media_not_owned",
                "Media must be uploaded by the current anonymous user.",
            )

        media_type = resolve_media_type(command.media_type, object_path)
        if media_type is None:
            raise ApiError(
                status.HTTP_400_BAD_REQUEST,
                "invalid_media_type",
                "Media type must be image or video and match object path.",
            )

        self._enforce_ban(command.user_id)
        self._enforce_rate_limit(command.user_id)

        try:
            data = await self.storage.download(object_path)
        except ObjectReadError:
            logger.error("moderate-upload blob read failed for %s", object_path, exc_info=True)
            verdict = PolicyVerdict.error(PROVIDER_BUILTIN, REASON_UNREADABLE_MEDIA)
            persistence = self._persist(command.user_id, object_path, media_type, None, 0, verdict)
            return ModerationOutcome(
                object_path=object_path,
                media_type=media_type,
                mime_type=None,
                byte_size=0,
                verdict=verdict,
                persistence=persistence,
                failure=ApiError(
                    status.HTTP_500_INTERNAL_SERVER_ERROR,
                    "media_read_failed",
                    "Unable to inspect uploaded media. Please retry upload.",
                ),
            )
        except ObjectNotFoundError as exc:
            logger.error("moderate-upload storage download failed: %s", exc)
            raise ApiError(
                status.HTTP_404_NOT_FOUND,
                "media_not_found",
                "Uploaded media was not found.",
            ) from exc

        byte_size = len(data)
        mime_type = detect_mime_type(data, object_path)
        verdict = evaluate_builtin_policy(media_type, mime_type, byte_size)

        if verdict.is_approved and self.policy_client is not None:
            external = await self.policy_client.evaluate(
                PolicyCheckRequest(
                    user_id=command.user_id,
                    object_path=object_path,
                    media_type=media_type,
                    mime_type=mime_type,
                    byte_size=byte_size,
                )
            )
            if external is not None:
                verdict = external

        persistence = self._persist(
            command.user_id, object_path, media_type, mime_type, byte_size, verdict
        )

        removal: AdvisoryOutcome | None = None
        failure: ApiError | None = None
        if verdict.is_blocked:
            removal = await self._remove(object_path)
            failure = ApiError(
                status.HTTP_422_UNPROCESSABLE_ENTITY,
                "media_blocked",
                verdict.reason or "Upload blocked by safety policy.",
            )
        elif verdict.is_error and self.config.strict_mode:
            removal = await self._remove(object_path)
            failure = ApiError(
                status.HTTP_503_SERVICE_UNAVAILABLE,
                "policy_provider_unavailable",
                "Media safety checks are temporarily unavailable. Please retry later.",
            )

        return ModerationOutcome(
            object_path=object_path,
            media_type=media_type,
            mime_type=mime_type,
            byte_size=byte_size,
            verdict=verdict,
            persistence=persistence,
            removal=removal,
            failure=failure,
        )

    def _enforce_ban(self, user_id: str) -> None:
        try:
            banned = is_user_banned(self.db, user_id, now=self.clock())
        except EnforcementCheckError as exc:
            logger.error("moderate-upload enforcement check failed: %s", exc)
            raise ApiError(
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "enforcement_check_failed",
                "Unable to validate enforcement status.",
            ) from exc

        if banned:
            raise ApiError(
                status.HTTP_403_FORBIDDEN,
                "banned_user",
                "This anonymous user is currently restricted from uploading media.",
            )

    def _enforce_rate_limit(self, user_id: str) -> None:
        try:
            rate = check_and_bump_rate_limit(
                self.db,
                user_id,
                RATE_LIMIT_ACTION,
                RATE_LIMIT_WINDOW_SECONDS,
                RATE_LIMIT_MAX_REQUESTS,
                now=self.clock(),
            )
        except RateLimitCheckError as exc:
            logger.error("moderate-upload rate limit check failed: %s", exc)
            raise ApiError(
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "rate_limit_check_failed",
                "Unable to validate upload limits.",
            ) from exc

        if not rate.allowed:
            raise ApiError(
                status.HTTP_429_TOO_MANY_REQUESTS,
                "rate_limited",
                "Too many media uploads in a short period. Please retry later.",
            )

    def _persist(
        self,
        user_id: str,
        object_path: str,
        media_type: MediaType,
        mime_type: str | None,
        byte_size: int,
        verdict: PolicyVerdict,
    ) -> AdvisoryOutcome:
        return persist_policy_check(
            self.db,
            PolicyCheckInput(
                user_id=user_id,
                object_path=object_path,
                media_type=media_type,
                mime_type=mime_type,
                byte_size=byte_size,
                verdict=verdict,
            ),
            now=self.clock(),
        )

    async def _remove(self, object_path: str) -> AdvisoryOutcome:
        try:
            await self.storage.remove([object_path])
        except StorageError as exc:
            logger.error("moderate-upload media removal failed for %s: %s", object_path, exc)
            return AdvisoryOutcome(step="remove_media_object", ok=False, error=str(exc))
        return AdvisoryOutcome(step="remove_media_object", ok=True)
