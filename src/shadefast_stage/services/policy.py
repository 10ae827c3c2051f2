"""Upload policy verdicts and the built-in format/size policy."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Final

from shadefast_stage.services.media import MediaType

PROVIDER_BUILTIN: Final[str] = "builtin"
PROVIDER_WEBHOOK: Final[str] = "webhook"
PROVIDER_WEBHOOK_FALLBACK: Final[str] = "webhook_fallback"

MAX_IMAGE_BYTES: Final[int] = 8 * 1024 * 1024
MAX_VIDEO_BYTES: Final[int] = 10 * 1024 * 1024

ALLOWED_IMAGE_MIME_TYPES: Final[frozenset[str]] = frozenset(
    {"image/jpeg", "image/png", "image/webp", "image/gif"}
)
ALLOWED_VIDEO_MIME_TYPES: Final[frozenset[str]] = frozenset(
    {"video/mp4", "video/quicktime", "video/webm"}
)


class VerdictStatus(str, Enum):
    """Outcome of evaluating one upload."""

    APPROVED = "approved"
    BLOCKED = "blocked"
    ERROR = "error"


@dataclass(frozen=True)
class PolicyVerdict:
    """Decision produced by one policy evaluator.

    Verdicts are built through the ``approved``/``blocked``/``error``
    constructors; a blocked verdict always carries a reason.
    """

    status: VerdictStatus
    provider: str
    provider_reference: str | None = None
    reason: str | None = None
    confidence: float | None = None
    labels: tuple[str, ...] | None = None

    @classmethod
    def approved(
        cls,
        provider: str,
        *,
        provider_reference: str | None = None,
        reason: str | None = None,
        confidence: float | None = None,
        labels: Iterable[str] | None = None,
    ) -> PolicyVerdict:
        return cls(
            status=VerdictStatus.APPROVED,
            provider=provider,
            provider_reference=provider_reference,
            reason=reason,
            confidence=confidence,
            labels=tuple(labels) if labels else None,
        )

    @classmethod
    def blocked(
        cls,
        provider: str,
        reason: str,
        *,
        provider_reference: str | None = None,
        confidence: float | None = None,
        labels: Iterable[str] | None = None,
    ) -> PolicyVerdict:
        if not reason:
            raise ValueError("blocked verdicts require a reason")
        return cls(
            status=VerdictStatus.BLOCKED,
            provider=provider,
            provider_reference=provider_reference,
            reason=reason,
            confidence=confidence,
            labels=tuple(labels) if labels else None,
        )

    @classmethod
    def error(cls, provider: str, reason: str) -> PolicyVerdict:
        return cls(status=VerdictStatus.ERROR, provider=provider, reason=reason)

    @property
    def is_approved(self) -> bool:
        return self.status is VerdictStatus.APPROVED

    @property
    def is_blocked(self) -> bool:
        return self.status is VerdictStatus.BLOCKED

    @property
    def is_error(self) -> bool:
        return self.status is VerdictStatus.ERROR


def evaluate_builtin_policy(
    media_type: MediaType,
    mime_type: str | None,
    byte_size: int,
) -> PolicyVerdict:
    """Apply the static format and size rules for a media kind.

    Args:
        media_type: Declared kind of the upload.
        mime_type: Sniffed MIME type, or None when the format is unknown.
        byte_size: Size of the stored object in bytes.

    Returns:
        An approved or blocked verdict from the ``builtin`` provider. Size
        limits are inclusive.
    """
    if not mime_type:
        return PolicyVerdict.blocked(PROVIDER_BUILTIN, "Unsupported media format.")

    if media_type == "image":
        if mime_type not in ALLOWED_IMAGE_MIME_TYPES:
            return PolicyVerdict.blocked(PROVIDER_BUILTIN, "Unsupported image type.")
        if byte_size > MAX_IMAGE_BYTES:
            return PolicyVerdict.blocked(PROVIDER_BUILTIN, "Image exceeds 8 MB upload limit.")

    if media_type == "video":
        if mime_type not in ALLOWED_VIDEO_MIME_TYPES:
            return PolicyVerdict.blocked(PROVIDER_BUILTIN, "Unsupported video type.")
        if byte_size > MAX_VIDEO_BYTES:
            return PolicyVerdict.blocked(PROVIDER_BUILTIN, "Video exceeds 10 MB upload limit.")

    return PolicyVerdict.approved(PROVIDER_BUILTIN)
