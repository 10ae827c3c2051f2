"""Client for the optional external upload policy webhook.

When ``UPLOAD_POLICY_WEBHOOK_URL`` is configured, uploads that pass the
built-in policy are also submitted to an external decision service. Its reply
is decoded into the same ``PolicyVerdict`` shape. Transport failures and
unusable replies either fail open (approve, provider ``webhook_fallback``) or,
in strict mode, produce an ``error`` verdict.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Final, Literal, Protocol

import httpx

from shadefast_stage.core.settings import Settings, settings
from shadefast_stage.services.media import MediaType
from shadefast_stage.services.policy import (
    PROVIDER_WEBHOOK,
    PROVIDER_WEBHOOK_FALLBACK,
    PolicyVerdict,
)

logger = logging.getLogger(__name__)

SIGNED_URL_TTL_SECONDS: Final[int] = 5 * 60
DEFAULT_BLOCK_REASON: Final[str] = "Upload blocked by policy provider."
REASON_INVALID_DECISION: Final[str] = "invalid_webhook_decision"
REASON_REQUEST_FAILED: Final[str] = "webhook_request_failed"

_APPROVE_DECISIONS: Final[frozenset[str]] = frozenset({"allow", "approved", "pass"})
_BLOCK_DECISIONS: Final[frozenset[str]] = frozenset(
    {"block", "blocked", "reject", "denied", "review"}
)

Decision = Literal["approved", "blocked"]


@dataclass(frozen=True)
class UploadPolicyConfig:
    """Immutable configuration for the external policy check."""

    webhook_url: str | None = None
    webhook_token: str | None = None
    strict_mode: bool = False
    timeout_seconds: float = 10.0
    signed_url_ttl_seconds: int = SIGNED_URL_TTL_SECONDS

    @property
    def webhook_enabled(self) -> bool:
        return bool(self.webhook_url)


def load_upload_policy_config(source: Settings | None = None) -> UploadPolicyConfig:
    """Build policy configuration from global settings."""
    source = source or settings
    return UploadPolicyConfig(
        webhook_url=source.upload_policy_webhook_url,
        webhook_token=source.upload_policy_webhook_token,
        strict_mode=source.upload_policy_strict_mode,
        timeout_seconds=float(source.upload_policy_webhook_timeout_seconds),
    )


class SignedUrlIssuer(Protocol):
    async def create_signed_url(self, object_path: str, expires_in: int) -> str | None: ...


@dataclass(frozen=True)
class PolicyCheckRequest:
    """Facts about one upload submitted to the webhook."""

    user_id: str
    object_path: str
    media_type: MediaType
    mime_type: str | None
    byte_size: int


@dataclass(frozen=True)
class DecidedReply:
    """Webhook reply carrying a recognised decision."""

    decision: Decision
    provider: str
    reference: str | None
    reason: str | None
    confidence: float | None
    labels: tuple[str, ...] | None


@dataclass(frozen=True)
class InvalidReply:
    """Webhook reply without a usable decision."""


WebhookReply = DecidedReply | InvalidReply


def normalize_decision(value: Any) -> Decision | None:
    if not isinstance(value, str):
        return None

    normalized = value.strip().lower()
    if normalized in _APPROVE_DECISIONS:
        return "approved"
    if normalized in _BLOCK_DECISIONS:
        return "blocked"
    return None


def normalize_string(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    return trimmed or None


def normalize_number(value: Any) -> float | None:
    """Accept finite numbers and numeric strings; booleans are not numbers."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        try:
            number = float(value)
        except OverflowError:
            return None
        return number if math.isfinite(number) else None
    if isinstance(value, str) and value.strip():
        try:
            number = float(value.strip())
        except (ValueError, OverflowError):
            return None
        return number if math.isfinite(number) else None
    return None


def normalize_labels(value: Any) -> tuple[str, ...] | None:
    if not isinstance(value, list):
        return None
    labels = tuple(item.strip() for item in value if isinstance(item, str) and item.strip())
    return labels or None


def decode_webhook_reply(payload: Any) -> WebhookReply:
    """Decode an arbitrary JSON reply into a typed webhook reply."""
    if not isinstance(payload, dict):
        return InvalidReply()

    decision = normalize_decision(payload.get("decision"))
    if decision is None:
        return InvalidReply()

    return DecidedReply(
        decision=decision,
        provider=normalize_string(payload.get("provider")) or PROVIDER_WEBHOOK,
        reference=normalize_string(payload.get("reference")),
        reason=normalize_string(payload.get("reason")),
        confidence=normalize_number(payload.get("confidence")),
        labels=normalize_labels(payload.get("labels")),
    )


def verdict_from_reply(reply: DecidedReply) -> PolicyVerdict:
    """Translate a decided reply into a verdict."""
    if reply.decision == "blocked":
        return PolicyVerdict.blocked(
            reply.provider,
            reply.reason or DEFAULT_BLOCK_REASON,
            provider_reference=reply.reference,
            confidence=reply.confidence,
            labels=reply.labels,
        )
    return PolicyVerdict.approved(
        reply.provider,
        provider_reference=reply.reference,
        reason=reply.reason,
        confidence=reply.confidence,
        labels=reply.labels,
    )


class PolicyWebhookClient:
    """Submits approved uploads to the configured policy webhook."""

    def __init__(
        self,
        config: UploadPolicyConfig,
        storage: SignedUrlIssuer,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config
        self._storage = storage
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(config.timeout_seconds),
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _unavailable(self, reason: str) -> PolicyVerdict:
        if self.config.strict_mode:
            return PolicyVerdict.error(PROVIDER_WEBHOOK, reason)
        return PolicyVerdict.approved(PROVIDER_WEBHOOK_FALLBACK, reason=reason)

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.config.webhook_token:
            headers["Authorization"] = f"Bearer {self.config.webhook_token}"
        return headers

    async def evaluate(self, check: PolicyCheckRequest) -> PolicyVerdict | None:
        """Ask the webhook for a decision about one upload.

        Returns:
            None when no webhook is configured; otherwise the decoded verdict,
            or the strict/fail-open substitute when no usable decision arrives.
        """
        if not self.config.webhook_enabled:
            return None

        signed_url = await self._storage.create_signed_url(
            check.object_path,
            self.config.signed_url_ttl_seconds,
        )

        body = {
            "userId": check.user_id,
            "objectPath": check.object_path,
            "mediaType": check.media_type,
            "mimeType": check.mime_type,
            "byteSize": check.byte_size,
            "signedUrl": signed_url,
        }

        try:
            response = await self._client.post(
                self.config.webhook_url or "",
                json=body,
                headers=self._headers(),
                timeout=self.config.timeout_seconds,
            )
            if not response.is_success:
                return self._unavailable(f"webhook_http_{response.status_code}")
            payload = response.json()
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
            logger.error("moderate-upload webhook request failed: %s", exc)
            return self._unavailable(REASON_REQUEST_FAILED)

        reply = decode_webhook_reply(payload)
        if isinstance(reply, InvalidReply):
            return self._unavailable(REASON_INVALID_DECISION)
        return verdict_from_reply(reply)
