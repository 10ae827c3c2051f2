# src/shadefast_stage/services/__init__.py
"""Business logic services for the ShadeFast application."""

from .policy import PolicyVerdict, VerdictStatus, evaluate_builtin_policy
from .policy_webhook import PolicyWebhookClient, UploadPolicyConfig
from .sniffer import detect_mime_type
from .storage import MediaStorage, StorageConfig
from .upload_moderation import ModerateUploadCommand, ModerationOutcome, UploadModerationPipeline

__all__ = [
    "PolicyVerdict",
    "VerdictStatus",
    "evaluate_builtin_policy",
    "PolicyWebhookClient",
    "UploadPolicyConfig",
    "detect_mime_type",
    "MediaStorage",
    "StorageConfig",
    "ModerateUploadCommand",
    "ModerationOutcome",
    "UploadModerationPipeline",
]
