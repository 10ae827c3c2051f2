"""Application settings and configuration.

This module defines all configuration options for the ShadeFast Stage service.
Settings are loaded from environment variables with sensible defaults.
"""

from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_TRUTHY_VALUES = frozenset({"1", "true", "yes"})


def parse_boolean(value: Any) -> bool:
    """Interpret a flag the way the deployment tooling writes it.

    Only ``1``, ``true`` and ``yes`` (any case, surrounding whitespace ignored)
    enable a flag; every other string, including an empty one, disables it.
    """
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in _TRUTHY_VALUES


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="ShadeFast Stage", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Database configuration
    database_url: str = Field(default="sqlite:///./shadefast.db", alias="DATABASE_URL")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Platform connection secrets; requests fail with misconfigured_env when absent
    supabase_url: str | None = Field(default=None, alias="SUPABASE_URL")
    supabase_service_role_key: str | None = Field(
        default=None,
        alias="SUPABASE_SERVICE_ROLE_KEY",
    )
    supabase_jwt_secret: str | None = Field(default=None, alias="SUPABASE_JWT_SECRET")

    # Access token verification
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    jwt_audience: str = Field(default="authenticated", alias="JWT_AUDIENCE")

    # Object storage
    storage_bucket: str = Field(default="media", alias="STORAGE_BUCKET")
    storage_http_timeout_seconds: float = Field(
        default=10.0,
        alias="STORAGE_HTTP_TIMEOUT_SECONDS",
    )

    # External upload policy webhook
    upload_policy_webhook_url: str | None = Field(
        default=None,
        alias="UPLOAD_POLICY_WEBHOOK_URL",
    )
    upload_policy_webhook_token: str | None = Field(
        default=None,
        alias="UPLOAD_POLICY_WEBHOOK_TOKEN",
    )
    upload_policy_strict_mode: bool = Field(default=False, alias="UPLOAD_POLICY_STRICT_MODE")
    upload_policy_webhook_timeout_seconds: float = Field(
        default=10.0,
        alias="UPLOAD_POLICY_WEBHOOK_TIMEOUT_SECONDS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("upload_policy_strict_mode", mode="before")
    @classmethod
    def _parse_strict_mode(cls, value: Any) -> bool:
        return parse_boolean(value)

    @field_validator(
        "supabase_url",
        "supabase_service_role_key",
        "supabase_jwt_secret",
        "upload_policy_webhook_url",
        "upload_policy_webhook_token",
        mode="before",
    )
    @classmethod
    def _blank_as_unset(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @property
    def missing_service_secrets(self) -> list[str]:
        """Return the env var names of required platform secrets that are unset."""
        missing: list[str] = []
        if not self.supabase_url:
            missing.append("SUPABASE_URL")
        if not self.supabase_service_role_key:
            missing.append("SUPABASE_SERVICE_ROLE_KEY")
        if not self.supabase_jwt_secret:
            missing.append("SUPABASE_JWT_SECRET")
        return missing


settings = Settings()
