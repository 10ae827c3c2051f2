"""Shared API dependencies for configuration, authentication and collaborators."""

from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Annotated, TypeVar

from fastapi import Depends, Header, Request, status
from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session

from shadefast_stage.core.errors import ApiError, invalid_json, invalid_payload, misconfigured_env
from shadefast_stage.core.security import (
    InvalidTokenError,
    extract_bearer_token,
    verify_access_token,
)
from shadefast_stage.core.settings import Settings, settings
from shadefast_stage.db.session import get_db
from shadefast_stage.services.policy_webhook import (
    PolicyWebhookClient,
    UploadPolicyConfig,
    load_upload_policy_config,
)
from shadefast_stage.services.storage import MediaStorage, load_storage_config

ModelT = TypeVar("ModelT", bound=BaseModel)

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def require_service_settings() -> Settings:
    """Return settings once the platform connection secrets are known to be present.

    Raises:
        ApiError: ``misconfigured_env`` when any required secret is missing.
    """
    if settings.missing_service_secrets:
        raise misconfigured_env()
    return settings


ServiceSettingsDep = Annotated[Settings, Depends(require_service_settings)]


def get_current_user_id(
    config: ServiceSettingsDep,
    authorization: Annotated[str | None, Header()] = None,
) -> str:
    """Get the id of the authenticated caller from the bearer token.

    Raises:
        ApiError: ``missing_auth`` without a bearer header, ``invalid_auth``
            when the token does not verify.
    """
    token = extract_bearer_token(authorization)
    if token is None:
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "missing_auth", "Missing bearer token.")

    try:
        return verify_access_token(token, config.supabase_jwt_secret or "")
    except InvalidTokenError as err:
        raise ApiError(
            status.HTTP_401_UNAUTHORIZED,
            "invalid_auth",
            "Invalid auth token.",
        ) from err


# Type alias for current user dependency
CurrentUserIdDep = Annotated[str, Depends(get_current_user_id)]


def json_body(model: type[ModelT]) -> Callable[[Request], Awaitable[ModelT]]:
    """Build a dependency that parses the request body into ``model``.

    Malformed JSON maps to ``invalid_json``; a body that is not an object or
    has fields of the wrong type maps to ``invalid_payload``.
    """

    async def _parse(request: Request) -> ModelT:
        try:
            data = await request.json()
        except ValueError as err:
            raise invalid_json() from err

        if not isinstance(data, dict):
            raise invalid_payload("Payload must be a JSON object.")

        try:
            return model.model_validate(data)
        except ValidationError as err:
            raise invalid_payload() from err

    return _parse


def get_upload_policy_config(config: ServiceSettingsDep) -> UploadPolicyConfig:
    """Project process settings into the upload policy configuration."""
    return load_upload_policy_config(config)


UploadPolicyConfigDep = Annotated[UploadPolicyConfig, Depends(get_upload_policy_config)]


async def get_media_storage(config: ServiceSettingsDep) -> AsyncIterator[MediaStorage]:
    """Yield a media storage client for the duration of a request."""
    storage = MediaStorage(load_storage_config(config))
    try:
        yield storage
    finally:
        await storage.aclose()


MediaStorageDep = Annotated[MediaStorage, Depends(get_media_storage)]


async def get_policy_webhook_client(
    policy_config: UploadPolicyConfigDep,
    storage: MediaStorageDep,
) -> AsyncIterator[PolicyWebhookClient]:
    """Yield the external policy client bound to this request's storage client."""
    client = PolicyWebhookClient(policy_config, storage)
    try:
        yield client
    finally:
        await client.aclose()


PolicyWebhookClientDep = Annotated[PolicyWebhookClient, Depends(get_policy_webhook_client)]
