"""Upload moderation endpoint."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, PlainTextResponse

from shadefast_stage.api.v1.dependencies import (
    CurrentUserIdDep,
    MediaStorageDep,
    PolicyWebhookClientDep,
    SessionDep,
    UploadPolicyConfigDep,
    json_body,
)
from shadefast_stage.core.http import error_response, json_response, preflight_response
from shadefast_stage.schemas.uploads import ModerateUploadRequest
from shadefast_stage.services.upload_moderation import (
    ModerateUploadCommand,
    UploadModerationPipeline,
)

router = APIRouter(tags=["uploads"])

ModerateUploadBody = Annotated[ModerateUploadRequest, Depends(json_body(ModerateUploadRequest))]


@router.options("/moderate-upload")
async def moderate_upload_preflight() -> PlainTextResponse:
    """Answer CORS preflight requests."""
    return preflight_response()


@router.post("/moderate-upload")
async def moderate_upload(
    user_id: CurrentUserIdDep,
    payload: ModerateUploadBody,
    db: SessionDep,
    storage: MediaStorageDep,
    policy_config: UploadPolicyConfigDep,
    policy_client: PolicyWebhookClientDep,
) -> JSONResponse:
    """Check a freshly uploaded media object against the upload policy.

    Blocked uploads are removed from storage and answered with
    ``media_blocked``; accepted uploads return the approving verdict.
    """
    pipeline = UploadModerationPipeline(
        db=db,
        storage=storage,
        config=policy_config,
        policy_client=policy_client,
    )
    outcome = await pipeline.run(
        ModerateUploadCommand(
            user_id=user_id,
            object_path=payload.object_path,
            media_url=payload.media_url,
            media_type=payload.media_type,
        )
    )

    if outcome.failure is not None:
        return error_response(outcome.failure)
    return json_response(outcome.to_response().model_dump(mode="json", by_alias=True))
