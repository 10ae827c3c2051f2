"""Upload moderation Pydantic schemas."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ModerateUploadRequest(BaseModel):
    """Body accepted by the moderate-upload route.

    Either ``objectPath`` or a storage ``mediaUrl`` must identify the object.
    ``mediaType`` is kept as free text so an unknown value surfaces as
    ``invalid_media_type`` rather than a schema error.
    """

    object_path: str | None = Field(None, description="Object path inside the media bucket")
    media_url: str | None = Field(None, description="Public or signed storage URL")
    media_type: str | None = Field(None, description="Declared kind: image or video")

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class ApprovedVerdict(BaseModel):
    """Verdict details returned when an upload is accepted."""

    status: str = "approved"
    media_type: str
    object_path: str
    mime_type: str | None
    byte_size: int
    provider: str
    provider_reference: str | None = None
    confidence: float | None = None
    labels: list[str] = Field(default_factory=list)

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ModerateUploadResponse(BaseModel):
    """Successful moderate-upload response."""

    verdict: ApprovedVerdict
