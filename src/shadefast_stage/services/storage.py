"""Object storage client for the uploaded media bucket.

Talks to a Supabase-Storage-compatible REST API with the service role key. The
client only covers what upload moderation needs: downloading an object,
issuing a short-lived signed read URL, and removing objects.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from urllib.parse import quote

import httpx

from shadefast_stage.core.settings import Settings, settings

logger = logging.getLogger(__name__)

HTTP_OK = 200


class StorageError(RuntimeError):
    """Base exception raised for object storage failures."""


class ObjectNotFoundError(StorageError):
    """Raised when the requested object cannot be fetched."""


class ObjectReadError(StorageError):
    """Raised when an object was found but its bytes could not be read."""


@dataclass(frozen=True)
class StorageConfig:
    """Immutable configuration for object storage access."""

    base_url: str
    service_key: str
    bucket: str = "media"
    timeout_seconds: float = 10.0


def load_storage_config(source: Settings | None = None) -> StorageConfig:
    """Build storage configuration from global settings."""
    source = source or settings
    return StorageConfig(
        base_url=(source.supabase_url or "").rstrip("/"),
        service_key=source.supabase_service_role_key or "",
        bucket=source.storage_bucket,
        timeout_seconds=float(source.storage_http_timeout_seconds),
    )


class MediaStorage:
    """HTTP client wrapper for the media bucket."""

    def __init__(
        self,
        config: StorageConfig,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(config.timeout_seconds),
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.service_key}",
            "apikey": self.config.service_key,
        }

    def _object_url(self, *segments: str) -> str:
        return "/".join((f"{self.config.base_url}/storage/v1/object", *segments))

    @staticmethod
    def _quote_path(object_path: str) -> str:
        return quote(object_path, safe="/")

    async def download(self, object_path: str) -> bytes:
        """Fetch the full contents of an object.

        Raises:
            ObjectNotFoundError: If storage does not return the object.
            ObjectReadError: If the response body cannot be read completely.
        """
        url = self._object_url(self.config.bucket, self._quote_path(object_path))
        request = self._client.build_request("GET", url, headers=self._headers())
        try:
            response = await self._client.send(request, stream=True)
        except httpx.HTTPError as exc:
            raise ObjectNotFoundError(f"Download of {object_path} failed: {exc}") from exc

        try:
            if response.status_code != HTTP_OK:
                raise ObjectNotFoundError(
                    f"Storage responded with {response.status_code} for {object_path}"
                )
            try:
                return await response.aread()
            except httpx.HTTPError as exc:
                raise ObjectReadError(f"Reading {object_path} failed: {exc}") from exc
        finally:
            await response.aclose()

    async def create_signed_url(self, object_path: str, expires_in: int) -> str | None:
        """Return a time-limited read URL for an object, or None on failure."""
        url = self._object_url("sign", self.config.bucket, self._quote_path(object_path))
        try:
            response = await self._client.post(
                url,
                json={"expiresIn": int(expires_in)},
                headers=self._headers(),
            )
            if response.status_code != HTTP_OK:
                logger.warning(
                    "signed url request for %s returned %s",
                    object_path,
                    response.status_code,
                )
                return None
            signed = response.json().get("signedURL")
        except (httpx.HTTPError, ValueError, AttributeError) as exc:
            logger.warning("signed url request for %s failed: %s", object_path, exc)
            return None

        if not isinstance(signed, str) or not signed:
            return None
        if signed.startswith("http://") or signed.startswith("https://"):
            return signed
        return f"{self.config.base_url}/storage/v1{signed}"

    async def remove(self, object_paths: Sequence[str]) -> None:
        """Delete objects from the bucket.

        Raises:
            StorageError: If the request fails or storage rejects it.
        """
        url = self._object_url(self.config.bucket)
        try:
            response = await self._client.request(
                "DELETE",
                url,
                json={"prefixes": list(object_paths)},
                headers=self._headers(),
            )
        except httpx.HTTPError as exc:
            raise StorageError(f"Removal request failed: {exc}") from exc

        if response.status_code != HTTP_OK:
            raise StorageError(f"Storage responded with {response.status_code} on removal")
