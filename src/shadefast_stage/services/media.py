"""Helpers for locating uploaded media inside the ``media`` bucket.

Object paths encode both the media kind and the uploader:
``posts/<user_id>/<file>`` for images and ``videos/<user_id>/<file>`` for
videos.
"""

from __future__ import annotations

import re
from typing import Final, Literal
from urllib.parse import unquote, urlparse

MediaType = Literal["image", "video"]

IMAGE_PATH_PREFIX: Final[str] = "posts/"
VIDEO_PATH_PREFIX: Final[str] = "videos/"

_OBJECT_URL_PATTERN = re.compile(r"/storage/v1/object/(?:public|sign)/media/(.+)$")
_MALFORMED_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


def extract_media_path(media_url: str) -> str | None:
    """Return the object path referenced by a public or signed storage URL."""
    try:
        parsed = urlparse(media_url)
    except ValueError:
        return None

    if not parsed.scheme or not parsed.netloc:
        return None

    match = _OBJECT_URL_PATTERN.search(parsed.path)
    if not match:
        return None
    encoded = match.group(1)
    if _MALFORMED_ESCAPE.search(encoded):
        return None
    try:
        return unquote(encoded, errors="strict") or None
    except UnicodeDecodeError:
        return None


def infer_media_type_from_path(object_path: str) -> MediaType | None:
    """Infer the media kind from the storage prefix of an object path."""
    if object_path.startswith(IMAGE_PATH_PREFIX):
        return "image"
    if object_path.startswith(VIDEO_PATH_PREFIX):
        return "video"
    return None


def is_owned_media_path(object_path: str, user_id: str) -> bool:
    """Return True if the path sits in the uploader folder of ``user_id``."""
    if not object_path or not user_id:
        return False
    return object_path.startswith(f"{IMAGE_PATH_PREFIX}{user_id}/") or object_path.startswith(
        f"{VIDEO_PATH_PREFIX}{user_id}/"
    )


def resolve_object_path(object_path: str | None, media_url: str | None) -> str | None:
    """Pick the object to inspect: an explicit path wins over a media URL."""
    explicit = (object_path or "").strip()
    if explicit:
        return explicit

    url = (media_url or "").strip()
    if not url:
        return None
    return extract_media_path(url)


def resolve_media_type(declared: str | None, object_path: str) -> MediaType | None:
    """Reconcile a client-declared media type with the one implied by the path.

    Returns None when the declaration is not ``image``/``video`` or when it
    contradicts the storage prefix.
    """
    inferred = infer_media_type_from_path(object_path)
    if not declared:
        return inferred

    if declared not in ("image", "video"):
        return None

    if inferred and inferred != declared:
        return None

    return "image" if declared == "image" else "video"
