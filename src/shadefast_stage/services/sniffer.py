"""Content sniffing for uploaded media."""

from __future__ import annotations

from typing import Final

JPEG_MAGIC: Final[bytes] = b"\xff\xd8\xff"
PNG_MAGIC: Final[bytes] = b"\x89PNG\r\n\x1a\n"
GIF_MAGIC: Final[bytes] = b"GIF"
RIFF_MAGIC: Final[bytes] = b"RIFF"
WEBP_FOURCC: Final[bytes] = b"WEBP"
EBML_MAGIC: Final[bytes] = b"\x1a\x45\xdf\xa3"
FTYP_BOX: Final[bytes] = b"ftyp"
QUICKTIME_BRAND: Final[bytes] = b"qt  "

# Checked in order; the first matching suffix wins.
_EXTENSION_MIME_TYPES: Final[tuple[tuple[tuple[str, ...], str], ...]] = (
    ((".jpg", ".jpeg"), "image/jpeg"),
    ((".png",), "image/png"),
    ((".gif",), "image/gif"),
    ((".webp",), "image/webp"),
    ((".mov",), "video/quicktime"),
    ((".webm",), "video/webm"),
    ((".mp4", ".m4v"), "video/mp4"),
)


def sniff_magic(data: bytes) -> str | None:
    """Return the MIME type implied by the leading bytes of ``data``, if any."""
    if data.startswith(JPEG_MAGIC):
        return "image/jpeg"
    if data.startswith(PNG_MAGIC):
        return "image/png"
    if data.startswith(GIF_MAGIC):
        return "image/gif"
    if len(data) >= 12 and data[0:4] == RIFF_MAGIC and data[8:12] == WEBP_FOURCC:
        return "image/webp"
    if data.startswith(EBML_MAGIC):
        return "video/webm"
    if len(data) >= 12 and data[4:8] == FTYP_BOX:
        if data[8:12] == QUICKTIME_BRAND:
            return "video/quicktime"
        return "video/mp4"
    return None


def mime_type_from_extension(path: str) -> str | None:
    """Classify a path by its file extension, case-insensitively."""
    lower_path = path.lower()
    for suffixes, mime_type in _EXTENSION_MIME_TYPES:
        if lower_path.endswith(suffixes):
            return mime_type
    return None


def detect_mime_type(data: bytes, fallback_path: str) -> str | None:
    """Infer a concrete media MIME type for an uploaded object.

    Magic numbers take precedence; the file extension of ``fallback_path`` is
    only consulted when no signature matches.

    Args:
        data: Raw object bytes.
        fallback_path: Object path used for the extension heuristic.

    Returns:
        A MIME type such as ``image/png``, or None when the format is unknown.
    """
    return sniff_magic(data) or mime_type_from_extension(fallback_path)
