"""Media type gate for uploaded ID card documents.

Only JPEG, PNG and PDF uploads enter the pipeline; everything else is
rejected here, before the normalizer sees a single byte.
"""

from enum import StrEnum
from pathlib import PurePath

from verifier.exceptions import UnsupportedMediaType
from verifier.utils.logger import get_logger

logger = get_logger(__name__)


class MediaType(StrEnum):
    """Document media types accepted by the pipeline."""

    JPEG = "image/jpeg"
    PNG = "image/png"
    PDF = "application/pdf"


_EXTENSIONS: dict[str, MediaType] = {
    ".jpg": MediaType.JPEG,
    ".jpeg": MediaType.JPEG,
    ".png": MediaType.PNG,
    ".pdf": MediaType.PDF,
}

_CONTENT_TYPES: dict[str, MediaType] = {
    "image/jpeg": MediaType.JPEG,
    "image/jpg": MediaType.JPEG,
    "image/pjpeg": MediaType.JPEG,
    "image/png": MediaType.PNG,
    "application/pdf": MediaType.PDF,
}

SUPPORTED_EXTENSIONS: tuple[str, ...] = tuple(_EXTENSIONS)


def resolve_media_type(
    filename: str | None, content_type: str | None = None
) -> MediaType:
    """Determine the media type of an upload from its name or MIME type.

    The file extension wins when there is one. The declared content type
    is only consulted for extension-less names, and generic types such as
    ``application/octet-stream`` never qualify.

    Args:
        filename: Original file name or stored path.
        content_type: MIME type declared by the client, if any.

    Returns:
        The resolved media type.

    Raises:
        UnsupportedMediaType: If neither hint names a supported type.
    """
    suffix = PurePath(filename).suffix.lower() if filename else ""
    if suffix:
        media_type = _EXTENSIONS.get(suffix)
        if media_type is None:
            raise UnsupportedMediaType(
                f"Unsupported file type '{suffix}'. Only JPG, PNG and PDF are accepted"
            )
        return media_type

    mime = (content_type or "").split(";")[0].strip().lower()
    media_type = _CONTENT_TYPES.get(mime)
    if media_type is None:
        raise UnsupportedMediaType(
            f"Unsupported content type '{mime or 'unknown'}'. "
            "Only JPG, PNG and PDF are accepted"
        )
    logger.debug("Resolved media type %s from content type", media_type)
    return media_type
