"""Local file storage for uploaded ID card documents."""

import uuid
from pathlib import Path

from verifier.exceptions import DocumentNotFoundError
from verifier.preprocessing.media import MediaType, resolve_media_type
from verifier.utils.logger import get_logger

logger = get_logger(__name__)

_CANONICAL_SUFFIX: dict[MediaType, str] = {
    MediaType.JPEG: ".jpg",
    MediaType.PNG: ".png",
    MediaType.PDF: ".pdf",
}


class DocumentStore:
    """Saves uploads under a root directory and loads them back by reference.

    References are file names relative to the root; anything that would
    resolve outside the root is treated as missing.

    Args:
        root: Directory holding uploaded documents.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def save(
        self,
        data: bytes,
        filename: str | None,
        content_type: str | None = None,
    ) -> tuple[str, MediaType]:
        """Store an upload after checking its media type.

        Args:
            data: Uploaded file content.
            filename: Client-supplied file name.
            content_type: Client-supplied MIME type.

        Returns:
            Tuple of (document reference, media type).

        Raises:
            UnsupportedMediaType: If the upload is not JPEG, PNG or PDF.
        """
        media_type = resolve_media_type(filename, content_type)
        reference = f"{uuid.uuid4().hex}{_CANONICAL_SUFFIX[media_type]}"
        self.root.mkdir(parents=True, exist_ok=True)
        (self.root / reference).write_bytes(data)
        logger.info(
            "Stored %d byte %s upload as %s", len(data), media_type.name, reference
        )
        return reference, media_type

    def load(self, reference: str) -> tuple[bytes, MediaType]:
        """Read a stored document.

        Args:
            reference: Reference returned by ``save``.

        Returns:
            Tuple of (file content, media type).

        Raises:
            DocumentNotFoundError: If the reference does not name a stored file.
            UnsupportedMediaType: If the stored file has an unsupported type.
        """
        root = self.root.resolve()
        path = (root / reference).resolve()
        if not path.is_relative_to(root) or not path.is_file():
            raise DocumentNotFoundError(f"Document file not found: {reference}")
        return path.read_bytes(), resolve_media_type(path.name)

    def delete(self, reference: str) -> None:
        """Remove a stored document; unknown references are ignored."""
        root = self.root.resolve()
        path = (root / reference).resolve()
        if path.is_relative_to(root) and path.is_file():
            path.unlink()
            logger.debug("Deleted stored document %s", reference)
