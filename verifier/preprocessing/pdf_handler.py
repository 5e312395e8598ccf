"""PDF rasterization for uploaded ID card scans.

ID cards are single-page documents, so only the first page of a PDF
is rendered for OCR.
"""

import cv2
import numpy as np
from pdf2image import convert_from_bytes
from pdf2image.exceptions import (
    PDFInfoNotInstalledError,
    PDFPageCountError,
    PDFSyntaxError,
)

from verifier.exceptions import PreprocessingError
from verifier.utils.logger import get_logger

logger = get_logger(__name__)


class PDFHandler:
    """Renders PDF uploads to images for the normalizer.

    Args:
        dpi: Resolution for PDF rendering. Higher values produce
            better OCR results but use more memory.
    """

    def __init__(self, dpi: int = 300) -> None:
        self.dpi = dpi

    def first_page(self, pdf_bytes: bytes) -> np.ndarray:
        """Render the first page of a PDF.

        Args:
            pdf_bytes: Raw PDF file content.

        Returns:
            The page as a BGR numpy array.

        Raises:
            PreprocessingError: If the PDF cannot be rendered or has no pages.
        """
        try:
            pages = convert_from_bytes(
                pdf_bytes, dpi=self.dpi, first_page=1, last_page=1
            )
        except (PDFInfoNotInstalledError, PDFPageCountError, PDFSyntaxError) as exc:
            raise PreprocessingError(f"PDF conversion failed: {exc}") from exc

        if not pages:
            raise PreprocessingError("PDF contains no pages")

        rgb = np.array(pages[0].convert("RGB"))
        logger.info(
            "Rendered first PDF page at %d DPI (%dx%d)",
            self.dpi,
            rgb.shape[1],
            rgb.shape[0],
        )
        return cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR)
