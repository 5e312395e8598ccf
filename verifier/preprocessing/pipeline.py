"""Image normalizer: the first stage of the verification pipeline.

Decodes an uploaded ID card, then applies resize, grayscale, histogram
normalization, contrast stretch, sharpening and fixed binarization, and
re-encodes the result as PNG for the OCR stage.
"""

from dataclasses import dataclass

import cv2
import numpy as np

from verifier.exceptions import PreprocessingError
from verifier.utils.config import PreprocessingConfig
from verifier.utils.logger import get_logger

from .binarize import binarize_fixed
from .enhance import (
    normalize_histogram,
    resize_to_fit,
    sharpen,
    stretch_contrast,
    to_gray,
)
from .media import MediaType
from .pdf_handler import PDFHandler

logger = get_logger(__name__)


@dataclass
class QualityMetrics:
    """Before/after image quality measurements."""

    sharpness_before: float
    sharpness_after: float
    contrast_before: float
    contrast_after: float


def calculate_sharpness(image: np.ndarray) -> float:
    """Calculate image sharpness using Laplacian variance.

    Args:
        image: Input image (BGR or grayscale).

    Returns:
        Sharpness score (higher means sharper).
    """
    return float(cv2.Laplacian(to_gray(image), cv2.CV_64F).var())


def calculate_contrast(image: np.ndarray) -> float:
    """Calculate image contrast as the standard deviation of pixel intensities.

    Args:
        image: Input image (BGR or grayscale).

    Returns:
        Contrast score (higher means more contrast).
    """
    return float(to_gray(image).std())


class ImageNormalizer:
    """Turns raw upload bytes into a clean binary bitmap for OCR.

    Args:
        config: Preprocessing constants.
        pdf_handler: Renderer for PDF uploads. Created on demand if omitted.
    """

    def __init__(
        self,
        config: PreprocessingConfig,
        pdf_handler: PDFHandler | None = None,
    ) -> None:
        self.config = config
        self.pdf_handler = pdf_handler or PDFHandler()

    def normalize(self, data: bytes, media_type: MediaType) -> bytes:
        """Run the full normalization on an uploaded document.

        Args:
            data: Raw file content.
            media_type: Media type resolved by the upload gate.

        Returns:
            PNG-encoded single-channel binary image.

        Raises:
            PreprocessingError: If the document cannot be decoded or encoded.
        """
        image = self.decode(data, media_type)
        processed, metrics = self.process(image)

        ok, encoded = cv2.imencode(".png", processed)
        if not ok:
            raise PreprocessingError("Failed to encode normalized image")

        logger.info(
            "Normalized %s document: %dx%d, sharpness %.1f->%.1f, "
            "contrast %.1f->%.1f",
            media_type.name,
            processed.shape[1],
            processed.shape[0],
            metrics.sharpness_before,
            metrics.sharpness_after,
            metrics.contrast_before,
            metrics.contrast_after,
        )
        return encoded.tobytes()

    def decode(self, data: bytes, media_type: MediaType) -> np.ndarray:
        """Decode document bytes into an image array.

        Args:
            data: Raw file content.
            media_type: Declared media type.

        Returns:
            Decoded BGR image.

        Raises:
            PreprocessingError: If the bytes are empty or not a readable image.
        """
        if not data:
            raise PreprocessingError("Document is empty")

        if media_type is MediaType.PDF:
            return self.pdf_handler.first_page(data)

        buffer = np.frombuffer(data, dtype=np.uint8)
        image = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
        if image is None:
            raise PreprocessingError(f"Could not decode {media_type.name} image")
        return image

    def process(self, image: np.ndarray) -> tuple[np.ndarray, QualityMetrics]:
        """Apply the normalization steps to a decoded image.

        Args:
            image: Decoded document image.

        Returns:
            Tuple of (binary_image, quality_metrics).
        """
        cfg = self.config
        metrics = QualityMetrics(
            sharpness_before=calculate_sharpness(image),
            contrast_before=calculate_contrast(image),
            sharpness_after=0.0,
            contrast_after=0.0,
        )

        result = resize_to_fit(image, cfg.max_dimension)
        result = to_gray(result)
        result = normalize_histogram(result)
        result = stretch_contrast(result, cfg.contrast_slope, cfg.contrast_pivot)
        if cfg.sharpen_enabled:
            result = sharpen(result)
        result = binarize_fixed(result, cfg.binarize_threshold)

        metrics.sharpness_after = calculate_sharpness(result)
        metrics.contrast_after = calculate_contrast(result)
        return result, metrics
