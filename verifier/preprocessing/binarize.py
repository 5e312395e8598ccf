"""Global threshold binarization for normalized ID card images."""

import cv2
import numpy as np

from verifier.utils.logger import get_logger

from .enhance import to_gray

logger = get_logger(__name__)


def binarize_fixed(image: np.ndarray, threshold: int = 128) -> np.ndarray:
    """Binarize an image with a fixed global threshold.

    Pixels at or above ``threshold`` become white, the rest black.

    Args:
        image: Input image (BGR or grayscale).
        threshold: Intensity cut-off in [0, 255].

    Returns:
        Binary image with pixel values 0 or 255.
    """
    gray = to_gray(image)
    # THRESH_BINARY keeps values strictly above the cut-off, hence the -1.
    _, binary = cv2.threshold(gray, threshold - 1, 255, cv2.THRESH_BINARY)
    logger.debug("Applied fixed binarization (threshold=%d)", threshold)
    return binary
