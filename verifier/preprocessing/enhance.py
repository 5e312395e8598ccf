"""Geometric and tonal enhancement steps for ID card images.

Each function is pure and deterministic so the normalizer produces
byte-identical output for identical input.
"""

import cv2
import numpy as np

from verifier.utils.logger import get_logger

logger = get_logger(__name__)

_SHARPEN_KERNEL = np.array(
    [[0, -1, 0], [-1, 5, -1], [0, -1, 0]],
    dtype=np.float32,
)


def to_gray(image: np.ndarray) -> np.ndarray:
    """Convert an image to single-channel grayscale if needed.

    Args:
        image: Input image (BGR, BGRA or grayscale).

    Returns:
        Grayscale image.
    """
    if image.ndim == 2:
        return image
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)


def resize_to_fit(image: np.ndarray, max_dimension: int = 2000) -> np.ndarray:
    """Shrink an image to fit inside a square bounding box.

    Aspect ratio is preserved and images already inside the box are
    returned untouched; this never upscales.

    Args:
        image: Input image.
        max_dimension: Longest allowed side in pixels.

    Returns:
        The original image or a downscaled copy.
    """
    h, w = image.shape[:2]
    longest = max(h, w)
    if longest <= max_dimension:
        return image

    scale = max_dimension / longest
    new_size = (max(1, round(w * scale)), max(1, round(h * scale)))
    logger.debug("Resizing %dx%d -> %dx%d", w, h, new_size[0], new_size[1])
    return cv2.resize(image, new_size, interpolation=cv2.INTER_AREA)


def normalize_histogram(gray: np.ndarray) -> np.ndarray:
    """Stretch intensities so the darkest pixel maps to 0 and the lightest to 255.

    Args:
        gray: Grayscale image.

    Returns:
        Normalized grayscale image. Uniform images are returned unchanged.
    """
    if int(gray.min()) == int(gray.max()):
        return gray.copy()
    return cv2.normalize(gray, None, 0, 255, cv2.NORM_MINMAX)


def stretch_contrast(
    gray: np.ndarray, slope: float = 1.5, pivot: int = 128
) -> np.ndarray:
    """Apply a linear contrast stretch centred on ``pivot``.

    Computes ``slope * value - pivot * slope + pivot`` per pixel, so the
    pivot intensity is a fixed point and everything else moves away from it.

    Args:
        gray: Grayscale image.
        slope: Contrast multiplier.
        pivot: Intensity left unchanged by the stretch.

    Returns:
        Contrast-stretched grayscale image clipped to [0, 255].
    """
    offset = pivot - pivot * slope
    stretched = gray.astype(np.float32) * slope + offset
    return np.clip(np.rint(stretched), 0, 255).astype(np.uint8)


def sharpen(gray: np.ndarray) -> np.ndarray:
    """Sharpen character edges with a fixed 3x3 Laplacian kernel.

    Args:
        gray: Grayscale image.

    Returns:
        Sharpened grayscale image.
    """
    return cv2.filter2D(gray, -1, _SHARPEN_KERNEL, borderType=cv2.BORDER_REPLICATE)
