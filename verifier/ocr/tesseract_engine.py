"""Tesseract OCR engine adapter.

Runs pytesseract over the normalized ID card bitmap and collects
word-level confidences alongside the plain text.
"""

import io

import pytesseract
from PIL import Image, UnidentifiedImageError

from verifier.exceptions import ExtractionError, ExtractionTimeout
from verifier.utils.logger import get_logger

from .base import OCREngine, OCRResult, OCRWord

logger = get_logger(__name__)


class TesseractEngine(OCREngine):
    """OCR engine backed by the Tesseract executable.

    Args:
        tesseract_cmd: Path to the Tesseract executable.
            If ``None``, uses the system default.
        lang: OCR language code.
        psm: Tesseract page segmentation mode.
        timeout: Seconds before the Tesseract process is killed; 0 disables
            the limit.
    """

    name = "tesseract"

    def __init__(
        self,
        tesseract_cmd: str | None = None,
        lang: str = "eng",
        psm: int = 3,
        timeout: float = 0,
    ) -> None:
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd
        self.lang = lang
        self.psm = psm
        self.timeout = timeout

    def open(self) -> None:
        """Check that the Tesseract executable is reachable.

        Raises:
            ExtractionError: If Tesseract is not installed.
        """
        try:
            version = pytesseract.get_tesseract_version()
        except pytesseract.TesseractNotFoundError as exc:
            raise ExtractionError("Tesseract executable not found") from exc
        logger.debug("Using Tesseract %s", version)

    def recognize(self, image: bytes) -> OCRResult:
        """Extract text and word confidences from an encoded image.

        Args:
            image: Encoded image bytes.

        Returns:
            OCRResult with full text, words and average confidence.

        Raises:
            ExtractionTimeout: If the Tesseract process ran out of time.
            ExtractionError: If the image cannot be read or Tesseract fails.
        """
        config = f"--psm {self.psm}"
        try:
            pil_image = Image.open(io.BytesIO(image))
            text = pytesseract.image_to_string(
                pil_image, lang=self.lang, config=config, timeout=self.timeout
            )
            data = pytesseract.image_to_data(
                pil_image,
                lang=self.lang,
                config=config,
                output_type=pytesseract.Output.DICT,
                timeout=self.timeout,
            )
        except (UnidentifiedImageError, pytesseract.TesseractError, OSError) as exc:
            raise ExtractionError(f"Tesseract recognition failed: {exc}") from exc
        except RuntimeError as exc:
            # pytesseract kills the process and raises a bare RuntimeError.
            raise ExtractionTimeout(
                f"Tesseract process killed after {self.timeout:g} seconds"
            ) from exc

        words: list[OCRWord] = []
        for i, raw_text in enumerate(data["text"]):
            conf = float(data["conf"][i])
            word_text = raw_text.strip()
            if conf > 0 and word_text:
                words.append(
                    OCRWord(
                        text=word_text,
                        confidence=conf / 100.0,
                        line_num=data["line_num"][i],
                    )
                )

        avg_conf = sum(w.confidence for w in words) / len(words) if words else 0.0
        logger.info(
            "OCR extracted %d words with average confidence %.2f",
            len(words),
            avg_conf,
        )
        return OCRResult(text=text, words=words, confidence=avg_conf)
