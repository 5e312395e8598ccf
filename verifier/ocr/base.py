"""OCR engine contract and result types.

Engines are scoped resources: the text extractor acquires one per
pipeline invocation with a ``with`` block and releases it on every exit
path, including timeouts.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from types import TracebackType


@dataclass(frozen=True)
class OCRWord:
    """A single recognized token with its confidence in [0, 1]."""

    text: str
    confidence: float
    line_num: int = 0


@dataclass(frozen=True)
class OCRResult:
    """Recognized text for one image."""

    text: str
    words: list[OCRWord] = field(default_factory=list)
    confidence: float = 0.0


class OCREngine(ABC):
    """Contract for OCR engine adapters: bitmap in, text and token confidences out."""

    name: str = "base"

    def open(self) -> None:
        """Acquire engine resources. The default engine needs none."""

    def close(self) -> None:
        """Release engine resources acquired by ``open``."""

    def __enter__(self) -> "OCREngine":
        self.open()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    @abstractmethod
    def recognize(self, image: bytes) -> OCRResult:
        """Recognize text in an encoded image.

        Args:
            image: Encoded image bytes (PNG from the normalizer).

        Returns:
            Recognized text with per-token confidences.

        Raises:
            ExtractionError: If the engine fails.
        """
