"""OCR engine selection.

Maps the configured engine name onto an adapter and hands the text
extractor a provider that builds a fresh engine for every run.
"""

from collections.abc import Callable

from verifier.ocr.base import OCREngine
from verifier.ocr.tesseract_engine import TesseractEngine
from verifier.utils.config import OCRConfig

EngineProvider = Callable[[], OCREngine]


def _tesseract(config: OCRConfig) -> OCREngine:
    return TesseractEngine(
        tesseract_cmd=config.tesseract_cmd,
        lang=config.default_lang,
        psm=config.psm,
        timeout=config.timeout_seconds,
    )


class OCREngineFactory:
    """Creates the correct OCR engine based on configuration."""

    ENGINES: dict[str, Callable[[OCRConfig], OCREngine]] = {
        "tesseract": _tesseract,
    }

    @classmethod
    def _builder(cls, config: OCRConfig) -> Callable[[OCRConfig], OCREngine]:
        engine = config.engine.lower()
        builder = cls.ENGINES.get(engine)
        if builder is None:
            raise ValueError(
                f"Unknown OCR engine '{engine}'. Choose from: {list(cls.ENGINES)}"
            )
        return builder

    @classmethod
    def create(cls, config: OCRConfig) -> OCREngine:
        return cls._builder(config)(config)

    @classmethod
    def provider(cls, config: OCRConfig) -> EngineProvider:
        """Return a callable that builds a fresh engine for each pipeline run."""
        builder = cls._builder(config)
        return lambda: builder(config)
