"""Text extractor: the OCR stage of the verification pipeline.

Recognition runs on a single-use worker thread and races a timer. When
the timer wins the attempt is abandoned and reported as
``ExtractionTimeout``; the worker pool is shut down without waiting for
it, so callers get control back within the budget. There is no retry.
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor

from verifier.exceptions import ExtractionError, ExtractionTimeout, VerifierError
from verifier.utils.logger import get_logger

from .base import OCRResult
from .factory import EngineProvider

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0


class TextExtractor:
    """Runs OCR over a normalized bitmap within a fixed time budget.

    Args:
        engine_provider: Callable returning a new engine for each invocation.
        timeout_seconds: Recognition budget in seconds.
    """

    def __init__(
        self,
        engine_provider: EngineProvider,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._engine_provider = engine_provider
        self.timeout_seconds = timeout_seconds

    async def extract(self, image: bytes) -> OCRResult:
        """Recognize text in a normalized image.

        Args:
            image: PNG bytes produced by the image normalizer.

        Returns:
            OCR result; its text may be empty.

        Raises:
            ExtractionTimeout: If recognition exceeds the time budget.
            ExtractionError: If the engine fails for any other reason.
        """
        loop = asyncio.get_running_loop()
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="ocr")
        try:
            with self._engine_provider() as engine:
                logger.debug(
                    "Running %s OCR with a %.1fs budget",
                    engine.name,
                    self.timeout_seconds,
                )
                result = await asyncio.wait_for(
                    loop.run_in_executor(executor, engine.recognize, image),
                    timeout=self.timeout_seconds,
                )
        except TimeoutError as exc:
            logger.warning(
                "OCR abandoned after %.1fs; worker left to finish",
                self.timeout_seconds,
            )
            raise ExtractionTimeout(
                f"OCR timeout after {self.timeout_seconds:g} seconds"
            ) from exc
        except VerifierError:
            raise
        except Exception as exc:
            raise ExtractionError(f"OCR extraction failed: {exc}") from exc
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        logger.info("OCR produced %d characters of text", len(result.text))
        return result
