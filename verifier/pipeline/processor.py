"""The OCR-to-decision pipeline.

``DocumentVerifier`` runs the four stages in order on one document:
normalize -> extract text -> parse fields -> decide. ``VerificationPipeline``
wraps it with the request store so that a request with a stored decision
is answered from the store without running any stage again.
"""

import asyncio
from pathlib import Path

from verifier.decision.engine import DecisionEngine, IdentityProfile
from verifier.extraction.field_parser import FieldParser
from verifier.ocr.factory import OCREngineFactory
from verifier.ocr.text_extractor import TextExtractor
from verifier.preprocessing.media import MediaType
from verifier.preprocessing.pdf_handler import PDFHandler
from verifier.preprocessing.pipeline import ImageNormalizer
from verifier.storage.documents import DocumentStore
from verifier.storage.models import VerificationResult
from verifier.storage.repository import RequestRepository
from verifier.utils.config import AppConfig
from verifier.utils.logger import get_logger

logger = get_logger(__name__)


class DocumentVerifier:
    """Runs the pipeline stages on a single document, without persistence."""

    def __init__(
        self,
        normalizer: ImageNormalizer,
        extractor: TextExtractor,
        parser: FieldParser,
        engine: DecisionEngine,
    ) -> None:
        self._normalizer = normalizer
        self._extractor = extractor
        self._parser = parser
        self._engine = engine

    async def verify(
        self,
        data: bytes,
        media_type: MediaType,
        profile: IdentityProfile,
    ) -> VerificationResult:
        """Verify one ID card document against a profile.

        Args:
            data: Raw document content.
            media_type: Media type resolved by the upload gate.
            profile: The requester's declared identity.

        Returns:
            Parsed fields and the decision outcome.

        Raises:
            PreprocessingError: If the document cannot be decoded.
            ExtractionTimeout: If OCR exceeds its time budget.
            ExtractionError: If OCR fails.
        """
        normalized = await asyncio.to_thread(
            self._normalizer.normalize, data, media_type
        )
        ocr_result = await self._extractor.extract(normalized)
        extraction = self._parser.parse(ocr_result.text)
        outcome = self._engine.decide(
            extraction.extracted_name,
            extraction.extracted_roll,
            profile,
        )
        return VerificationResult(extraction=extraction, outcome=outcome)


class VerificationPipeline:
    """Verifies the document attached to a stored email request."""

    def __init__(
        self,
        verifier: DocumentVerifier,
        repository: RequestRepository,
        documents: DocumentStore,
    ) -> None:
        self._verifier = verifier
        self._repository = repository
        self._documents = documents

    async def run(self, request_id: str) -> VerificationResult:
        """Run the pipeline for a request, or return its stored result.

        Args:
            request_id: Email request to verify.

        Returns:
            The verification result stored for the request.

        Raises:
            RequestNotFoundError: If the request does not exist.
            DocumentNotFoundError: If its document is missing from storage.
            UnsupportedMediaType: If its document is not JPEG, PNG or PDF.
            PreprocessingError, ExtractionTimeout, ExtractionError: From the
                stages. Nothing is stored in these cases.
        """
        request = self._repository.get(request_id)
        if request.result is not None:
            logger.info(
                "Request %s already verified; returning stored result", request_id
            )
            return request.result

        logger.info("Verifying document for request %s", request_id)
        data, media_type = self._documents.load(request.document_ref)
        result = await self._verifier.verify(data, media_type, request.profile)
        stored = self._repository.save_result(request_id, result)
        logger.info(
            "Request %s verified: %s (confidence %.2f)",
            request_id,
            stored.outcome.category,
            stored.outcome.confidence_score,
        )
        return stored


def build_verifier(config: AppConfig) -> DocumentVerifier:
    """Build a DocumentVerifier with all stages configured."""
    normalizer = ImageNormalizer(
        config.preprocessing,
        pdf_handler=PDFHandler(dpi=config.ocr.pdf_dpi),
    )
    extractor = TextExtractor(
        OCREngineFactory.provider(config.ocr),
        timeout_seconds=config.ocr.timeout_seconds,
    )
    return DocumentVerifier(
        normalizer=normalizer,
        extractor=extractor,
        parser=FieldParser(),
        engine=DecisionEngine(),
    )


def build_pipeline(
    config: AppConfig,
    repository: RequestRepository | None = None,
) -> VerificationPipeline:
    """Build a VerificationPipeline backed by the configured storage."""
    repository = repository or RequestRepository(config.storage.database_path)
    return VerificationPipeline(
        verifier=build_verifier(config),
        repository=repository,
        documents=DocumentStore(Path(config.storage.uploads_dir)),
    )
