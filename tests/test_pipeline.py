"""Tests for the verification pipeline and its background runner."""

import asyncio
from pathlib import Path

import pytest

from conftest import JANE, FakeEngine
from verifier.decision.engine import DecisionCategory, DecisionEngine, IdentityProfile
from verifier.exceptions import (
    DocumentNotFoundError,
    PreprocessingError,
    RequestNotFoundError,
)
from verifier.extraction.field_parser import FieldParser
from verifier.ocr.text_extractor import TextExtractor
from verifier.pipeline.processor import (
    DocumentVerifier,
    VerificationPipeline,
    build_pipeline,
    build_verifier,
)
from verifier.pipeline.runner import PipelineRunner
from verifier.preprocessing.media import MediaType
from verifier.preprocessing.pipeline import ImageNormalizer
from verifier.storage.documents import DocumentStore
from verifier.storage.repository import RequestRepository
from verifier.utils.config import AppConfig, PreprocessingConfig, StorageConfig


def _submit(
    repository: RequestRepository,
    documents: DocumentStore,
    data: bytes,
    filename: str = "card.png",
    profile: IdentityProfile = JANE,
) -> str:
    reference, media_type = documents.save(data, filename)
    return repository.create(profile, reference, media_type.value).id


class TestDocumentVerifier:
    """Tests for the stage chain on a single document."""

    def test_matching_card(
        self, document_verifier: DocumentVerifier, png_bytes: bytes
    ) -> None:
        result = asyncio.run(document_verifier.verify(png_bytes, MediaType.PNG, JANE))

        assert result.extraction.extracted_name == "Jane Smith"
        assert result.extraction.extracted_roll == "202310101110069"
        assert result.outcome.confidence_score == 1.0
        assert result.outcome.category is DecisionCategory.LIKELY_APPROVE

    def test_unreadable_card(self, png_bytes: bytes) -> None:
        verifier = DocumentVerifier(
            normalizer=ImageNormalizer(PreprocessingConfig()),
            extractor=TextExtractor(lambda: FakeEngine(text="~~ smudge ~~")),
            parser=FieldParser(),
            engine=DecisionEngine(),
        )
        result = asyncio.run(verifier.verify(png_bytes, MediaType.PNG, JANE))

        assert result.extraction.extracted_name is None
        assert result.extraction.extracted_roll is None
        assert result.outcome.name_match_score == 0.0
        assert result.outcome.roll_match_score == 0.5
        assert result.outcome.confidence_score == 0.2
        assert result.outcome.category is DecisionCategory.FLAG_SUSPICIOUS

    def test_preprocessing_failure_skips_ocr(
        self, document_verifier: DocumentVerifier, fake_engine: FakeEngine
    ) -> None:
        with pytest.raises(PreprocessingError):
            asyncio.run(document_verifier.verify(b"junk", MediaType.JPEG, JANE))
        assert fake_engine.calls == 0


class TestVerificationPipeline:
    """Tests for request-level pipeline runs."""

    def test_result_is_stored(
        self,
        pipeline: VerificationPipeline,
        repository: RequestRepository,
        documents: DocumentStore,
        png_bytes: bytes,
    ) -> None:
        request_id = _submit(repository, documents, png_bytes)

        result = asyncio.run(pipeline.run(request_id))

        assert repository.get_result(request_id) == result
        assert result.outcome.category is DecisionCategory.LIKELY_APPROVE

    def test_second_run_uses_stored_result(
        self,
        pipeline: VerificationPipeline,
        repository: RequestRepository,
        documents: DocumentStore,
        fake_engine: FakeEngine,
        png_bytes: bytes,
    ) -> None:
        request_id = _submit(repository, documents, png_bytes)

        first = asyncio.run(pipeline.run(request_id))
        fake_engine.text = "Name: Someone Else"
        second = asyncio.run(pipeline.run(request_id))

        assert second == first
        assert fake_engine.calls == 1
        assert repository.get_result(request_id) == first

    def test_concurrent_runs_store_one_result(
        self,
        pipeline: VerificationPipeline,
        repository: RequestRepository,
        documents: DocumentStore,
        png_bytes: bytes,
    ) -> None:
        request_id = _submit(repository, documents, png_bytes)

        async def run_twice() -> list:
            return await asyncio.gather(
                pipeline.run(request_id), pipeline.run(request_id)
            )

        first, second = asyncio.run(run_twice())

        assert first == second == repository.get_result(request_id)

    def test_failure_stores_nothing(
        self,
        pipeline: VerificationPipeline,
        repository: RequestRepository,
        documents: DocumentStore,
    ) -> None:
        request_id = _submit(repository, documents, b"not an image", "card.jpg")

        with pytest.raises(PreprocessingError):
            asyncio.run(pipeline.run(request_id))
        assert repository.get_result(request_id) is None

    def test_missing_document(
        self, pipeline: VerificationPipeline, repository: RequestRepository
    ) -> None:
        request_id = repository.create(JANE, "gone.png", MediaType.PNG.value).id
        with pytest.raises(DocumentNotFoundError):
            asyncio.run(pipeline.run(request_id))

    def test_unknown_request(self, pipeline: VerificationPipeline) -> None:
        with pytest.raises(RequestNotFoundError):
            asyncio.run(pipeline.run("missing"))


class TestPipelineRunner:
    """Tests for background submission of pipeline runs."""

    def test_run_returns_result(
        self,
        pipeline: VerificationPipeline,
        repository: RequestRepository,
        documents: DocumentStore,
        png_bytes: bytes,
    ) -> None:
        runner = PipelineRunner(pipeline, repository)
        request_id = _submit(repository, documents, png_bytes)

        result = asyncio.run(runner.run(request_id))

        assert result == repository.get_result(request_id)
        assert runner.inflight == 0

    def test_duplicate_submissions_share_a_task(
        self,
        pipeline: VerificationPipeline,
        repository: RequestRepository,
        documents: DocumentStore,
        fake_engine: FakeEngine,
        png_bytes: bytes,
    ) -> None:
        runner = PipelineRunner(pipeline, repository)
        request_id = _submit(repository, documents, png_bytes)

        async def submit_twice() -> None:
            first = runner.submit(request_id)
            second = runner.submit(request_id)
            assert first is second
            assert runner.inflight == 1
            await runner.drain()

        asyncio.run(submit_twice())

        assert fake_engine.calls == 1
        assert runner.inflight == 0

    def test_failure_is_recorded(
        self,
        pipeline: VerificationPipeline,
        repository: RequestRepository,
        documents: DocumentStore,
    ) -> None:
        runner = PipelineRunner(pipeline, repository)
        request_id = _submit(repository, documents, b"not an image", "card.jpg")

        with pytest.raises(PreprocessingError):
            asyncio.run(runner.run(request_id))

        request = repository.get(request_id)
        assert request.result is None
        assert request.last_error.startswith("PreprocessingError:")

    def test_timeout_is_recorded(
        self,
        repository: RequestRepository,
        documents: DocumentStore,
        png_bytes: bytes,
    ) -> None:
        slow = FakeEngine(delay=0.5)
        verifier = DocumentVerifier(
            normalizer=ImageNormalizer(PreprocessingConfig()),
            extractor=TextExtractor(lambda: slow, timeout_seconds=0.05),
            parser=FieldParser(),
            engine=DecisionEngine(),
        )
        runner = PipelineRunner(
            VerificationPipeline(verifier, repository, documents), repository
        )
        request_id = _submit(repository, documents, png_bytes)

        asyncio.run(runner.run_detached(request_id))

        request = repository.get(request_id)
        assert request.result is None
        assert request.last_error.startswith("ExtractionTimeout:")
        assert slow.closed

    def test_detached_run_hides_pipeline_errors(
        self,
        pipeline: VerificationPipeline,
        repository: RequestRepository,
    ) -> None:
        runner = PipelineRunner(pipeline, repository)
        asyncio.run(runner.run_detached("missing"))
        assert runner.inflight == 0


class TestBuilders:
    """Tests for configuration-driven pipeline construction."""

    def test_build_verifier_uses_config(self) -> None:
        config = AppConfig()
        config.ocr.timeout_seconds = 4.0
        verifier = build_verifier(config)
        assert verifier._extractor.timeout_seconds == 4.0

    def test_build_verifier_rejects_unknown_engine(self) -> None:
        config = AppConfig()
        config.ocr.engine = "nope"
        with pytest.raises(ValueError):
            build_verifier(config)

    def test_build_pipeline_with_repository(
        self, repository: RequestRepository, tmp_path: Path
    ) -> None:
        config = AppConfig(storage=StorageConfig(uploads_dir=str(tmp_path)))
        pipeline = build_pipeline(config, repository)
        assert pipeline._repository is repository
        assert pipeline._documents.root == tmp_path
