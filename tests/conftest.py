"""Shared test fixtures for the college email verifier test suite."""

import io
import time
from collections.abc import Iterator
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from verifier.decision.engine import DecisionEngine, IdentityProfile
from verifier.extraction.field_parser import FieldParser
from verifier.ocr.base import OCREngine, OCRResult
from verifier.ocr.text_extractor import TextExtractor
from verifier.pipeline.processor import DocumentVerifier, VerificationPipeline
from verifier.preprocessing.pipeline import ImageNormalizer
from verifier.storage.documents import DocumentStore
from verifier.storage.repository import RequestRepository
from verifier.utils.config import PreprocessingConfig

MATCHING_CARD_TEXT = "Student Name: Jane Smith Roll No: 202310101110069"
JANE = IdentityProfile(
    declared_name="Jane Smith",
    declared_email="jane202310101110069@college.edu",
)


class FakeEngine(OCREngine):
    """In-memory OCR engine returning canned text."""

    name = "fake"

    def __init__(self, text: str = MATCHING_CARD_TEXT, delay: float = 0.0) -> None:
        self.text = text
        self.delay = delay
        self.calls = 0
        self.opened = False
        self.closed = False

    def open(self) -> None:
        self.opened = True

    def close(self) -> None:
        self.closed = True

    def recognize(self, image: bytes) -> OCRResult:
        self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        return OCRResult(text=self.text, confidence=0.9)


def make_png_bytes(width: int = 300, height: int = 200) -> bytes:
    """Create a PNG with a white card and dark text-like bars."""
    image = np.full((height, width, 3), 230, dtype=np.uint8)
    image[40:60, 30 : width - 30] = 20
    image[100:120, 30 : width // 2] = 40
    buf = io.BytesIO()
    Image.fromarray(image).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def sample_image() -> np.ndarray:
    """Create a simple synthetic grayscale test image."""
    image = np.zeros((200, 300), dtype=np.uint8)
    image[50:150, 50:250] = 255
    return image


@pytest.fixture
def sample_color_image() -> np.ndarray:
    """Create a simple synthetic BGR test image."""
    image = np.zeros((200, 300, 3), dtype=np.uint8)
    image[50:150, 50:250] = (255, 255, 255)
    return image


@pytest.fixture
def png_bytes() -> bytes:
    return make_png_bytes()


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def config_dir(project_root: Path) -> Path:
    """Return the configs directory path."""
    return project_root / "configs"


@pytest.fixture
def fake_engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def repository() -> Iterator[RequestRepository]:
    """In-memory request repository."""
    repo = RequestRepository(":memory:")
    yield repo
    repo.close()


@pytest.fixture
def documents(tmp_path: Path) -> DocumentStore:
    return DocumentStore(tmp_path / "uploads")


@pytest.fixture
def document_verifier(fake_engine: FakeEngine) -> DocumentVerifier:
    """Full stage chain with the OCR engine replaced by ``fake_engine``."""
    return DocumentVerifier(
        normalizer=ImageNormalizer(PreprocessingConfig()),
        extractor=TextExtractor(lambda: fake_engine, timeout_seconds=5.0),
        parser=FieldParser(),
        engine=DecisionEngine(),
    )


@pytest.fixture
def pipeline(
    document_verifier: DocumentVerifier,
    repository: RequestRepository,
    documents: DocumentStore,
) -> VerificationPipeline:
    return VerificationPipeline(document_verifier, repository, documents)
