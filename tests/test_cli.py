"""Tests for the verification CLI and CSV export."""

import csv
import json
import time
from pathlib import Path
from unittest.mock import patch

import pytest

from conftest import JANE, FakeEngine, make_png_bytes
from verifier.cli import _read_manifest, main, process_manifest, verify_file
from verifier.decision.engine import DecisionEngine
from verifier.exceptions import ExtractionTimeout, UnsupportedMediaType
from verifier.extraction.field_parser import FieldParser
from verifier.ocr.text_extractor import TextExtractor
from verifier.pipeline.processor import DocumentVerifier
from verifier.preprocessing.pipeline import ImageNormalizer
from verifier.utils.config import PreprocessingConfig


def _write_manifest(path: Path, rows: list[tuple[str, str, str]]) -> Path:
    with open(path, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(["filename", "name", "email"])
        writer.writerows(rows)
    return path


class TestVerifyFile:
    """Tests for single-file verification."""

    def test_verify_png(
        self, tmp_path: Path, document_verifier: DocumentVerifier
    ) -> None:
        card = tmp_path / "card.png"
        card.write_bytes(make_png_bytes())

        result = verify_file(card, JANE, document_verifier)

        assert result["filename"] == "card.png"
        assert result["extracted_name"] == "Jane Smith"
        assert result["extracted_roll"] == "202310101110069"
        assert result["category"] == "LIKELY_APPROVE"
        assert result["confidence_score"] == 1.0
        assert "Jane Smith" in result["raw_text"]

    def test_unsupported_file(
        self, tmp_path: Path, document_verifier: DocumentVerifier
    ) -> None:
        card = tmp_path / "card.bmp"
        card.write_bytes(b"BM")
        with pytest.raises(UnsupportedMediaType):
            verify_file(card, JANE, document_verifier)

    def test_slow_ocr_times_out_within_budget(self, tmp_path: Path) -> None:
        card = tmp_path / "card.png"
        card.write_bytes(make_png_bytes())
        engine = FakeEngine(delay=3.0)
        verifier = DocumentVerifier(
            normalizer=ImageNormalizer(PreprocessingConfig()),
            extractor=TextExtractor(lambda: engine, timeout_seconds=0.2),
            parser=FieldParser(),
            engine=DecisionEngine(),
        )

        start = time.monotonic()
        with pytest.raises(ExtractionTimeout):
            verify_file(card, JANE, verifier)
        assert time.monotonic() - start < 1.5
        assert engine.closed


class TestProcessManifest:
    """Tests for manifest batch processing."""

    def test_batch_writes_csv(
        self, tmp_path: Path, document_verifier: DocumentVerifier
    ) -> None:
        (tmp_path / "jane.png").write_bytes(make_png_bytes())
        (tmp_path / "bad.gif").write_bytes(b"GIF89a")
        manifest = _write_manifest(
            tmp_path / "manifest.csv",
            [
                ("jane.png", JANE.declared_name, JANE.declared_email),
                ("bad.gif", "Ravi Kumar", "ravi@x.edu"),
                ("missing.png", "Priya Patel", "priya@x.edu"),
            ],
        )
        output = tmp_path / "out" / "results.csv"

        summary = process_manifest(manifest, output, verifier=document_verifier)

        assert summary == {"total": 3, "successful": 1, "failed": 2}
        with open(output, newline="") as f:
            rows = list(csv.DictReader(f))
        assert [r["status"] for r in rows] == ["success", "failed", "failed"]
        assert rows[0]["category"] == "LIKELY_APPROVE"
        assert rows[0]["declared_email"] == JANE.declared_email
        assert rows[0]["error"] == ""
        assert "gif" in rows[1]["error"]

    def test_empty_manifest(
        self, tmp_path: Path, document_verifier: DocumentVerifier
    ) -> None:
        manifest = _write_manifest(tmp_path / "manifest.csv", [])
        output = tmp_path / "results.csv"

        summary = process_manifest(manifest, output, verifier=document_verifier)

        assert summary == {"total": 0, "successful": 0, "failed": 0}
        assert not output.exists()

    def test_manifest_missing_columns(self, tmp_path: Path) -> None:
        manifest = tmp_path / "manifest.csv"
        manifest.write_text("filename,name\ncard.png,Jane Smith\n")
        with pytest.raises(ValueError, match="email"):
            _read_manifest(manifest)

    def test_verbose_progress(
        self,
        tmp_path: Path,
        document_verifier: DocumentVerifier,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        (tmp_path / "jane.png").write_bytes(make_png_bytes())
        manifest = _write_manifest(
            tmp_path / "manifest.csv",
            [("jane.png", JANE.declared_name, JANE.declared_email)],
        )
        process_manifest(
            manifest, tmp_path / "r.csv", verbose=True, verifier=document_verifier
        )
        out = capsys.readouterr().out
        assert "Verifying [1/1]: jane.png" in out
        assert "Successful: 1" in out


class TestMain:
    """Tests for argument parsing and dispatch."""

    def test_no_command_prints_help(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == 0

    def test_verify_prints_json(
        self,
        tmp_path: Path,
        document_verifier: DocumentVerifier,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        card = tmp_path / "card.png"
        card.write_bytes(make_png_bytes())

        with patch("verifier.cli.build_verifier", return_value=document_verifier):
            main(
                [
                    "verify",
                    str(card),
                    "--name",
                    JANE.declared_name,
                    "--email",
                    JANE.declared_email,
                ]
            )

        out = capsys.readouterr().out
        result = json.loads(out[out.index("{") :])
        assert result["category"] == "LIKELY_APPROVE"

    def test_verify_writes_output_file(
        self, tmp_path: Path, document_verifier: DocumentVerifier
    ) -> None:
        card = tmp_path / "card.png"
        card.write_bytes(make_png_bytes())
        output = tmp_path / "out" / "result.json"

        with patch("verifier.cli.build_verifier", return_value=document_verifier):
            main(["verify", str(card), "--name", "Jane Smith", "--email", "j@x.edu"])
            main(
                [
                    "verify",
                    str(card),
                    "--name",
                    "Jane Smith",
                    "--email",
                    "j@x.edu",
                    "-o",
                    str(output),
                ]
            )

        assert json.loads(output.read_text())["extracted_name"] == "Jane Smith"

    def test_verify_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["verify", str(tmp_path / "nope.png"), "--name", "A", "--email", "b"])
        assert exc_info.value.code == 1

    def test_verify_unsupported_file(
        self, tmp_path: Path, document_verifier: DocumentVerifier
    ) -> None:
        card = tmp_path / "card.tiff"
        card.write_bytes(b"II*\x00")
        with patch("verifier.cli.build_verifier", return_value=document_verifier):
            with pytest.raises(SystemExit) as exc_info:
                main(["verify", str(card), "--name", "A", "--email", "b"])
        assert exc_info.value.code == 1

    def test_batch(self, tmp_path: Path, document_verifier: DocumentVerifier) -> None:
        (tmp_path / "jane.png").write_bytes(make_png_bytes())
        manifest = _write_manifest(
            tmp_path / "manifest.csv",
            [("jane.png", JANE.declared_name, JANE.declared_email)],
        )
        output = tmp_path / "results.csv"

        with patch("verifier.cli.build_verifier", return_value=document_verifier):
            main(["batch", str(manifest), "-o", str(output)])

        assert output.exists()

    def test_batch_missing_manifest(self, tmp_path: Path) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["batch", str(tmp_path / "nope.csv")])
        assert exc_info.value.code == 1
