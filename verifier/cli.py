"""Command-line interface for verifying ID cards without the API server.

Provides subcommands for checking a single ID card against a declared
identity and for verifying a manifest of cards with CSV export.
"""

import argparse
import asyncio
import csv
import json
import sys
import time
from pathlib import Path

from verifier.decision.engine import IdentityProfile
from verifier.exceptions import VerifierError
from verifier.pipeline.processor import DocumentVerifier, build_verifier
from verifier.preprocessing.media import resolve_media_type
from verifier.storage.models import VerificationResult
from verifier.utils.config import load_config
from verifier.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)

_MANIFEST_COLUMNS = ("filename", "name", "email")
_RESULT_COLUMNS = [
    "filename",
    "status",
    "declared_name",
    "declared_email",
    "extracted_name",
    "extracted_roll",
    "extracted_college_id",
    "category",
    "confidence_score",
    "name_match_score",
    "roll_match_score",
    "processing_time_s",
    "error",
]


def result_to_dict(result: VerificationResult) -> dict[str, object]:
    """Flatten a verification result into JSON/CSV friendly values.

    Args:
        result: Pipeline output for one document.

    Returns:
        Dictionary of extracted fields and decision scores.
    """
    extraction, outcome = result.extraction, result.outcome
    return {
        "extracted_name": extraction.extracted_name,
        "extracted_roll": extraction.extracted_roll,
        "extracted_college_id": extraction.extracted_college_id,
        "category": outcome.category.value,
        "confidence_score": outcome.confidence_score,
        "name_match_score": outcome.name_match_score,
        "roll_match_score": outcome.roll_match_score,
    }


def verify_file(
    file_path: Path,
    profile: IdentityProfile,
    verifier: DocumentVerifier | None = None,
) -> dict[str, object]:
    """Verify one ID card file and return structured results.

    Args:
        file_path: Path to the ID card image or PDF.
        profile: Declared identity to check the card against.
        verifier: Pipeline to use; built from the config when omitted.

    Returns:
        Dictionary with filename, raw_text, extracted fields and decision.

    Raises:
        VerifierError: If the file cannot be verified.
    """
    if verifier is None:
        verifier = build_verifier(load_config())
    media_type = resolve_media_type(file_path.name)
    result = asyncio.run(verifier.verify(file_path.read_bytes(), media_type, profile))
    return {
        "filename": file_path.name,
        "raw_text": result.extraction.raw_text,
        **result_to_dict(result),
    }


def _read_manifest(manifest: Path) -> list[dict[str, str]]:
    """Read manifest rows, skipping rows with a blank filename.

    Args:
        manifest: CSV file with ``filename,name,email`` columns.

    Returns:
        List of row dictionaries.

    Raises:
        ValueError: If a required column is missing.
    """
    with open(manifest, newline="") as f:
        reader = csv.DictReader(f)
        missing = [c for c in _MANIFEST_COLUMNS if c not in (reader.fieldnames or [])]
        if missing:
            raise ValueError(f"Manifest is missing columns: {', '.join(missing)}")
        return [row for row in reader if (row.get("filename") or "").strip()]


def process_manifest(
    manifest: Path,
    output_csv: Path,
    verbose: bool = False,
    verifier: DocumentVerifier | None = None,
) -> dict[str, int]:
    """Verify every ID card listed in a manifest and export results to CSV.

    File names in the manifest are resolved relative to its directory.

    Args:
        manifest: CSV file with ``filename,name,email`` columns.
        output_csv: Path for the output CSV file.
        verbose: Whether to print per-file progress.
        verifier: Pipeline to use; built from the config when omitted.

    Returns:
        Summary dict with total, successful, and failed counts.
    """
    rows = _read_manifest(manifest)
    if not rows:
        logger.warning("No documents listed in %s", manifest)
        return {"total": 0, "successful": 0, "failed": 0}

    if verifier is None:
        verifier = build_verifier(load_config())
    logger.info("Found %d documents to verify", len(rows))

    results: list[dict[str, object]] = []
    successful = 0
    failed = 0

    for i, row in enumerate(rows, 1):
        filename = row["filename"].strip()
        if verbose:
            print(f"Verifying [{i}/{len(rows)}]: {filename}")

        profile = IdentityProfile(
            declared_name=(row.get("name") or "").strip(),
            declared_email=(row.get("email") or "").strip(),
        )
        base = {
            "filename": filename,
            "declared_name": profile.declared_name,
            "declared_email": profile.declared_email,
        }
        start_time = time.time()
        try:
            result = verify_file(manifest.parent / filename, profile, verifier)
        except (VerifierError, OSError) as exc:
            logger.error("Failed to verify %s: %s", filename, exc)
            results.append({**base, "status": "failed", "error": str(exc)})
            failed += 1
            continue

        result.pop("raw_text", None)
        result.update(base)
        result["status"] = "success"
        result["processing_time_s"] = round(time.time() - start_time, 2)
        result["error"] = None
        results.append(result)
        successful += 1

    _write_csv(results, output_csv)
    logger.info("Results written to %s", output_csv)

    summary = {"total": len(rows), "successful": successful, "failed": failed}
    _print_summary(summary, output_csv)
    return summary


def _write_csv(results: list[dict[str, object]], output_path: Path) -> None:
    """Write verification results to a CSV file.

    Args:
        results: List of result dictionaries.
        output_path: Path for the output CSV file.
    """
    if not results:
        return

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=_RESULT_COLUMNS, extrasaction="ignore")
        writer.writeheader()
        writer.writerows(results)


def _print_summary(summary: dict[str, int], output_csv: Path) -> None:
    print(f"\n{'=' * 50}")
    print("Batch Verification Complete")
    print(f"{'=' * 50}")
    print(f"Total:      {summary['total']}")
    print(f"Successful: {summary['successful']}")
    print(f"Failed:     {summary['failed']}")
    print(f"Output:     {output_csv}")


def main(argv: list[str] | None = None) -> None:
    """Parse CLI arguments and dispatch to the appropriate command.

    Args:
        argv: Command-line arguments (defaults to sys.argv).
    """
    parser = argparse.ArgumentParser(
        description="College ID Card Verifier",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-c", "--config", type=Path, default=None, help="Path to config YAML"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    verify_parser = subparsers.add_parser("verify", help="Verify a single ID card")
    verify_parser.add_argument("file", type=Path, help="ID card image or PDF")
    verify_parser.add_argument("--name", required=True, help="Declared full name")
    verify_parser.add_argument("--email", required=True, help="Declared email")
    verify_parser.add_argument("-o", "--output", type=Path, help="Output JSON file")

    batch_parser = subparsers.add_parser(
        "batch", help="Verify the ID cards listed in a manifest CSV"
    )
    batch_parser.add_argument(
        "manifest", type=Path, help="CSV with filename,name,email columns"
    )
    batch_parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=Path("results.csv"),
        help="Output CSV file (default: results.csv)",
    )
    batch_parser.add_argument(
        "-v", "--verbose", action="store_true", help="Verbose output"
    )

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    config = load_config(args.config)
    setup_logging(config.log_level)

    if args.command == "verify":
        if not args.file.exists():
            print(f"Error: {args.file} does not exist", file=sys.stderr)
            sys.exit(1)
        profile = IdentityProfile(declared_name=args.name, declared_email=args.email)
        try:
            result = verify_file(args.file, profile, build_verifier(config))
        except VerifierError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            sys.exit(1)
        output_str = json.dumps(result, indent=2)
        if args.output:
            args.output.parent.mkdir(parents=True, exist_ok=True)
            args.output.write_text(output_str)
            print(f"Output written to {args.output}")
        else:
            print(output_str)
    elif args.command == "batch":
        if not args.manifest.is_file():
            print(f"Error: {args.manifest} is not a file", file=sys.stderr)
            sys.exit(1)
        try:
            process_manifest(
                args.manifest, args.output, args.verbose, build_verifier(config)
            )
        except ValueError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            sys.exit(1)


if __name__ == "__main__":
    main()
