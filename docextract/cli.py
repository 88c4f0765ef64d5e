"""Command-line interface for extracting text from document images.

Provides subcommands for single images (recorded into the local
history), folders of images exported to CSV, and history inspection.
"""

import argparse
import asyncio
import csv
import json
import sys
import time
from pathlib import Path

from docextract.history import HistoryStore
from docextract.ocr.extractor import DocumentExtractor, ExtractionOutcome
from docextract.utils.config import AppConfig, load_config
from docextract.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)

_SUPPORTED_EXTENSIONS = ("*.png", "*.jpg", "*.jpeg", "*.tiff", "*.tif", "*.webp", "*.bmp")
_CSV_COLUMNS = [
    "filename",
    "status",
    "ocr_engine",
    "language",
    "confidence",
    "characters",
    "processing_time_s",
    "error",
    "content",
]


def _find_images(input_dir: Path) -> list[Path]:
    """Find all supported image files in a directory.

    Args:
        input_dir: Directory to scan for images.

    Returns:
        Sorted list of image file paths.
    """
    files: list[Path] = []
    for ext in _SUPPORTED_EXTENSIONS:
        files.extend(input_dir.glob(ext))
        files.extend(input_dir.glob(ext.upper()))
    return sorted(set(files))


def _extract_file(extractor: DocumentExtractor, file_path: Path) -> ExtractionOutcome:
    return asyncio.run(extractor.extract(file_path.read_bytes(), file_path.name))


def _outcome_row(file_path: Path, outcome: ExtractionOutcome) -> dict[str, object]:
    if not outcome.success or outcome.data is None:
        return {"filename": file_path.name, "status": "failed", "error": outcome.error}
    result = outcome.data
    return {
        "filename": file_path.name,
        "status": "success",
        "ocr_engine": result.ocr_engine.value,
        "language": result.language,
        "confidence": result.confidence,
        "characters": len(result.content),
        "error": None,
        "content": result.content,
    }


def process_folder(
    input_dir: Path,
    output_csv: Path,
    config: AppConfig | None = None,
    verbose: bool = False,
) -> dict[str, int]:
    """Extract text from every image in a folder and export it to CSV.

    Args:
        input_dir: Directory containing image files.
        output_csv: Path for the output CSV file.
        config: Application configuration (loaded when omitted).
        verbose: Whether to print per-file progress.

    Returns:
        Summary dict with total, successful, and failed counts.
    """
    extractor = DocumentExtractor(config or load_config())

    files = _find_images(input_dir)
    if not files:
        logger.warning("No images found in %s", input_dir)
        return {"total": 0, "successful": 0, "failed": 0}

    logger.info("Found %d images to process", len(files))

    rows: list[dict[str, object]] = []
    successful = 0

    for i, file_path in enumerate(files, 1):
        if verbose:
            print(f"Processing [{i}/{len(files)}]: {file_path.name}")

        start_time = time.time()
        try:
            outcome = _extract_file(extractor, file_path)
        except Exception as exc:
            logger.error("Failed to process %s: %s", file_path.name, exc)
            outcome = ExtractionOutcome(success=False, error=str(exc))

        row = _outcome_row(file_path, outcome)
        row["processing_time_s"] = round(time.time() - start_time, 2)
        rows.append(row)
        if outcome.success:
            successful += 1

    _write_csv(rows, output_csv)
    logger.info("Results written to %s", output_csv)

    summary = {
        "total": len(files),
        "successful": successful,
        "failed": len(files) - successful,
    }
    _print_summary(summary, output_csv)
    return summary


def _write_csv(rows: list[dict[str, object]], output_path: Path) -> None:
    """Write extraction rows to a UTF-8 CSV file."""
    if not rows:
        return

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=_CSV_COLUMNS, extrasaction="ignore")
        writer.writeheader()
        writer.writerows(rows)


def _print_summary(summary: dict[str, int], output_csv: Path) -> None:
    """Print batch processing summary to stdout."""
    print(f"\n{'=' * 50}")
    print("Batch Extraction Complete")
    print(f"{'=' * 50}")
    print(f"Total:      {summary['total']}")
    print(f"Successful: {summary['successful']}")
    print(f"Failed:     {summary['failed']}")
    print(f"Output:     {output_csv}")


def extract_single(
    file_path: Path,
    config: AppConfig | None = None,
    record_history: bool = True,
) -> dict[str, object]:
    """Extract text from one image and optionally record it in history.

    Args:
        file_path: Path to the image file.
        config: Application configuration (loaded when omitted).
        record_history: Whether to store a successful result.

    Returns:
        ``{"success", "data", "error"}`` dictionary.
    """
    config = config or load_config()
    extractor = DocumentExtractor(config)
    outcome = _extract_file(extractor, file_path)

    if outcome.success and outcome.data is not None and record_history:
        HistoryStore(config.history.path, config.history.max_items).add(outcome.data)

    return {
        "success": outcome.success,
        "data": outcome.data.to_dict() if outcome.data else None,
        "error": outcome.error,
    }


def show_history(config: AppConfig, clear: bool = False) -> list[dict[str, object]]:
    """List (or clear) the stored extraction history.

    Returns:
        Stored items, newest first, as dictionaries.
    """
    store = HistoryStore(config.history.path, config.history.max_items)
    if clear:
        store.clear()
        return []
    return [vars(item) for item in store.load()]


def main(argv: list[str] | None = None) -> None:
    """Parse CLI arguments and dispatch to the appropriate command.

    Args:
        argv: Command-line arguments (defaults to sys.argv).
    """
    parser = argparse.ArgumentParser(
        description="Document image text extraction",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-c", "--config", type=Path, help="YAML configuration file")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    single_parser = subparsers.add_parser("extract", help="Extract text from an image")
    single_parser.add_argument("file", type=Path, help="Image file to process")
    single_parser.add_argument("-o", "--output", type=Path, help="Output JSON file")
    single_parser.add_argument(
        "--no-history", action="store_true", help="Do not record the result"
    )

    batch_parser = subparsers.add_parser("batch", help="Process a folder of images")
    batch_parser.add_argument("input_dir", type=Path, help="Input directory with images")
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

    history_parser = subparsers.add_parser("history", help="Show recent extractions")
    history_parser.add_argument(
        "--clear", action="store_true", help="Delete the stored history"
    )

    args = parser.parse_args(argv)

    config = load_config(args.config)
    setup_logging(config.log_level)

    if args.command == "extract":
        if not args.file.exists():
            print(f"Error: {args.file} does not exist", file=sys.stderr)
            sys.exit(1)
        result = extract_single(args.file, config, not args.no_history)
        output_str = json.dumps(result, indent=2, ensure_ascii=False)
        if args.output:
            args.output.parent.mkdir(parents=True, exist_ok=True)
            args.output.write_text(output_str, encoding="utf-8")
            print(f"Output written to {args.output}")
        else:
            print(output_str)
        if not result["success"]:
            sys.exit(2)
    elif args.command == "batch":
        if not args.input_dir.is_dir():
            print(f"Error: {args.input_dir} is not a directory", file=sys.stderr)
            sys.exit(1)
        process_folder(args.input_dir, args.output, config, args.verbose)
    elif args.command == "history":
        items = show_history(config, clear=args.clear)
        if args.clear:
            print("History cleared")
        else:
            print(json.dumps(items, indent=2, ensure_ascii=False))
    else:
        parser.print_help()
        sys.exit(0)


if __name__ == "__main__":
    main()
