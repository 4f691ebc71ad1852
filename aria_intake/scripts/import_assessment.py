#!/usr/bin/env python3
"""CLI entrypoint for the assessment text importer."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, cast

from aria_intake.assessment_import import catalog as catalog_mod
from aria_intake.assessment_import import normalize, parser, renderer, sources
from aria_intake.assessment_import.catalog import AssessmentCatalog
from aria_intake.assessment_import.errors import AssessmentImportError
from aria_intake.assessment_import.parser import ParsedAssessmentData
from aria_intake.assessment_import.session import ImportSession

DEFAULT_OUTPUT_NAME = "_import"

logger = logging.getLogger("aria_intake.assessment_import.cli")


class ScanPaths:
    def __init__(self, target: Path, output_dir: Path | None = None) -> None:
        self.target = target
        self.output_dir = (output_dir or target / DEFAULT_OUTPUT_NAME).resolve()
        self.extracted_path = self.output_dir / "extracted.jsonl"
        self.scan_report_path = self.output_dir / "scan_report.json"
        self.summary_path = self.output_dir / "SUMMARY.md"


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="[%(levelname)s] %(message)s",
    )


def resolve_catalog(args: argparse.Namespace) -> AssessmentCatalog:
    path = catalog_mod.resolve_catalog_path(getattr(args, "catalog", None))
    try:
        return catalog_mod.load_catalog(path)
    except AssessmentImportError as exc:
        raise SystemExit(str(exc)) from exc


def resolve_directory(value: str) -> Path:
    resolved = Path(value).expanduser().resolve()
    if not resolved.is_dir():
        raise SystemExit(f"Directory not found: {resolved}")
    return resolved


def pdf_mode_from(args: argparse.Namespace) -> str:
    return sources.PDF_MODE_EXTRACT if getattr(args, "extract_pdf", False) else sources.PDF_MODE_TEXT


def read_input(args: argparse.Namespace) -> str:
    if args.source == "-":
        return sys.stdin.read()
    path = Path(args.source).expanduser()
    if not path.is_file():
        raise SystemExit(f"File not found: {path}")
    try:
        return sources.read_source_text(
            path,
            pdf_mode=pdf_mode_from(args),
            min_pdf_chars=getattr(args, "min_pdf_chars", None),
            pdf_backends=parse_backend_list(getattr(args, "pdf_backends", None)),
        )
    except AssessmentImportError as exc:
        raise SystemExit(str(exc)) from exc


def command_parse(args: argparse.Namespace) -> None:
    catalog = resolve_catalog(args)
    imported: list[ParsedAssessmentData] = []
    session = ImportSession(catalog, imported.append, debounce_ms=0)
    try:
        session.select_assessment(args.assessment_type)
    except AssessmentImportError as exc:
        raise SystemExit(str(exc)) from exc
    session.set_text(read_input(args))
    outcome = session.outcome
    if outcome is not None and not outcome.ok:
        logger.error("Could not parse input: %s", outcome.error)
    if args.json:
        session.confirm()
        payload = imported[0] if imported else (session.preview or ParsedAssessmentData())
        print(json.dumps(payload.to_dict(), indent=2, ensure_ascii=False))
        return
    print(renderer.render_preview(session.preview, catalog))


def command_scan(args: argparse.Namespace) -> None:
    catalog = resolve_catalog(args)
    target = resolve_directory(args.directory)
    paths = ScanPaths(target, Path(args.output).expanduser() if args.output else None)
    if args.assessment_type and args.assessment_type not in catalog:
        raise SystemExit(f"Unknown assessment type: {args.assessment_type}")
    logger.info("Scanning %s", target)
    results, files = parser.scan_directory(
        target,
        target,
        catalog,
        selected_type=args.assessment_type,
        pdf_mode=pdf_mode_from(args),
        min_pdf_chars=args.min_pdf_chars,
        pdf_backends=parse_backend_list(args.pdf_backends),
    )
    timestamp = normalize.now_iso()
    write_jsonl(
        paths.extracted_path,
        ({"file": file_path, **data.to_dict()} for file_path, data in results.items()),
    )
    write_scan_report(paths, files, timestamp)
    logger.info(
        "Extracted %d domains from %d files",
        sum(result.domain_count for result in files.values()),
        len(files),
    )


def command_render(args: argparse.Namespace) -> None:
    target = resolve_directory(args.directory)
    paths = ScanPaths(target, Path(args.output).expanduser() if args.output else None)
    report = load_scan_report(paths)
    if not report:
        raise SystemExit("No scan report found. Run 'scan' first.")
    content = renderer.render_scan_summary(report, paths.summary_path)
    logger.info("Summary written to %s (%d characters)", paths.summary_path, len(content))


def command_catalog(args: argparse.Namespace) -> None:
    catalog = resolve_catalog(args)
    if args.export:
        export_path = Path(args.export).expanduser()
        catalog_mod.save_catalog(export_path, catalog)
        logger.info("Wrote %d assessment types to %s", len(catalog), export_path)
    print("ID".ljust(12), "Abbreviation".ljust(14), "Domains".ljust(8), "Name")
    print("-" * 95)
    for descriptor in catalog:
        print(
            descriptor.id.ljust(12),
            descriptor.abbreviation.ljust(14),
            str(len(descriptor.domains)).ljust(8),
            descriptor.name,
        )


def write_jsonl(path: Path, items: Iterable[dict[str, Any]]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as fh:
        for item in items:
            fh.write(json.dumps(item, ensure_ascii=False))
            fh.write("\n")


def write_scan_report(
    paths: ScanPaths, files: Mapping[str, parser.FileScanResult], timestamp: str
) -> None:
    report = {
        "timestamp": timestamp,
        "target": str(paths.target),
        "files": {file: data.to_dict() for file, data in files.items()},
        "counts": {
            "files": len(files),
            "domains": sum(result.domain_count for result in files.values()),
            "errors": sum(1 for result in files.values() if result.status == parser.STATUS_ERROR),
        },
    }
    paths.scan_report_path.parent.mkdir(parents=True, exist_ok=True)
    with paths.scan_report_path.open("w", encoding="utf-8") as fh:
        json.dump(report, fh, indent=2)


def load_scan_report(paths: ScanPaths) -> dict[str, Any]:
    if not paths.scan_report_path.exists():
        return {}
    with paths.scan_report_path.open("r", encoding="utf-8") as fh:
        return cast(dict[str, Any], json.load(fh))


def parse_backend_list(value: str | None) -> list[str] | None:
    if not value:
        return None
    parts = [entry.strip() for entry in value.split(",") if entry.strip()]
    return parts or None


def add_pdf_arguments(subparser: argparse.ArgumentParser) -> None:
    subparser.add_argument(
        "--extract-pdf",
        action="store_true",
        help="Run real PDF text extraction instead of reading PDFs as raw text",
    )
    subparser.add_argument(
        "--pdf-backends",
        help="Comma-separated PDF backend order (overrides ARIA_IMPORT_PDF_BACKENDS)",
    )
    subparser.add_argument(
        "--min-pdf-chars",
        type=int,
        help="Minimum characters required from a PDF (overrides ARIA_IMPORT_MIN_PDF_CHARS)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser_obj = argparse.ArgumentParser(description="Import assessment scores from text")
    parser_obj.add_argument("--catalog", help="Assessment catalog JSON (overrides ARIA_IMPORT_CATALOG)")
    parser_obj.add_argument("--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser_obj.add_subparsers(dest="command")

    parse_parser = subparsers.add_parser("parse", help="Parse one file, or '-' for stdin")
    parse_parser.add_argument("source", help="Path to the assessment file, or '-'")
    parse_parser.add_argument("--assessment-type", help="Catalog id to use instead of detection")
    parse_parser.add_argument("--json", action="store_true", help="Print the import payload as JSON")
    add_pdf_arguments(parse_parser)
    parse_parser.set_defaults(func=command_parse)

    scan_parser = subparsers.add_parser("scan", help="Parse every supported file in a directory")
    scan_parser.add_argument("directory", help="Directory holding exported assessments")
    scan_parser.add_argument("--output", help="Output directory (defaults to <directory>/_import)")
    scan_parser.add_argument("--assessment-type", help="Catalog id applied to every file")
    add_pdf_arguments(scan_parser)
    scan_parser.set_defaults(func=command_scan)

    render_parser = subparsers.add_parser("render", help="Render Markdown summary of a scan")
    render_parser.add_argument("directory", help="Directory that was scanned")
    render_parser.add_argument("--output", help="Scan output directory")
    render_parser.set_defaults(func=command_render)

    catalog_parser = subparsers.add_parser("catalog", help="List known assessment instruments")
    catalog_parser.add_argument("--export", help="Also write the catalog as JSON to this path")
    catalog_parser.set_defaults(func=command_catalog)

    return parser_obj


def main(argv: list[str] | None = None) -> None:
    parser_obj = build_parser()
    args = parser_obj.parse_args(argv)
    if not getattr(args, "command", None):
        parser_obj.print_help()
        return
    configure_logging(args.verbose)
    args.func(args)


if __name__ == "__main__":
    main()
