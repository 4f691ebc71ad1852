"""Rendering utilities for import previews and scan summaries."""
from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, cast

from .catalog import AssessmentCatalog
from .normalize import limit_length, now_iso
from .parser import ParsedAssessmentData, ParsedDomain

PREVIEW_DOMAIN_LIMIT = 6
NO_DATA_MESSAGE = "No data detected"


def format_domain_chip(domain: ParsedDomain) -> str:
    return f"{domain.name}: {domain.raw_score or ''}".rstrip()


def preview_badges(data: ParsedAssessmentData, catalog: AssessmentCatalog) -> list[str]:
    badges: list[str] = []
    descriptor = catalog.get(data.assessment_type)
    if descriptor is not None:
        badges.append(descriptor.abbreviation)
    if data.assessment_date:
        badges.append(data.assessment_date)
    if data.domains:
        badges.append(f"{len(data.domains)} domains found")
    return badges


def render_preview(data: ParsedAssessmentData | None, catalog: AssessmentCatalog) -> str:
    if data is None:
        return NO_DATA_MESSAGE
    badges = preview_badges(data, catalog)
    if not badges and not data.examiner:
        return NO_DATA_MESSAGE
    lines = ["Data detected!"]
    if badges:
        lines.append(" ".join(f"[{badge}]" for badge in badges))
    if data.examiner:
        lines.append(f"Examiner: {data.examiner}")
    chips = [format_domain_chip(domain) for domain in data.domains[:PREVIEW_DOMAIN_LIMIT]]
    hidden = len(data.domains) - PREVIEW_DOMAIN_LIMIT
    if hidden > 0:
        chips.append(f"+{hidden} more")
    lines.extend(f"  {chip}" for chip in chips)
    return "\n".join(lines)


def render_scan_summary(report: Mapping[str, Any], output_path: Path) -> str:
    files = cast(Mapping[str, Mapping[str, Any]], report.get("files", {}))
    status_counts: Counter[str] = Counter()
    type_counts: Counter[str] = Counter()
    for entry in files.values():
        status_counts[str(entry.get("status", "unknown"))] += 1
        if entry.get("assessment_type"):
            type_counts[str(entry["assessment_type"])] += 1
    lines = ["# Assessment Import Summary", "", f"_Rendered: {now_iso()}_", ""]
    lines.append(f"**Scanned:** {report.get('timestamp', 'unknown')}")
    lines.append("")
    lines.append(f"**Files:** {len(files)}")
    lines.append("")
    if status_counts:
        lines.append("**By status:** " + format_counts(status_counts))
        lines.append("")
    if type_counts:
        lines.append("**By instrument:** " + format_counts(type_counts))
        lines.append("")
    lines.append("| File | Instrument | Domains | Status | Error |")
    lines.append("| --- | --- | --- | --- | --- |")
    for file_path in sorted(files):
        lines.append(format_file_row(files[file_path]))
    lines.append("")
    output_path.parent.mkdir(parents=True, exist_ok=True)
    content = "\n".join(lines)
    output_path.write_text(content, encoding="utf-8")
    return content


def format_counts(counts: Counter[str]) -> str:
    return ", ".join(f"{key} ({count})" for key, count in sorted(counts.items()))


def format_file_row(entry: Mapping[str, Any]) -> str:
    cells: Iterable[Any] = (
        entry.get("file", ""),
        entry.get("assessment_type") or "-",
        entry.get("domain_count", 0),
        entry.get("status", ""),
        limit_length(str(entry.get("error") or "")),
    )
    return "| " + " | ".join(escape_cell(str(cell)) for cell in cells) + " |"


def escape_cell(value: str) -> str:
    return value.replace("|", "\\|")
