"""Heuristic extraction of assessment scores from unstructured text."""
from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from hashlib import sha256
from pathlib import Path
from typing import Any

from .catalog import AssessmentCatalog, AssessmentTypeDescriptor
from .normalize import compact_token, flexible_pattern
from .sources import iter_supported_files, read_source_text

logger = logging.getLogger(__name__)

STATUS_PARSED = "parsed"
STATUS_EMPTY = "empty"
STATUS_ERROR = "error"

DATE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(
        r"(?:date|administered|assessment date|eval(?:uation)? date|test date)"
        r"[:\s]*(\d{1,2}[/-]\d{1,2}[/-]\d{2,4})",
        re.IGNORECASE | re.ASCII,
    ),
    re.compile(r"(\d{1,2}[/-]\d{1,2}[/-]\d{2,4})", re.ASCII),
    re.compile(r"(\w+\s+\d{1,2},?\s+\d{4})", re.IGNORECASE | re.ASCII),
)

EXAMINER_RE = re.compile(
    r"(?:examiner|evaluator|administered by|clinician|bcba|assessor|tester)[:\s]*"
    r"([A-Za-z\s.,]+(?:BCBA|BCaBA|RBT|Ph\.?D|M\.?A|M\.?S|OTR|SLP)?)",
    re.IGNORECASE | re.ASCII,
)

# Score variants tried per canonical domain name, in priority order.
KNOWN_DOMAIN_TEMPLATES: tuple[str, ...] = (
    r"{domain}[:\s\-]+([\d.]+(?:\s*[-/]\s*[\d.]+)?)",
    r"{domain}[:\s]*(?:score)?[:\s]*([\d.]+)",
    r"{domain}[:\s]*Level\s*(\d+)",
)

SCORE_TOKEN_RE = re.compile(r"(\d+(?:\.\d+)?(?:\s*[/-]\s*\d+)?)", re.ASCII)
HEADER_LINE_RE = re.compile(
    r"^(domain|area|skill|category|score|name)", re.IGNORECASE | re.ASCII
)
LEADING_DIGIT_RE = re.compile(r"\d", re.ASCII)
DELIMITER_RE = re.compile(r"[:-]")
TRAILING_SCORE_LINE_RE = re.compile(
    r"^([A-Za-z\s/&]+?)\s+(\d+(?:\.\d+)?(?:\s*[/-]\s*\d+)?)\s*$",
    re.ASCII,
)
MIN_LINE_LENGTH = 5
MIN_NAME_LENGTH = 3


@dataclass
class ParsedDomain:
    """One scored domain found in the source text."""

    name: str
    raw_score: str | None = None
    standard_score: str | None = None
    percentile: str | None = None
    age_equivalent: str | None = None
    level: str | None = None
    notes: str | None = None

    def to_dict(self) -> dict[str, str]:
        data: dict[str, str] = {"name": self.name}
        optional = {
            "rawScore": self.raw_score,
            "standardScore": self.standard_score,
            "percentile": self.percentile,
            "ageEquivalent": self.age_equivalent,
            "level": self.level,
            "notes": self.notes,
        }
        data.update({key: value for key, value in optional.items() if value is not None})
        return data


@dataclass
class ParsedAssessmentData:
    """Extraction result handed to the host form."""

    assessment_type: str | None = None
    assessment_date: str | None = None
    examiner: str | None = None
    domains: list[ParsedDomain] = field(default_factory=list)
    summary: str | None = None
    recommendations: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "domains": [domain.to_dict() for domain in self.domains],
            "recommendations": list(self.recommendations),
        }
        optional = {
            "assessmentType": self.assessment_type,
            "assessmentDate": self.assessment_date,
            "examiner": self.examiner,
            "summary": self.summary,
        }
        data.update({key: value for key, value in optional.items() if value is not None})
        return data


@dataclass
class ParseOutcome:
    """Tagged result of one pipeline run."""

    status: str
    data: ParsedAssessmentData
    error: str | None = None

    @classmethod
    def from_data(cls, data: ParsedAssessmentData) -> ParseOutcome:
        status = STATUS_PARSED if data.domains else STATUS_EMPTY
        return cls(status=status, data=data)

    @classmethod
    def failed(cls, exc: BaseException) -> ParseOutcome:
        return cls(status=STATUS_ERROR, data=ParsedAssessmentData(), error=str(exc) or repr(exc))

    @property
    def ok(self) -> bool:
        return self.status != STATUS_ERROR


@dataclass
class FileScanResult:
    """Metadata captured while importing a single file."""

    file: str
    sha256: str
    mtime: int
    domain_count: int
    status: str = STATUS_EMPTY
    error: str | None = None
    assessment_type: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "file": self.file,
            "sha256": self.sha256,
            "mtime": self.mtime,
            "domain_count": self.domain_count,
            "status": self.status,
            "error": self.error,
            "assessment_type": self.assessment_type,
        }


def _first_group(patterns: Iterable[re.Pattern[str]], text: str) -> str | None:
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            return match.group(1)
    return None


def detect_assessment_type(text: str, catalog: AssessmentCatalog) -> str | None:
    """Return the id of the first catalog entry mentioned in ``text``.

    Ties go to registration order, not to the position or length of the match.
    """

    if not text or not text.strip():
        return None
    compact_text = compact_token(text)
    lowered = text.lower()
    for descriptor in catalog:
        abbreviation = compact_token(descriptor.abbreviation)
        if abbreviation and abbreviation in compact_text:
            return descriptor.id
        if descriptor.name and descriptor.name.lower() in lowered:
            return descriptor.id
    return None


def extract_assessment_date(text: str) -> str | None:
    return _first_group(DATE_PATTERNS, text)


def extract_examiner(text: str) -> str | None:
    match = EXAMINER_RE.search(text)
    if not match:
        return None
    examiner = match.group(1).strip()
    return examiner or None


def known_domain_patterns(domain: str) -> list[re.Pattern[str]]:
    escaped = flexible_pattern(domain)
    return [
        re.compile(template.format(domain=escaped), re.IGNORECASE | re.ASCII)
        for template in KNOWN_DOMAIN_TEMPLATES
    ]


def extract_known_domains(text: str, descriptor: AssessmentTypeDescriptor) -> list[ParsedDomain]:
    """Look up each canonical domain of ``descriptor`` in ``text``.

    Domains without a score in the text are left out rather than stubbed.
    """

    domains: list[ParsedDomain] = []
    for domain in descriptor.domains:
        if not domain.strip():
            continue
        score = _first_group(known_domain_patterns(domain), text)
        if score is not None:
            domains.append(ParsedDomain(name=domain, raw_score=score))
    return domains


def _score_from(parts: Sequence[str]) -> str | None:
    match = SCORE_TOKEN_RE.search(" ".join(parts))
    return match.group(1) if match else None


def _match_tab_line(line: str) -> ParsedDomain | None:
    parts = [part.strip() for part in line.split("\t")]
    parts = [part for part in parts if part]
    if len(parts) < 2 or len(parts[0]) < MIN_NAME_LENGTH:
        return None
    score = _score_from(parts[1:])
    if score is None:
        return None
    return ParsedDomain(name=parts[0], raw_score=score)


def _match_delimited_line(line: str) -> ParsedDomain | None:
    parts = [part.strip() for part in DELIMITER_RE.split(line)]
    if len(parts) < 2 or len(parts[0]) < MIN_NAME_LENGTH or LEADING_DIGIT_RE.match(parts[0]):
        return None
    score = _score_from(parts[1:])
    if score is None:
        return None
    return ParsedDomain(name=parts[0], raw_score=score)


def _match_trailing_score_line(line: str) -> ParsedDomain | None:
    match = TRAILING_SCORE_LINE_RE.match(line)
    if not match or len(match.group(1)) < MIN_NAME_LENGTH:
        return None
    return ParsedDomain(name=match.group(1).strip(), raw_score=match.group(2))


LineMatcher = Callable[[str], ParsedDomain | None]

# The first rule whose predicate accepts the line is the only one tried.
GENERIC_LINE_RULES: tuple[tuple[Callable[[str], bool], LineMatcher], ...] = (
    (lambda line: "\t" in line, _match_tab_line),
    (lambda line: ":" in line or "-" in line, _match_delimited_line),
    (lambda line: True, _match_trailing_score_line),
)


def is_header_line(line: str) -> bool:
    return bool(HEADER_LINE_RE.match(line.strip()))


def match_generic_line(line: str) -> ParsedDomain | None:
    if len(line) < MIN_LINE_LENGTH or is_header_line(line):
        return None
    for applies, matcher in GENERIC_LINE_RULES:
        if applies(line):
            return matcher(line)
    return None


def extract_generic_domains(text: str) -> list[ParsedDomain]:
    """Line-by-line fallback for text that names no known instrument domains."""

    domains: list[ParsedDomain] = []
    for line in text.split("\n"):
        if not line.strip():
            continue
        parsed = match_generic_line(line)
        if parsed is not None:
            domains.append(parsed)
    return domains


def extract_domains(
    text: str, descriptor: AssessmentTypeDescriptor | None
) -> list[ParsedDomain]:
    domains: list[ParsedDomain] = []
    if descriptor is not None:
        domains = extract_known_domains(text, descriptor)
    if not domains:
        domains = extract_generic_domains(text)
    return domains


def resolve_instrument(
    catalog: AssessmentCatalog, selected: str | None, detected: str | None
) -> AssessmentTypeDescriptor | None:
    """A manual selection wins over the detected instrument."""

    return catalog.get(selected) or catalog.get(detected)


def parse_assessment_text(
    text: str,
    catalog: AssessmentCatalog,
    *,
    selected_type: str | None = None,
) -> ParsedAssessmentData:
    data = ParsedAssessmentData()
    if not text or not text.strip():
        return data
    data.assessment_type = detect_assessment_type(text, catalog)
    data.assessment_date = extract_assessment_date(text)
    data.examiner = extract_examiner(text)
    descriptor = resolve_instrument(catalog, selected_type, data.assessment_type)
    data.domains = extract_domains(text, descriptor)
    logger.debug(
        "Parsed %d domains (detected=%s, selected=%s)",
        len(data.domains),
        data.assessment_type,
        selected_type,
    )
    return data


def scan_directory(
    target_dir: Path,
    base_path: Path,
    catalog: AssessmentCatalog,
    *,
    selected_type: str | None = None,
    pdf_mode: str = "text",
    min_pdf_chars: int | None = None,
    pdf_backends: Iterable[str] | None = None,
) -> tuple[dict[str, ParsedAssessmentData], dict[str, FileScanResult]]:
    results: dict[str, ParsedAssessmentData] = {}
    files: dict[str, FileScanResult] = {}
    for file_path in iter_supported_files(target_dir):
        rel_file = str(file_path.relative_to(base_path).as_posix())
        try:
            raw_bytes = file_path.read_bytes()
            mtime = int(file_path.stat().st_mtime)
        except OSError as exc:
            logger.error("Failed to read %s: %s", file_path, exc)
            files[rel_file] = FileScanResult(
                file=rel_file,
                sha256="",
                mtime=0,
                domain_count=0,
                status=STATUS_ERROR,
                error=str(exc),
            )
            continue
        file_sha = sha256(raw_bytes).hexdigest()
        try:
            text = read_source_text(
                file_path,
                pdf_mode=pdf_mode,
                min_pdf_chars=min_pdf_chars,
                pdf_backends=pdf_backends,
            )
            data = parse_assessment_text(text, catalog, selected_type=selected_type)
        except Exception as exc:
            logger.exception("Failed to parse %s", file_path)
            files[rel_file] = FileScanResult(
                file=rel_file,
                sha256=file_sha,
                mtime=mtime,
                domain_count=0,
                status=STATUS_ERROR,
                error=str(exc),
            )
            continue
        outcome = ParseOutcome.from_data(data)
        results[rel_file] = data
        files[rel_file] = FileScanResult(
            file=rel_file,
            sha256=file_sha,
            mtime=mtime,
            domain_count=len(data.domains),
            status=outcome.status,
            assessment_type=selected_type or data.assessment_type,
        )
    return results, files
