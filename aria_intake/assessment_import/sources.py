"""Readers that turn uploaded assessment files into plain text."""
from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import Callable, Iterable, Iterator
from pathlib import Path
from typing import Any

from bs4 import BeautifulSoup, NavigableString
from docx import Document
from pypdf import PdfReader

from .errors import ImportFormatError, UnsupportedFormatError

logger = logging.getLogger(__name__)

PDF_BACKENDS_ENV = "ARIA_IMPORT_PDF_BACKENDS"
MIN_PDF_CHARS_ENV = "ARIA_IMPORT_MIN_PDF_CHARS"

DEFAULT_PDF_BACKENDS = [
    "pypdf",
    "pdfminer",
    "pikepdf+pypdf",
]

RAW_TEXT_EXTENSIONS = {".txt", ".text", ".csv", ".tsv", ".json", ".md"}
HTML_EXTENSIONS = {".html", ".htm"}

SUPPORTED_EXTENSIONS = RAW_TEXT_EXTENSIONS | HTML_EXTENSIONS | {".pdf", ".docx"}

PDF_MODE_TEXT = "text"
PDF_MODE_EXTRACT = "extract"


def iter_supported_files(root: Path) -> Iterator[Path]:
    for path in sorted(root.rglob("*")):
        if not path.is_file():
            continue
        if any(part.startswith((".", "_")) for part in path.relative_to(root).parts):
            continue
        if path.suffix.lower() in SUPPORTED_EXTENSIONS:
            yield path


def resolve_pdf_backends(prefer_backends: Iterable[str] | None) -> list[str]:
    if prefer_backends:
        order = [backend.strip() for backend in prefer_backends if backend and backend.strip()]
    else:
        env_value = os.environ.get(PDF_BACKENDS_ENV, "")
        order = [backend.strip() for backend in env_value.split(",") if backend.strip()]
    return list(dict.fromkeys(order)) or list(DEFAULT_PDF_BACKENDS)


def resolve_min_pdf_chars(value: int | None) -> int:
    if value is not None:
        return max(value, 0)
    env_value = os.environ.get(MIN_PDF_CHARS_ENV)
    if env_value:
        try:
            return max(int(env_value), 0)
        except ValueError:
            logger.debug("Invalid %s value: %s", MIN_PDF_CHARS_ENV, env_value)
    return 50


def decode_text(raw: bytes) -> str:
    if raw.startswith(b"\xef\xbb\xbf"):
        raw = raw[3:]
    return raw.decode("utf-8", errors="ignore")


def read_raw_text(path: Path) -> str:
    """Read any file as text, the way uploads are handled by default (PDFs included)."""

    return decode_text(path.read_bytes())


def read_html_text(path: Path) -> str:
    soup = BeautifulSoup(read_raw_text(path), "lxml")
    for tag in soup(["script", "style"]):
        tag.decompose()
    # Each table row becomes one tab-joined line at its position in the document.
    for row in soup.find_all("tr"):
        cells = [cell.get_text(" ", strip=True) for cell in row.find_all(["td", "th"])]
        row.replace_with(NavigableString("\t".join(cell for cell in cells if cell)))
    lines = (line.strip() for line in soup.get_text("\n").splitlines())
    return "\n".join(line for line in lines if line)


def read_docx_text(path: Path) -> str:
    try:
        document = Document(str(path))
    except Exception as exc:
        raise ImportFormatError(f"failed to read DOCX {path.name}: {exc}") from exc
    lines = [paragraph.text for paragraph in document.paragraphs]
    for table in document.tables:
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells]
            lines.append("\t".join(cell for cell in cells if cell))
    return "\n".join(lines)


def read_source_text(
    path: Path,
    *,
    pdf_mode: str = PDF_MODE_TEXT,
    min_pdf_chars: int | None = None,
    pdf_backends: Iterable[str] | None = None,
) -> str:
    suffix = path.suffix.lower()
    if suffix in RAW_TEXT_EXTENSIONS:
        return read_raw_text(path)
    if suffix in HTML_EXTENSIONS:
        return read_html_text(path)
    if suffix == ".docx":
        return read_docx_text(path)
    if suffix == ".pdf":
        if pdf_mode == PDF_MODE_EXTRACT:
            text, meta = extract_pdf_text(
                path,
                min_chars=resolve_min_pdf_chars(min_pdf_chars),
                prefer_backends=pdf_backends,
            )
            logger.debug("PDF %s extracted via %s (%s chars)", path, meta["backend"], meta["chars"])
            return text
        if pdf_mode != PDF_MODE_TEXT:
            raise ValueError(f"unknown pdf mode: {pdf_mode}")
        return read_raw_text(path)
    raise UnsupportedFormatError(f"unsupported file format: {path.name}")


def extract_pdf_text(
    path: str | Path,
    *,
    min_chars: int = 50,
    prefer_backends: Iterable[str] | None = None,
) -> tuple[str, dict[str, Any]]:
    """Extract PDF text by trying each backend until one yields ``min_chars``.

    Returns the longest text seen and metadata describing the winning backend.
    An empty string means no backend produced enough text.
    """

    pdf_path = Path(path)
    try:
        byte_size = pdf_path.stat().st_size
    except OSError:
        byte_size = 0

    best_text = ""
    best_backend = "none"
    warnings: list[str] = []
    last_error: str | None = None
    repaired = False

    with tempfile.TemporaryDirectory(prefix="aria_pdf_") as tmp_dir:
        repaired_path: Path | None = None
        repair_error: str | None = None
        for backend_name in resolve_pdf_backends(prefer_backends):
            target = pdf_path
            base_backend = backend_name
            if backend_name.startswith("pikepdf+"):
                base_backend = backend_name.split("+", 1)[1]
                if repaired_path is None and repair_error is None:
                    try:
                        repaired_path = _repair_pdf_with_pikepdf(pdf_path, Path(tmp_dir))
                    except RuntimeError as exc:
                        repair_error = str(exc)
                        logger.debug("pikepdf repair failed for %s: %s", pdf_path, exc)
                if repaired_path is None:
                    last_error = repair_error
                    warnings.append(f"{backend_name}: repair failed: {repair_error}")
                    continue
                target = repaired_path
            try:
                text, backend_warnings = _extract_with_backend(base_backend, target)
            except RuntimeError as exc:
                last_error = str(exc)
                warnings.append(f"{backend_name}: {exc}")
                logger.debug("PDF backend %s failed for %s: %s", backend_name, pdf_path, exc)
                continue
            warnings.extend(f"{backend_name}: {warning}" for warning in backend_warnings)
            if len(text.strip()) > len(best_text.strip()):
                best_text = text
                best_backend = backend_name
                repaired = target is not pdf_path
            if len(best_text.strip()) >= min_chars:
                break

    chars = len(best_text.strip())
    meta: dict[str, Any] = {
        "backend": best_backend,
        "bytes": byte_size,
        "chars": chars,
        "warnings": list(dict.fromkeys(warnings)),
        "repaired": repaired,
        "error": None,
    }
    if chars >= min_chars:
        return best_text, meta
    meta["backend"] = "none"
    meta["error"] = last_error
    if chars:
        meta["warnings"].append(f"best text shorter than min_chars ({chars} < {min_chars})")
    return "", meta


def _pypdf_text(path: Path) -> tuple[str, list[str]]:
    try:
        pages = PdfReader(str(path)).pages
    except Exception as exc:  # pragma: no cover - pypdf raises many error types
        raise RuntimeError(str(exc)) from exc
    page_texts: list[str] = []
    problems: list[str] = []
    for index, page in enumerate(pages):
        try:
            page_texts.append(page.extract_text() or "")
        except Exception as exc:  # pragma: no cover - document specific
            problems.append(f"page {index + 1} unreadable ({exc})")
    return "\n".join(page_texts), problems


def _pdfminer_text(path: Path) -> tuple[str, list[str]]:
    try:
        from pdfminer.high_level import extract_text
    except ImportError as exc:  # pragma: no cover - installed with the pdf extra
        raise RuntimeError("pdfminer backend requires the 'pdf' extra") from exc
    try:
        text = extract_text(str(path))
    except Exception as exc:  # pragma: no cover - pdfminer raises many error types
        raise RuntimeError(str(exc)) from exc
    return text or "", []


PdfExtractor = Callable[[Path], tuple[str, list[str]]]

PDF_EXTRACTORS: dict[str, PdfExtractor] = {
    "pypdf": _pypdf_text,
    "pdfminer": _pdfminer_text,
}


def _extract_with_backend(backend: str, path: Path) -> tuple[str, list[str]]:
    extractor = PDF_EXTRACTORS.get(backend)
    if extractor is None:
        raise RuntimeError(f"unknown backend: {backend}")
    return extractor(path)


def _repair_pdf_with_pikepdf(source: Path, temp_dir: Path) -> Path:
    """Rewrite ``source`` through pikepdf, which fixes many broken xref tables."""

    try:
        import pikepdf
    except ImportError as exc:  # pragma: no cover - installed with the pdf extra
        raise RuntimeError("pikepdf repair requires the 'pdf' extra") from exc
    repaired_path = temp_dir / f"{source.stem}.repaired.pdf"
    try:
        with pikepdf.open(source) as document:
            document.save(repaired_path)
    except Exception as exc:  # pragma: no cover - pikepdf raises many error types
        raise RuntimeError(str(exc)) from exc
    return repaired_path
