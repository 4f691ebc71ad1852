"""Assessment import package."""
from __future__ import annotations

from pathlib import Path

from . import catalog, file_import, normalize, parser, renderer, session, sources
from .catalog import AssessmentCatalog, AssessmentTypeDescriptor
from .errors import (
    AssessmentImportError,
    CatalogError,
    ImportFormatError,
    UnsupportedFormatError,
)
from .parser import ParsedAssessmentData, ParsedDomain, ParseOutcome, parse_assessment_text
from .session import ImportSession

__all__ = [
    "catalog",
    "file_import",
    "normalize",
    "parser",
    "renderer",
    "session",
    "sources",
    "AssessmentCatalog",
    "AssessmentTypeDescriptor",
    "AssessmentImportError",
    "CatalogError",
    "ImportFormatError",
    "UnsupportedFormatError",
    "ImportSession",
    "ParsedAssessmentData",
    "ParsedDomain",
    "ParseOutcome",
    "parse_assessment_text",
    "load_catalog",
]


def load_catalog(path: str | Path | None = None) -> AssessmentCatalog:
    """Convenience wrapper honoring ``ARIA_IMPORT_CATALOG`` when ``path`` is omitted."""
    from .catalog import load_catalog, resolve_catalog_path

    return load_catalog(resolve_catalog_path(str(path) if path else None))
