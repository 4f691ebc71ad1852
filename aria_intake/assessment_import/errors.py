"""Exception types raised by the assessment import package."""
from __future__ import annotations


class AssessmentImportError(Exception):
    """Base class for import failures surfaced to callers."""


class CatalogError(AssessmentImportError):
    """Raised for malformed catalogs or unknown instrument ids."""


class ImportFormatError(AssessmentImportError):
    """Raised when an uploaded file cannot be decoded in its declared format."""


class UnsupportedFormatError(ImportFormatError):
    """Raised when no reader or importer handles a file type."""
