"""Catalog of known assessment instruments and its JSON persistence."""
from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, cast

from .errors import CatalogError

logger = logging.getLogger(__name__)

CATALOG_ENV = "ARIA_IMPORT_CATALOG"


@dataclass(frozen=True)
class AssessmentTypeDescriptor:
    """A standardized instrument and its canonical scored domains."""

    id: str
    name: str
    abbreviation: str
    domains: tuple[str, ...] = field(default_factory=tuple)
    description: str = ""
    age_range: str = ""
    scoring_type: str = ""

    def to_dict(self) -> dict[str, object]:
        data = asdict(self)
        data["domains"] = list(self.domains)
        return data


class AssessmentCatalog:
    """Ordered, read-only lookup table of instruments.

    Iteration follows registration order, which is also the tie-break order
    used by type detection.
    """

    def __init__(self, descriptors: Iterable[AssessmentTypeDescriptor]) -> None:
        ordered: list[AssessmentTypeDescriptor] = []
        by_id: dict[str, AssessmentTypeDescriptor] = {}
        for descriptor in descriptors:
            if not descriptor.id:
                raise CatalogError("assessment type without id")
            if descriptor.id in by_id:
                raise CatalogError(f"duplicate assessment type id: {descriptor.id}")
            by_id[descriptor.id] = descriptor
            ordered.append(descriptor)
        self._ordered = tuple(ordered)
        self._by_id = by_id

    def __iter__(self) -> Iterator[AssessmentTypeDescriptor]:
        return iter(self._ordered)

    def __len__(self) -> int:
        return len(self._ordered)

    def __contains__(self, assessment_id: object) -> bool:
        return assessment_id in self._by_id

    def __repr__(self) -> str:
        return f"AssessmentCatalog({', '.join(self.ids())})"

    def get(self, assessment_id: str | None) -> AssessmentTypeDescriptor | None:
        if not assessment_id:
            return None
        return self._by_id.get(assessment_id)

    def require(self, assessment_id: str) -> AssessmentTypeDescriptor:
        descriptor = self.get(assessment_id)
        if descriptor is None:
            raise CatalogError(f"unknown assessment type: {assessment_id}")
        return descriptor

    def ids(self) -> list[str]:
        return [descriptor.id for descriptor in self._ordered]

    def to_dict(self) -> dict[str, Any]:
        return {"assessment_types": [descriptor.to_dict() for descriptor in self._ordered]}


DEFAULT_ASSESSMENT_TYPES: tuple[AssessmentTypeDescriptor, ...] = (
    AssessmentTypeDescriptor(
        id="vbmapp",
        name="Verbal Behavior Milestones Assessment and Placement Program",
        abbreviation="VB-MAPP",
        domains=(
            "Mand",
            "Tact",
            "Listener Responding",
            "Visual Perceptual",
            "Play",
            "Social",
            "Imitation",
            "Echoic",
            "Spontaneous Vocal",
            "Listener Responding by Function/Feature/Class",
            "Intraverbal",
            "Classroom Routines",
            "Linguistic Structure",
            "Math",
            "Reading",
            "Writing",
        ),
        description=(
            "Criterion-referenced assessment of language, learning and social skills "
            "based on Skinner's analysis of verbal behavior."
        ),
        age_range="0-48 months developmental",
        scoring_type="Milestone levels (0-5 points per skill)",
    ),
    AssessmentTypeDescriptor(
        id="ablls-r",
        name="Assessment of Basic Language and Learning Skills - Revised",
        abbreviation="ABLLS-R",
        domains=(
            "Cooperation",
            "Visual Performance",
            "Receptive Language",
            "Imitation",
            "Vocal Imitation",
            "Requests",
            "Labeling",
            "Intraverbals",
            "Spontaneous Vocalizations",
            "Syntax",
            "Play",
            "Social Interaction",
            "Group Instruction",
            "Classroom Routines",
            "Generalized Responding",
        ),
        description="Curriculum guide and skills tracking system for children with language delays.",
        age_range="1-12 years",
        scoring_type="Task analysis checklist",
    ),
    AssessmentTypeDescriptor(
        id="peak",
        name="Promoting Emergence of Advanced Knowledge",
        abbreviation="PEAK",
        domains=("Direct Training", "Generalization", "Equivalence", "Transformation"),
        description="Language and cognition curriculum based on relational frame theory.",
        age_range="All ages",
        scoring_type="Mastery criteria per module",
    ),
    AssessmentTypeDescriptor(
        id="esdm",
        name="Early Start Denver Model Curriculum Checklist",
        abbreviation="ESDM",
        domains=(
            "Receptive Communication",
            "Expressive Communication",
            "Joint Attention",
            "Social Skills",
            "Imitation",
            "Cognition",
            "Play",
            "Fine Motor",
            "Gross Motor",
            "Personal Independence",
        ),
        description="Developmental assessment combining ABA with relationship-based approaches.",
        age_range="12-48 months",
        scoring_type="Developmental levels",
    ),
    AssessmentTypeDescriptor(
        id="afls",
        name="Assessment of Functional Living Skills",
        abbreviation="AFLS",
        domains=(
            "Basic Living Skills",
            "Home Skills",
            "Community Participation",
            "School Skills",
            "Vocational Skills",
            "Independent Living Skills",
        ),
        description="Essential skills for independent living at home, school and work.",
        age_range="School-age through adult",
        scoring_type="Task analysis with independence levels",
    ),
    AssessmentTypeDescriptor(
        id="fas",
        name="Functional Assessment Screening Tool",
        abbreviation="FAST",
        domains=("Social Attention", "Tangible", "Escape", "Automatic/Sensory"),
        description="Informant screening for potential functions of problem behavior.",
        age_range="All ages",
        scoring_type="Function endorsement rating",
    ),
    AssessmentTypeDescriptor(
        id="vineland",
        name="Vineland Adaptive Behavior Scales",
        abbreviation="Vineland-3",
        domains=(
            "Communication",
            "Daily Living Skills",
            "Socialization",
            "Motor Skills",
            "Maladaptive Behavior Index",
        ),
        description="Standardized measure of adaptive behavior.",
        age_range="Birth-90 years",
        scoring_type="Standard scores, percentiles, age equivalents",
    ),
)


def default_catalog() -> AssessmentCatalog:
    return AssessmentCatalog(DEFAULT_ASSESSMENT_TYPES)


def descriptor_from_dict(data: Mapping[str, Any]) -> AssessmentTypeDescriptor:
    try:
        assessment_id = str(data["id"]).strip()
        name = str(data["name"]).strip()
        abbreviation = str(data["abbreviation"]).strip()
    except KeyError as exc:
        raise CatalogError(f"assessment type missing field: {exc.args[0]}") from exc
    domains = data.get("domains") or []
    if isinstance(domains, str) or not isinstance(domains, Iterable):
        raise CatalogError(f"domains for {assessment_id} must be a list")
    return AssessmentTypeDescriptor(
        id=assessment_id,
        name=name,
        abbreviation=abbreviation,
        domains=tuple(str(domain).strip() for domain in domains if str(domain).strip()),
        description=str(data.get("description", "") or ""),
        age_range=str(data.get("age_range", data.get("ageRange", "")) or ""),
        scoring_type=str(data.get("scoring_type", data.get("scoringType", "")) or ""),
    )


def load_catalog(path: Path | None) -> AssessmentCatalog:
    """Load a catalog from JSON, falling back to the built-in table."""

    if path is None or not path.exists():
        if path is not None:
            logger.debug("Catalog %s not found; using built-in catalog", path)
        return default_catalog()
    with path.open("r", encoding="utf-8") as fh:
        try:
            raw = json.load(fh)
        except json.JSONDecodeError as exc:
            raise CatalogError(f"invalid catalog JSON in {path}: {exc}") from exc
    if isinstance(raw, Mapping):
        entries = raw.get("assessment_types", [])
    else:
        entries = raw
    if not isinstance(entries, list):
        raise CatalogError(f"catalog {path} must hold a list of assessment types")
    catalog = AssessmentCatalog(
        descriptor_from_dict(cast(Mapping[str, Any], entry)) for entry in entries
    )
    logger.debug("Loaded %d assessment types from %s", len(catalog), path)
    return catalog


def save_catalog(path: Path, catalog: AssessmentCatalog) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(catalog.to_dict(), fh, indent=2)


def resolve_catalog_path(value: str | None) -> Path | None:
    if value:
        return Path(value).expanduser()
    env_value = os.environ.get(CATALOG_ENV)
    if env_value:
        return Path(env_value).expanduser()
    return None
