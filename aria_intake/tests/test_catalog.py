from __future__ import annotations

import json
from pathlib import Path

import pytest

import aria_intake.assessment_import as assessment_import
from aria_intake.assessment_import import catalog as catalog_mod
from aria_intake.assessment_import.catalog import AssessmentCatalog, AssessmentTypeDescriptor
from aria_intake.assessment_import.errors import CatalogError


def test_default_catalog_order() -> None:
    catalog = catalog_mod.default_catalog()
    assert catalog.ids() == ["vbmapp", "ablls-r", "peak", "esdm", "afls", "fas", "vineland"]
    assert len(catalog.require("vbmapp").domains) == 16
    assert catalog.require("fas").abbreviation == "FAST"
    assert "vineland" in catalog
    assert catalog.get(None) is None
    assert catalog.get("missing") is None


def test_duplicate_ids_are_rejected() -> None:
    descriptor = AssessmentTypeDescriptor(id="peak", name="PEAK", abbreviation="PEAK")
    with pytest.raises(CatalogError):
        AssessmentCatalog([descriptor, descriptor])


def test_require_unknown_id() -> None:
    with pytest.raises(CatalogError):
        catalog_mod.default_catalog().require("dsm")


def test_missing_file_falls_back_to_defaults(tmp_path: Path) -> None:
    catalog = catalog_mod.load_catalog(tmp_path / "absent.json")
    assert catalog.ids() == catalog_mod.default_catalog().ids()


def test_save_then_load_custom_catalog(tmp_path: Path) -> None:
    path = tmp_path / "config" / "catalog.json"
    custom = AssessmentCatalog(
        [
            AssessmentTypeDescriptor(
                id="sib",
                name="Skills Inventory Baseline",
                abbreviation="SIB",
                domains=("Requesting", "Waiting"),
                age_range="3-10 years",
            )
        ]
    )
    catalog_mod.save_catalog(path, custom)
    loaded = catalog_mod.load_catalog(path)
    assert loaded.ids() == ["sib"]
    assert loaded.require("sib") == custom.require("sib")


def test_load_accepts_bare_list_and_camel_case(tmp_path: Path) -> None:
    path = tmp_path / "catalog.json"
    path.write_text(
        json.dumps(
            [
                {
                    "id": "clinic",
                    "name": "Clinic Intake Probe",
                    "abbreviation": "CIP",
                    "domains": ["Imitation", " ", "Matching"],
                    "ageRange": "2-6 years",
                }
            ]
        ),
        encoding="utf-8",
    )
    descriptor = catalog_mod.load_catalog(path).require("clinic")
    assert descriptor.domains == ("Imitation", "Matching")
    assert descriptor.age_range == "2-6 years"


def test_invalid_catalog_json(tmp_path: Path) -> None:
    path = tmp_path / "catalog.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(CatalogError):
        catalog_mod.load_catalog(path)


def test_descriptor_requires_abbreviation() -> None:
    with pytest.raises(CatalogError):
        catalog_mod.descriptor_from_dict({"id": "x1", "name": "No Abbreviation"})


def test_package_loader_honors_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "catalog.json"
    path.write_text(
        json.dumps({"assessment_types": [{"id": "one", "name": "One", "abbreviation": "ONE"}]}),
        encoding="utf-8",
    )
    monkeypatch.setenv(catalog_mod.CATALOG_ENV, str(path))
    assert assessment_import.load_catalog().ids() == ["one"]
    monkeypatch.delenv(catalog_mod.CATALOG_ENV)
    assert assessment_import.load_catalog().ids()[0] == "vbmapp"
