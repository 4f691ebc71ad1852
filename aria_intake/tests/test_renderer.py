from __future__ import annotations

from pathlib import Path

from aria_intake.assessment_import import renderer
from aria_intake.assessment_import.catalog import default_catalog
from aria_intake.assessment_import.parser import ParsedAssessmentData, ParsedDomain


def test_empty_preview() -> None:
    catalog = default_catalog()
    assert renderer.render_preview(None, catalog) == renderer.NO_DATA_MESSAGE
    assert renderer.render_preview(ParsedAssessmentData(), catalog) == renderer.NO_DATA_MESSAGE


def test_preview_badges_and_overflow() -> None:
    data = ParsedAssessmentData(
        assessment_type="vbmapp",
        assessment_date="03/14/2024",
        examiner="Jane Doe, BCBA",
        domains=[ParsedDomain(name=f"Domain {index}", raw_score=str(index)) for index in range(8)],
    )
    lines = renderer.render_preview(data, default_catalog()).splitlines()
    assert lines[0] == "Data detected!"
    assert lines[1] == "[VB-MAPP] [03/14/2024] [8 domains found]"
    assert lines[2] == "Examiner: Jane Doe, BCBA"
    assert lines[3:9] == [f"  Domain {index}: {index}" for index in range(6)]
    assert lines[9] == "  +2 more"


def test_type_only_preview_has_no_chips() -> None:
    data = ParsedAssessmentData(assessment_type="peak")
    assert renderer.render_preview(data, default_catalog()) == "Data detected!\n[PEAK]"


def test_scan_summary(tmp_path: Path) -> None:
    report = {
        "timestamp": "2026-01-01T00:00:00+00:00",
        "files": {
            "b.txt": {
                "file": "b.txt",
                "domain_count": 0,
                "status": "error",
                "error": "bad | input",
                "assessment_type": None,
            },
            "a.txt": {
                "file": "a.txt",
                "domain_count": 3,
                "status": "parsed",
                "error": None,
                "assessment_type": "vbmapp",
            },
        },
    }
    output = tmp_path / "out" / "SUMMARY.md"
    content = renderer.render_scan_summary(report, output)
    assert output.read_text(encoding="utf-8") == content
    assert "**By status:** error (1), parsed (1)" in content
    assert "**By instrument:** vbmapp (1)" in content
    rows = [line for line in content.splitlines() if line.startswith("| ") and ".txt" in line]
    assert rows == [
        "| a.txt | vbmapp | 3 | parsed |  |",
        "| b.txt | - | 0 | error | bad \\| input |",
    ]
