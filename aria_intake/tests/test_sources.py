from __future__ import annotations

from pathlib import Path

import pytest
from docx import Document

from aria_intake.assessment_import import parser, sources
from aria_intake.assessment_import.catalog import default_catalog
from aria_intake.assessment_import.errors import UnsupportedFormatError


def test_pdf_uploads_are_read_as_raw_text_by_default(tmp_path: Path) -> None:
    pdf_path = tmp_path / "report.pdf"
    pdf_path.write_bytes(b"%PDF-1.4\nVB-MAPP report\nMand: 8\n%%EOF")
    text = sources.read_source_text(pdf_path)
    assert "Mand: 8" in text
    data = parser.parse_assessment_text(text, default_catalog())
    assert data.assessment_type == "vbmapp"
    assert [(d.name, d.raw_score) for d in data.domains] == [("Mand", "8")]


def test_byte_order_mark_is_dropped(tmp_path: Path) -> None:
    path = tmp_path / "scores.txt"
    path.write_bytes(b"\xef\xbb\xbfCommunication\t85")
    assert sources.read_source_text(path) == "Communication\t85"


def test_html_tables_become_tab_separated_lines(tmp_path: Path) -> None:
    html_path = tmp_path / "export.html"
    html_path.write_text(
        "<html><head><style>td { color: red; }</style></head><body>"
        "<h1>Vineland-3</h1>"
        "<table><tr><th>Domain</th><th>Score</th></tr>"
        "<tr><td>Communication</td><td>85</td></tr>"
        "<tr><td>Socialization</td><td>90</td></tr></table>"
        "</body></html>",
        encoding="utf-8",
    )
    text = sources.read_source_text(html_path)
    assert text.splitlines() == [
        "Vineland-3",
        "Domain\tScore",
        "Communication\t85",
        "Socialization\t90",
    ]
    data = parser.parse_assessment_text(text, default_catalog())
    assert data.assessment_type == "vineland"
    assert [(d.name, d.raw_score) for d in data.domains] == [
        ("Communication", "85"),
        ("Socialization", "90"),
    ]


def test_docx_paragraphs_and_tables(tmp_path: Path) -> None:
    docx_path = tmp_path / "summary.docx"
    document = Document()
    document.add_paragraph("ABLLS-R Summary")
    table = document.add_table(rows=2, cols=2)
    table.cell(0, 0).text = "Cooperation"
    table.cell(0, 1).text = "12"
    table.cell(1, 0).text = "Requests"
    table.cell(1, 1).text = "8"
    document.save(str(docx_path))

    text = sources.read_source_text(docx_path)
    assert "Cooperation\t12" in text.splitlines()
    data = parser.parse_assessment_text(text, default_catalog())
    assert data.assessment_type == "ablls-r"
    assert [(d.name, d.raw_score) for d in data.domains] == [
        ("Cooperation", "12"),
        ("Requests", "8"),
    ]


def test_unsupported_extension(tmp_path: Path) -> None:
    path = tmp_path / "scores.xlsx"
    path.write_bytes(b"PK\x03\x04")
    with pytest.raises(UnsupportedFormatError):
        sources.read_source_text(path)


def test_unknown_pdf_mode(tmp_path: Path) -> None:
    path = tmp_path / "report.pdf"
    path.write_bytes(b"%PDF-1.4")
    with pytest.raises(ValueError):
        sources.read_source_text(path, pdf_mode="ocr")


def test_extract_reports_failure_when_no_backend_succeeds(tmp_path: Path) -> None:
    path = tmp_path / "report.pdf"
    path.write_bytes(b"%PDF-1.4\n%%EOF")
    text, meta = sources.extract_pdf_text(path, prefer_backends=["nope"])
    assert text == ""
    assert meta["backend"] == "none"
    assert meta["error"] == "unknown backend: nope"
    assert meta["bytes"] == len(b"%PDF-1.4\n%%EOF")


def test_pdf_settings_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(sources.PDF_BACKENDS_ENV, "pdfminer, pypdf,pdfminer")
    assert sources.resolve_pdf_backends(None) == ["pdfminer", "pypdf"]
    assert sources.resolve_pdf_backends(["pypdf"]) == ["pypdf"]
    monkeypatch.delenv(sources.PDF_BACKENDS_ENV)
    assert sources.resolve_pdf_backends(None) == sources.DEFAULT_PDF_BACKENDS
    monkeypatch.setenv(sources.MIN_PDF_CHARS_ENV, "120")
    assert sources.resolve_min_pdf_chars(None) == 120
    assert sources.resolve_min_pdf_chars(10) == 10


def test_iter_supported_files_skips_hidden_and_output_dirs(tmp_path: Path) -> None:
    (tmp_path / "a.txt").write_text("x", encoding="utf-8")
    (tmp_path / "nested").mkdir()
    (tmp_path / "nested" / "b.html").write_text("x", encoding="utf-8")
    (tmp_path / "_import").mkdir()
    (tmp_path / "_import" / "c.txt").write_text("x", encoding="utf-8")
    (tmp_path / ".cache").mkdir()
    (tmp_path / ".cache" / "d.txt").write_text("x", encoding="utf-8")
    (tmp_path / "e.xlsx").write_text("x", encoding="utf-8")
    found = [path.relative_to(tmp_path).as_posix() for path in sources.iter_supported_files(tmp_path)]
    assert found == ["a.txt", "nested/b.html"]


def test_scan_directory_statuses(tmp_path: Path) -> None:
    (tmp_path / "a.txt").write_text("Communication\t85\nSocial Skills\t72", encoding="utf-8")
    (tmp_path / "b.csv").write_text("Domain,Score\nMand,8", encoding="utf-8")
    (tmp_path / "c.docx").write_bytes(b"not a zip archive")
    results, files = parser.scan_directory(tmp_path, tmp_path, default_catalog())
    assert sorted(files) == ["a.txt", "b.csv", "c.docx"]
    assert files["a.txt"].status == parser.STATUS_PARSED
    assert files["a.txt"].domain_count == 2
    assert len(files["a.txt"].sha256) == 64
    assert files["b.csv"].status == parser.STATUS_EMPTY
    assert files["c.docx"].status == parser.STATUS_ERROR
    assert files["c.docx"].error
    assert sorted(results) == ["a.txt", "b.csv"]


def test_html_keeps_paragraphs_and_rows_in_document_order(tmp_path: Path) -> None:
    html_path = tmp_path / "mixed.html"
    html_path.write_text(
        "<p>Mand: 1</p><table><tr><td>Tact</td><td>2</td></tr></table><p>Social Skills: 3</p>",
        encoding="utf-8",
    )
    text = sources.read_source_text(html_path)
    assert text.splitlines() == ["Mand: 1", "Tact\t2", "Social Skills: 3"]
    data = parser.parse_assessment_text(text, default_catalog())
    assert [d.name for d in data.domains] == ["Mand", "Tact", "Social Skills"]


def test_failed_pdf_repair_is_attempted_once(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    path = tmp_path / "broken.pdf"
    path.write_bytes(b"%PDF-1.4\n%%EOF")
    attempts: list[Path] = []

    def failing_repair(source: Path, temp_dir: Path) -> Path:
        attempts.append(source)
        raise RuntimeError("pikepdf unavailable")

    monkeypatch.setattr(sources, "_repair_pdf_with_pikepdf", failing_repair)
    text, meta = sources.extract_pdf_text(
        path, prefer_backends=["pikepdf+pypdf", "pikepdf+pdfminer"]
    )
    assert text == ""
    assert attempts == [path]
    assert meta["error"] == "pikepdf unavailable"
    assert meta["warnings"] == [
        "pikepdf+pypdf: repair failed: pikepdf unavailable",
        "pikepdf+pdfminer: repair failed: pikepdf unavailable",
    ]


def test_scan_records_file_that_vanishes_after_read(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    (tmp_path / "a.txt").write_text("Communication\t85", encoding="utf-8")
    (tmp_path / "gone.txt").write_text("Tact: 5", encoding="utf-8")
    original_read_bytes = Path.read_bytes

    def read_then_remove(self: Path) -> bytes:
        data = original_read_bytes(self)
        if self.name == "gone.txt":
            self.unlink()
        return data

    monkeypatch.setattr(Path, "read_bytes", read_then_remove)
    results, files = parser.scan_directory(tmp_path, tmp_path, default_catalog())
    assert files["a.txt"].status == parser.STATUS_PARSED
    assert files["gone.txt"].status == parser.STATUS_ERROR
    assert files["gone.txt"].error
    assert sorted(results) == ["a.txt"]
