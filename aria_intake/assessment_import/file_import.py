"""Importers for structured client, score, goal and reassessment files."""
from __future__ import annotations

import base64
import json
import mimetypes
import re
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from .errors import ImportFormatError, UnsupportedFormatError
from .normalize import domain_key, leading_int, now_iso
from .sources import read_raw_text

REASSESSMENT_IMPORT_TYPES = ("scores", "progress", "graphs")
GRAPH_EXTENSIONS = {"png", "jpg", "jpeg"}

CLIENT_JSON_FIELDS: dict[str, tuple[str, ...]] = {
    "firstName": ("firstName", "first_name"),
    "lastName": ("lastName", "last_name"),
    "dateOfBirth": ("dateOfBirth", "dob", "date_of_birth"),
    "diagnosis": ("diagnosis",),
    "insuranceProvider": ("insuranceProvider", "insurance"),
    "insuranceId": ("insuranceId", "policy_number", "member_id"),
    "guardianName": ("guardianName", "parent_name"),
    "guardianPhone": ("guardianPhone", "phone"),
    "guardianEmail": ("guardianEmail", "email"),
}

CLIENT_CSV_HEADERS: dict[str, tuple[str, ...]] = {
    "firstName": ("firstname", "first_name", "first name"),
    "lastName": ("lastname", "last_name", "last name"),
    "dateOfBirth": ("dob", "dateofbirth", "date_of_birth", "birthdate"),
    "diagnosis": ("diagnosis", "dx"),
    "insuranceProvider": ("insurance", "insuranceprovider", "payer"),
    "insuranceId": ("insuranceid", "policy", "member_id", "memberid"),
    "guardianName": ("guardian", "parent", "guardianname", "parent_name"),
    "guardianPhone": ("phone", "guardianphone", "contact"),
    "guardianEmail": ("email", "guardianemail", "contact_email"),
}

CLIENT_TEXT_PATTERNS: dict[str, re.Pattern[str]] = {
    "firstName": re.compile(r"(?:First Name|Name):\s*([A-Za-z]+)", re.IGNORECASE | re.ASCII),
    "lastName": re.compile(r"(?:Last Name|Surname):\s*([A-Za-z]+)", re.IGNORECASE | re.ASCII),
    "dateOfBirth": re.compile(
        r"(?:DOB|Date of Birth):\s*(\d{1,2}[-/]\d{1,2}[-/]\d{2,4})", re.IGNORECASE | re.ASCII
    ),
    "diagnosis": re.compile(r"(?:Diagnosis|Dx):\s*([^\n]+)", re.IGNORECASE | re.ASCII),
    "insuranceProvider": re.compile(r"(?:Insurance|Payer):\s*([^\n]+)", re.IGNORECASE | re.ASCII),
    "insuranceId": re.compile(r"(?:Policy|Member ID|Insurance ID):\s*([^\n]+)", re.IGNORECASE | re.ASCII),
}

TEXT_SCORE_RE = re.compile(r"([A-Z][a-z\s]+):\s*(\d+)(?:/(\d+))?", re.ASCII)
REASSESSMENT_DATE_RE = re.compile(
    r"(?:Date|Assessment Date):\s*(\d{1,2}[-/]\d{1,2}[-/]\d{2,4})", re.IGNORECASE | re.ASCII
)
PROGRESS_NUMBER_PATTERNS: dict[str, re.Pattern[str]] = {
    "goalsMetCount": re.compile(r"Goals?\s+Met:\s*(\d+)", re.IGNORECASE | re.ASCII),
    "goalsContinuedCount": re.compile(r"Goals?\s+Continued:\s*(\d+)", re.IGNORECASE | re.ASCII),
    "newGoalsCount": re.compile(r"New\s+Goals?:\s*(\d+)", re.IGNORECASE | re.ASCII),
}
PROGRESS_SUMMARY_RE = re.compile(
    r"(?:Progress\s+Summary|Overall\s+Progress):\s*([^\n]+(?:\n(?!\w+:)[^\n]+)*)",
    re.IGNORECASE | re.ASCII,
)


def file_type(path: Path) -> str:
    return path.suffix.lower().lstrip(".")


def load_json(path: Path) -> Any:
    try:
        return json.loads(read_raw_text(path))
    except json.JSONDecodeError as exc:
        raise ImportFormatError(f"Invalid JSON format in {path.name}: {exc}") from exc


def load_json_object(path: Path) -> Mapping[str, Any]:
    data = load_json(path)
    if not isinstance(data, Mapping):
        raise ImportFormatError(f"Expected a JSON object in {path.name}")
    return data


def parse_csv_rows(text: str) -> list[list[str]]:
    """Split CSV text into trimmed cells; quoting is not interpreted."""

    return [[cell.strip() for cell in line.split(",")] for line in text.split("\n")]


def _first_value(data: Mapping[str, Any], keys: Iterable[str], default: Any = "") -> Any:
    for key in keys:
        value = data.get(key)
        if value:
            return value
    return default


def _cell(row: list[str], index: int) -> str:
    return row[index] if index < len(row) else ""


def _search(pattern: re.Pattern[str], text: str) -> str:
    match = pattern.search(text)
    return match.group(1).strip() if match else ""


def parse_client_data_file(path: Path) -> dict[str, Any]:
    kind = file_type(path)
    if kind == "json":
        data = load_json_object(path)
        return {field: _first_value(data, keys) for field, keys in CLIENT_JSON_FIELDS.items()}

    if kind == "csv":
        rows = parse_csv_rows(read_raw_text(path))
        if len(rows) < 2:
            raise ImportFormatError("CSV file must have header and data rows")
        headers = [header.lower() for header in rows[0]]
        values = rows[1]

        def find_value(keys: Iterable[str]) -> str:
            for key in keys:
                if key in headers:
                    return _cell(values, headers.index(key))
            return ""

        return {field: find_value(keys) for field, keys in CLIENT_CSV_HEADERS.items()}

    if kind in {"txt", "pdf"}:
        text = read_raw_text(path)
        return {field: _search(pattern, text) for field, pattern in CLIENT_TEXT_PATTERNS.items()}

    raise UnsupportedFormatError("Unsupported file format")


def parse_assessment_data_file(path: Path) -> dict[str, Any]:
    kind = file_type(path)
    if kind == "json":
        data = load_json_object(path)
        return {
            "ablsScores": _first_value(data, ("ablsScores", "abls"), {}),
            "vbmappScores": _first_value(data, ("vbmappScores", "vbmapp"), {}),
            "efl": data.get("efl") or {},
            "barriers": data.get("barriers") or {},
            "transitionSkills": data.get("transitionSkills") or {},
        }

    if kind == "csv":
        scores: dict[str, dict[str, Any]] = {"ablsScores": {}, "vbmappScores": {}}
        # Rows: Domain, Score, Percentile
        for row in parse_csv_rows(read_raw_text(path))[1:]:
            domain, score, percentile = _cell(row, 0), _cell(row, 1), _cell(row, 2)
            if domain and score:
                scores["ablsScores"][domain_key(domain)] = {
                    "raw": leading_int(score),
                    "percentile": leading_int(percentile),
                }
        return scores

    raise UnsupportedFormatError("Unsupported file format")


def parse_goals_file(path: Path) -> list[Any]:
    kind = file_type(path)
    if kind == "json":
        data = load_json(path)
        return data if isinstance(data, list) else [data]

    if kind == "csv":
        goals: list[dict[str, str]] = []
        # Rows: Domain, Goal, Baseline, Target
        for row in parse_csv_rows(read_raw_text(path))[1:]:
            domain, goal = _cell(row, 0), _cell(row, 1)
            if domain and goal:
                goals.append(
                    {
                        "domain": domain,
                        "goal": goal,
                        "baseline": _cell(row, 2),
                        "target": _cell(row, 3),
                    }
                )
        return goals

    raise UnsupportedFormatError("Unsupported file format")


def _graph_entry(path: Path) -> dict[str, Any]:
    mime_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    encoded = base64.b64encode(path.read_bytes()).decode("ascii")
    return {
        "name": path.name,
        "url": f"data:{mime_type};base64,{encoded}",
        "uploadedAt": now_iso(),
    }


def _reassessment_scores_from_csv(text: str) -> dict[str, Any]:
    domains: list[dict[str, Any]] = []
    # Rows: Domain, Score, MaxScore, Notes
    for row in parse_csv_rows(text)[1:]:
        domain, score = _cell(row, 0), _cell(row, 1)
        if domain and score:
            domains.append(
                {
                    "domain": domain.strip(),
                    "score": leading_int(score),
                    "maxScore": leading_int(_cell(row, 2), 100),
                    "notes": _cell(row, 3).strip(),
                }
            )
    return {"domains": domains}


def _reassessment_progress_from_csv(text: str) -> dict[str, Any]:
    rows = parse_csv_rows(text)

    def find_value(key: str) -> str:
        for row in rows:
            if key.lower() in _cell(row, 0).lower():
                return _cell(row, 1)
        return ""

    return {
        "goalsMetCount": leading_int(find_value("goals met")),
        "goalsContinuedCount": leading_int(find_value("goals continued")),
        "newGoalsCount": leading_int(find_value("new goals")),
        "progressSummary": find_value("summary") or find_value("progress"),
    }


def _reassessment_scores_from_text(text: str) -> dict[str, Any]:
    domains = [
        {
            "domain": match.group(1).strip(),
            "score": leading_int(match.group(2)),
            "maxScore": leading_int(match.group(3), 100),
            "notes": "",
        }
        for match in TEXT_SCORE_RE.finditer(text)
    ]
    result: dict[str, Any] = {"reassessmentDate": _search(REASSESSMENT_DATE_RE, text)}
    if domains:
        result["domains"] = domains
    return result


def _reassessment_progress_from_text(text: str) -> dict[str, Any]:
    result: dict[str, Any] = {
        field: leading_int(_search(pattern, text))
        for field, pattern in PROGRESS_NUMBER_PATTERNS.items()
    }
    result["progressSummary"] = _search(PROGRESS_SUMMARY_RE, text)
    return result


def parse_reassessment_data_file(path: Path, import_type: str) -> dict[str, Any]:
    if import_type not in REASSESSMENT_IMPORT_TYPES:
        raise ValueError(f"unknown reassessment import type: {import_type}")
    kind = file_type(path)

    if import_type == "graphs" and kind in GRAPH_EXTENSIONS:
        return {"graphImages": [_graph_entry(path)]}

    if import_type == "scores" and kind == "json":
        data = load_json_object(path)
        return {
            "domains": data.get("domains") or [],
            "reassessmentDate": _first_value(data, ("reassessmentDate", "date")),
            "reassessmentType": _first_value(data, ("reassessmentType", "type")),
            "revisedHoursRecommended": _first_value(
                data, ("revisedHoursRecommended", "hours"), 0
            ),
        }

    if import_type == "scores" and kind == "csv":
        return _reassessment_scores_from_csv(read_raw_text(path))

    if import_type == "progress" and kind == "json":
        data = load_json_object(path)
        return {
            "progressSummary": _first_value(data, ("progressSummary", "summary")),
            "goalsMetCount": _first_value(data, ("goalsMetCount", "goalsMet"), 0),
            "goalsContinuedCount": _first_value(data, ("goalsContinuedCount", "goalsContinued"), 0),
            "newGoalsCount": _first_value(data, ("newGoalsCount", "newGoals"), 0),
            "hoursJustification": _first_value(data, ("hoursJustification", "justification")),
        }

    if import_type == "progress" and kind == "csv":
        return _reassessment_progress_from_csv(read_raw_text(path))

    if kind in {"pdf", "txt"}:
        text = read_raw_text(path)
        if import_type == "scores":
            return _reassessment_scores_from_text(text)
        if import_type == "progress":
            return _reassessment_progress_from_text(text)

    raise UnsupportedFormatError(f"Unsupported file format for {import_type} import")
