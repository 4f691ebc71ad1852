"""Normalization helpers."""
from __future__ import annotations

import re
from datetime import UTC, datetime

_COMPACT_RE = re.compile(r"[-\s]")
_WHITESPACE_RE = re.compile(r"\s+")
_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)", re.ASCII)


def now_iso() -> str:
    return datetime.now(UTC).replace(microsecond=0).isoformat()


def compact_token(value: str) -> str:
    """Lower-case ``value`` and drop hyphens and whitespace ("VB-MAPP" -> "vbmapp")."""

    return _COMPACT_RE.sub("", value.lower())


def domain_key(value: str) -> str:
    return _WHITESPACE_RE.sub("", value.lower())


def flexible_pattern(name: str) -> str:
    """Escape ``name`` for a regex, letting any run of whitespace match ``\\s*``."""

    return r"\s*".join(re.escape(word) for word in name.split())


def leading_int(value: object, default: int = 0) -> int:
    """Parse the leading integer of ``value`` ("12 pts" -> 12), else ``default``."""

    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return int(value) or default
    if value is None:
        return default
    match = _LEADING_INT_RE.match(str(value))
    if not match:
        return default
    parsed = int(match.group(1))
    return parsed or default


def limit_length(value: str, max_length: int = 40) -> str:
    if len(value) <= max_length:
        return value
    return value[: max_length - 3].rstrip() + "..."
