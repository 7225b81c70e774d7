"""Read-only safety gate for generated SQL."""

from __future__ import annotations

import re

from datachat.exceptions import SQLValidationError
from datachat.models.domain import ValidationResult

# One left-to-right pass: comments and literals are matched in source order,
# so quotes inside comments and comment markers inside literals stay inert.
_LEXEMES = re.compile(
    r"(?P<comment>--[^\n]*|/\*.*?\*/)"
    r"|(?P<single>'(?:[^']|'')*')"
    r'|(?P<double>"(?:[^"]|"")*")',
    re.S,
)
_BLANKS = {"comment": " ", "single": "''", "double": '""'}

_FORBIDDEN = re.compile(
    r"\b(DROP|DELETE|UPDATE|INSERT|ALTER|CREATE|TRUNCATE|GRANT|REVOKE)\b|\bSET\s+ROLE\b",
    re.I,
)
_LEADING = re.compile(r"^\(*\s*(SELECT|WITH)\b", re.I)
_SELECT = re.compile(r"\bSELECT\b", re.I)


def strip_literals(sql: str) -> str:
    """Blank out comments, string literals and quoted identifiers."""
    return _LEXEMES.sub(lambda m: _BLANKS[m.lastgroup], sql)


def validate(sql: str | None) -> ValidationResult:
    if not sql or not sql.strip():
        return ValidationResult(False, "Query kosong")

    inspected = strip_literals(sql).strip()
    if inspected.endswith(";"):
        inspected = inspected[:-1].rstrip()
    if ";" in inspected:
        return ValidationResult(False, "Hanya satu pernyataan yang diizinkan")

    forbidden = _FORBIDDEN.search(inspected)
    if forbidden:
        return ValidationResult(
            False, f"Query mengandung operasi yang tidak diizinkan: {forbidden.group(0).upper()}"
        )

    leading = _LEADING.match(inspected)
    if not leading:
        return ValidationResult(False, "Hanya query SELECT yang diizinkan")
    if leading.group(1).upper() == "WITH" and not _SELECT.search(inspected):
        return ValidationResult(False, "Hanya query SELECT yang diizinkan")

    return ValidationResult(True)


def ensure_read_only(sql: str | None) -> str:
    """Return the statement unchanged or raise SQLValidationError."""
    result = validate(sql)
    if not result.valid:
        raise SQLValidationError(result.error)
    return sql
