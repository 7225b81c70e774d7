"""Turns query results into user-facing answers and final-answer prompts."""

from __future__ import annotations

import json
import re
from decimal import Decimal
from typing import Any

from datachat.config.constants import NO_ROWS_MESSAGE, NULL_VALUE_TEXT, RESULTS_PLACEHOLDER
from datachat.generation.prompt_templates import (
    ANALYSIS_INSTRUCTION,
    ASSISTANT_PERSONA,
    DESCRIPTIVE_INSTRUCTION,
    FINAL_ANSWER_PROMPT,
    GENERAL_CHAT_PROMPT,
    IMAGE_INSTRUCTION,
    format_history,
)
from datachat.models.domain import Query

MAX_PROMPT_ROWS = 50
SUMMARY_PREVIEW_ROWS = 5

_PLACEHOLDER = re.compile(r"\[\[(\w+)\]\]")


def format_value(value: Any) -> str:
    if value is None:
        return NULL_VALUE_TEXT
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, Decimal):
        return format(value, "f")
    return str(value)


def _row_line(row: dict) -> str:
    return ", ".join(format_value(v) for v in row.values())


def fill_template(template: str | None, rows: list[dict]) -> str:
    """Render a ``[[column]]`` / ``[[results]]`` template against result rows.

    Without a usable template, a short summary of the rows is returned.
    """
    if not rows:
        return NO_ROWS_MESSAGE

    if template and RESULTS_PLACEHOLDER in template:
        listing = "\n".join(_row_line(row) for row in rows)
        return template.replace(RESULTS_PLACEHOLDER, listing)

    if template and _PLACEHOLDER.search(template):
        first = rows[0]

        def _substitute(match: re.Match) -> str:
            key = match.group(1)
            return format_value(first[key]) if key in first else match.group(0)

        return _PLACEHOLDER.sub(_substitute, template)

    if template:
        return template

    return summarize_rows(rows)


def summarize_rows(rows: list[dict]) -> str:
    if not rows:
        return NO_ROWS_MESSAGE
    if len(rows) == 1:
        row = rows[0]
        count_key = next(
            (k for k in row if "count" in k.lower() or "total" in k.lower()), None
        )
        if count_key is not None:
            return f"Hasilnya adalah: {format_value(row[count_key])}"
        pairs = ", ".join(f"{k}: {format_value(v)}" for k, v in row.items())
        return f"Ditemukan 1 data: {pairs}"
    preview = "\n".join(f"- {_row_line(row)}" for row in rows[:SUMMARY_PREVIEW_ROWS])
    return (
        f"Ditemukan {len(rows)} baris data. Berikut adalah beberapa di antaranya:\n{preview}"
    )


def format_rows_for_prompt(rows: list[dict]) -> str:
    if not rows:
        return "Tidak ada data relevan yang ditemukan untuk pertanyaan ini."
    return json.dumps(rows[:MAX_PROMPT_ROWS], indent=2, default=str, ensure_ascii=False)


def build_final_answer_prompt(query: Query, rows: list[dict], needs_analysis: bool) -> tuple[str, str]:
    """Return (system, prompt) for narrating query results."""
    has_image = query.image is not None
    prompt = FINAL_ANSWER_PROMPT.format(
        image_clause=", dan gambar yang dilampirkan" if has_image else "",
        history=format_history(query.history),
        question=query.raw_text,
        data=format_rows_for_prompt(rows),
        analysis_instruction=ANALYSIS_INSTRUCTION if needs_analysis else DESCRIPTIVE_INSTRUCTION,
        image_instruction=IMAGE_INSTRUCTION if has_image else "",
    )
    return ASSISTANT_PERSONA, prompt


def build_general_prompt(query: Query) -> tuple[str, str]:
    prompt = GENERAL_CHAT_PROMPT.format(
        history=format_history(query.history),
        question=query.raw_text,
        image_instruction=IMAGE_INSTRUCTION if query.image is not None else "",
    )
    return ASSISTANT_PERSONA, prompt
