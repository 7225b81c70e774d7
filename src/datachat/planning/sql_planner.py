"""LLM-backed SQL planning: prompt, parse, and map to a typed plan."""

from __future__ import annotations

import asyncio
import json
import re
from typing import Literal

from pydantic import BaseModel, ValidationError

from datachat.config.constants import PLAN_FAILURE_MESSAGE, RESULTS_PLACEHOLDER
from datachat.exceptions import PlanParseError
from datachat.generation.prompt_templates import SQL_PLANNER_PROMPT, format_history
from datachat.models.domain import (
    DirectPlan,
    FailedPlan,
    OutOfContextPlan,
    Outcome,
    Query,
    QueryPlan,
    SQLPlan,
)
from datachat.observability.logger import get_logger
from datachat.protocols.llm import LLMProvider

logger = get_logger("sql_planner")

_CODE_FENCE = re.compile(r"```[a-zA-Z]*\s*")
_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")

OUT_OF_CONTEXT_MESSAGE = (
    "Mohon maaf, saya hanya dapat membantu pertanyaan seputar data absensi, "
    "tiket pekerjaan, dan gangguan pelanggan."
)


class PlanPayload(BaseModel):
    status: Literal["success", "out_of_context", "unclear", "greeting", "error"] = "success"
    query: str | None = None
    response_type: Literal["direct", "analysis"] = "direct"
    message: str | None = None
    text_template: str | None = None


def parse_plan(text: str) -> PlanPayload:
    cleaned = _CODE_FENCE.sub("", text.strip())
    match = _JSON_OBJECT.search(cleaned)
    if not match:
        raise PlanParseError("No JSON object found in planner response")
    try:
        return PlanPayload.model_validate(json.loads(match.group(0)))
    except (json.JSONDecodeError, ValidationError) as e:
        raise PlanParseError(f"Invalid planner JSON: {e}") from e


def to_plan(payload: PlanPayload) -> SQLPlan:
    query = (payload.query or "").strip()
    if payload.status == "out_of_context":
        return OutOfContextPlan(direct_message=payload.message or OUT_OF_CONTEXT_MESSAGE)
    if payload.status == "error":
        return FailedPlan(direct_message=PLAN_FAILURE_MESSAGE, reason=payload.message or "planner error")
    if payload.status == "success" and query:
        return QueryPlan(
            query_text=query,
            response_template=payload.text_template or RESULTS_PLACEHOLDER,
            needs_analysis=payload.response_type == "analysis",
        )
    return DirectPlan(direct_message=payload.message or PLAN_FAILURE_MESSAGE)


class SQLPlanner:
    def __init__(self, llm: LLMProvider, timeout: float = 60.0, row_limit: int = 50) -> None:
        self._llm = llm
        self._timeout = timeout
        self._row_limit = row_limit

    def build_prompt(self, query: Query, schema_context: str, retrieved_context: str) -> str:
        return SQL_PLANNER_PROMPT.format(
            schema_context=schema_context,
            retrieved_context=retrieved_context,
            history=format_history(query.history),
            row_limit=self._row_limit,
            question=query.raw_text,
        )

    async def plan(
        self, query: Query, schema_context: str, retrieved_context: str
    ) -> Outcome[SQLPlan]:
        return await self.plan_from_prompt(
            self.build_prompt(query, schema_context, retrieved_context)
        )

    async def plan_from_prompt(self, prompt: str) -> Outcome[SQLPlan]:
        try:
            raw = await asyncio.wait_for(
                self._llm.generate(prompt, temperature=0.0), timeout=self._timeout
            )
            plan = to_plan(parse_plan(raw))
        except asyncio.TimeoutError:
            logger.warning("plan_timeout", timeout_s=self._timeout)
            return Outcome.fallback(
                FailedPlan(direct_message=PLAN_FAILURE_MESSAGE, reason="timeout"), "planner timed out"
            )
        except Exception as e:
            logger.warning("plan_failed", error=str(e), error_type=type(e).__name__)
            return Outcome.fallback(
                FailedPlan(direct_message=PLAN_FAILURE_MESSAGE, reason=str(e)), f"planner failed: {e}"
            )

        logger.info("plan_generated", status=plan.status, needs_execution=plan.needs_execution)
        if isinstance(plan, FailedPlan):
            return Outcome.fallback(plan, plan.reason)
        return Outcome.real(plan)
