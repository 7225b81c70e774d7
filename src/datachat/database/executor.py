"""Validated, time-bounded execution of generated SQL."""

from __future__ import annotations

import asyncio

from datachat.database.sql_guard import ensure_read_only
from datachat.exceptions import DatabaseQueryError, DatabaseUnavailable, SQLValidationError
from datachat.models.domain import ExecutionResult, Outcome
from datachat.observability.logger import get_logger
from datachat.protocols.database import Database

logger = get_logger("executor")


def demo_result(sql: str) -> ExecutionResult:
    """Placeholder rows used when no database is reachable."""
    if "COUNT" in sql.upper():
        rows = [{"total": 15, "count": 15}]
    elif "users" in sql:
        rows = [
            {"id": 1, "name": "John Doe", "email": "john@example.com"},
            {"id": 2, "name": "Jane Smith", "email": "jane@example.com"},
        ]
    else:
        rows = [{"message": "Demo data", "query": sql}]
    return ExecutionResult(success=True, rows=rows, row_count=len(rows))


class QueryExecutor:
    def __init__(
        self,
        database: Database | None,
        timeout: float = 15.0,
        max_rows: int = 50,
    ) -> None:
        self._db = database
        self._timeout = timeout
        self._max_rows = max_rows

    async def execute(self, sql: str) -> Outcome[ExecutionResult]:
        try:
            ensure_read_only(sql)
        except SQLValidationError as e:
            logger.warning("sql_rejected", error=str(e))
            return Outcome.real(ExecutionResult(success=False, error_message=str(e)))

        if self._db is None:
            logger.info("sql_demo_mode", reason="no database configured")
            return Outcome.fallback(demo_result(sql), "no database configured")

        try:
            result = await asyncio.wait_for(self._db.query(sql), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.warning("sql_timeout", timeout_s=self._timeout)
            return Outcome.fallback(demo_result(sql), "database query timed out")
        except DatabaseUnavailable as e:
            logger.warning("sql_database_unavailable", error=str(e))
            return Outcome.fallback(demo_result(sql), "database unavailable")
        except DatabaseQueryError as e:
            logger.warning("sql_execution_failed", error=str(e))
            return Outcome.real(ExecutionResult(success=False, error_message=str(e)))

        logger.info("sql_executed", row_count=result.row_count)
        return Outcome.real(
            ExecutionResult(
                success=True,
                rows=result.rows[: self._max_rows],
                row_count=result.row_count,
            )
        )
