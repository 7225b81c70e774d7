"""Async PostgreSQL access through SQLAlchemy (asyncpg driver)."""

from __future__ import annotations

from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from datachat.exceptions import DatabaseQueryError, DatabaseUnavailable, DataChatError
from datachat.models.domain import QueryRows
from datachat.observability.logger import get_logger

logger = get_logger("database")


class SQLAlchemyDatabase:
    """Read-only query adapter.

    Every statement runs in its own read-only transaction that is rolled back
    when the connection returns to the pool.
    """

    def __init__(
        self,
        database_url: str,
        schemas: list[str] | None = None,
        pool_size: int = 5,
        engine: AsyncEngine | None = None,
    ) -> None:
        self._engine = engine or create_async_engine(
            database_url, pool_size=pool_size, pool_pre_ping=True
        )
        quoted = ", ".join(f'"{s}"' for s in (schemas or ["public"]))
        self._search_path_sql = f"SET search_path TO {quoted}"

    async def query(self, sql: str, params: dict[str, Any] | None = None) -> QueryRows:
        try:
            conn = await self._engine.connect()
        except (OSError, SQLAlchemyError) as e:
            raise DatabaseUnavailable(f"Database connection failed: {e}") from e

        try:
            await conn.exec_driver_sql("SET TRANSACTION READ ONLY")
            await conn.exec_driver_sql(self._search_path_sql)
            if params:
                result = await conn.execute(text(sql), params)
            else:
                result = await conn.exec_driver_sql(sql)
            rows = [dict(row) for row in result.mappings().all()]
        except SQLAlchemyError as e:
            cause = getattr(e, "orig", None) or e
            raise DatabaseQueryError(str(cause)) from e
        finally:
            await conn.close()

        return QueryRows(rows=rows, row_count=len(rows))

    async def ping(self) -> bool:
        try:
            await self.query("SELECT 1 AS ok")
            return True
        except DataChatError as e:
            logger.warning("database_ping_failed", error=str(e))
            return False

    async def dispose(self) -> None:
        await self._engine.dispose()
        logger.info("database_disposed")
