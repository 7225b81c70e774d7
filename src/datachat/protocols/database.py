"""Protocol for the read-only relational database adapter."""

from __future__ import annotations

from typing import Any, Protocol

from datachat.models.domain import QueryRows


class Database(Protocol):
    async def query(self, sql: str, params: dict[str, Any] | None = None) -> QueryRows: ...

    async def ping(self) -> bool: ...

    async def dispose(self) -> None: ...
