"""Protocol for named-collection vector stores."""

from __future__ import annotations

from typing import Protocol

from datachat.models.domain import VectorHit


class VectorStore(Protocol):
    async def search(
        self, collection: str, vector: list[float], k: int
    ) -> list[VectorHit]: ...

    async def ensure_collection(self, name: str) -> None: ...

    async def upsert(
        self, collection: str, points: list[tuple[str, list[float], dict]]
    ) -> None: ...

    def collection_sizes(self) -> dict[str, int]: ...
