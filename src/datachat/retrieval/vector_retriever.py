"""Concurrent similarity search across named vector collections."""

from __future__ import annotations

import asyncio

from datachat.models.domain import Outcome, RetrievedChunk, VectorHit
from datachat.observability.logger import get_logger
from datachat.protocols.embedder import Embedder
from datachat.protocols.vector_store import VectorStore

logger = get_logger("vector_retriever")

DEFAULT_TITLE = "General Context"


class VectorRetriever:
    def __init__(
        self,
        embedder: Embedder,
        vector_store: VectorStore,
        collections: list[str],
        embedding_timeout: float = 10.0,
        search_timeout: float = 5.0,
    ) -> None:
        self._embedder = embedder
        self._store = vector_store
        self._collections = collections
        self._embedding_timeout = embedding_timeout
        self._search_timeout = search_timeout

    async def retrieve(
        self, query_text: str, k: int = 5, collections: list[str] | None = None
    ) -> Outcome[list[RetrievedChunk]]:
        names = collections or self._collections
        if not names:
            return Outcome.fallback([], "no collections configured")

        try:
            vector = await asyncio.wait_for(
                self._embedder.embed_query(query_text), timeout=self._embedding_timeout
            )
        except asyncio.TimeoutError:
            logger.warning("embedding_timeout", timeout_s=self._embedding_timeout)
            return Outcome.fallback([], "embedding timed out")
        except Exception as e:
            logger.warning("embedding_failed", error=str(e))
            return Outcome.fallback([], f"embedding failed: {e}")

        results = await asyncio.gather(
            *(self._search_one(name, vector, k) for name in names),
            return_exceptions=True,
        )

        merged: list[RetrievedChunk] = []
        failed = 0
        for name, result in zip(names, results):
            if isinstance(result, BaseException):
                failed += 1
                logger.warning("collection_search_failed", collection=name, error=repr(result))
                continue
            merged.extend(result)

        if failed == len(names):
            return Outcome.fallback([], "all collection searches failed")

        # sorted() is stable, so equal scores keep collection order
        merged = sorted(merged, key=lambda c: c.similarity, reverse=True)[: k * len(names)]
        logger.info(
            "retrieval_complete",
            collections=len(names),
            failed=failed,
            results=len(merged),
            top_score=round(merged[0].similarity, 4) if merged else None,
        )
        return Outcome.real(merged)

    async def _search_one(self, collection: str, vector: list[float], k: int) -> list[RetrievedChunk]:
        hits = await asyncio.wait_for(
            self._store.search(collection, vector, k), timeout=self._search_timeout
        )
        return [self._to_chunk(collection, hit) for hit in hits]

    @staticmethod
    def _to_chunk(collection: str, hit: VectorHit) -> RetrievedChunk:
        payload = hit.payload or {}
        return RetrievedChunk(
            id=str(hit.id),
            title=payload.get("title") or DEFAULT_TITLE,
            content=payload.get("content") or "",
            similarity=min(1.0, max(0.0, hit.score)),
            collection=collection,
        )
