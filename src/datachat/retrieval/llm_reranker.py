"""Optional model-based context selection with a deterministic fallback."""

from __future__ import annotations

import asyncio

from datachat.config.constants import LLM_RERANK_NONE, NO_CONTEXT_SENTINEL
from datachat.generation.prompt_templates import LLM_RERANK_PROMPT, format_history
from datachat.models.domain import Query, RerankResult, RetrievedChunk
from datachat.observability.logger import get_logger
from datachat.protocols.llm import LLMProvider
from datachat.retrieval.reranker import KeywordReranker

logger = get_logger("llm_reranker")


class LLMReranker:
    """Asks the model to quote the relevant chunks verbatim.

    Any model failure falls back to the keyword reranker, so this never
    raises past its boundary.
    """

    def __init__(
        self,
        llm: LLMProvider,
        fallback: KeywordReranker,
        timeout: float = 30.0,
    ) -> None:
        self._llm = llm
        self._fallback = fallback
        self._timeout = timeout

    async def rerank(
        self,
        query: Query,
        chunks: list[RetrievedChunk],
        top_k: int = 3,
        min_score: float = 0.15,
    ) -> RerankResult:
        if not chunks:
            return RerankResult(selected=[], context=NO_CONTEXT_SENTINEL)

        # Scores are still computed so metrics and logs stay comparable.
        scored = self._fallback.rerank(query.raw_text, chunks, top_k=top_k, min_score=min_score)

        chunk_text = "\n".join(
            f"--- Chunk {i + 1}: {c.title} ---\n{c.content}\n---" for i, c in enumerate(chunks)
        )
        prompt = LLM_RERANK_PROMPT.format(
            none_marker=LLM_RERANK_NONE,
            history=format_history(query.history),
            question=query.raw_text,
            chunks=chunk_text,
        )
        try:
            text = await asyncio.wait_for(self._llm.generate(prompt, temperature=0.0), self._timeout)
        except Exception as e:
            logger.warning("llm_rerank_failed", error=str(e))
            return scored

        text = text.strip()
        if not text or text.strip('"') == LLM_RERANK_NONE:
            logger.info("llm_rerank_no_context")
            return RerankResult(selected=[], context=NO_CONTEXT_SENTINEL, scored=scored.scored)

        logger.info("llm_rerank_complete", context_chars=len(text))
        return RerankResult(selected=scored.selected, context=text, scored=scored.scored)
