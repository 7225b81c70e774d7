"""Master query pipeline orchestrator: the online answer path."""

from __future__ import annotations

from collections.abc import AsyncGenerator, AsyncIterator
from dataclasses import dataclass, replace

from datachat.cache.query_cache import QueryCache
from datachat.config.constants import (
    EXECUTION_FAILURE_MESSAGE,
    PLACEHOLDER_TEXT,
)
from datachat.config.settings import Settings
from datachat.database.executor import QueryExecutor
from datachat.database.schema_service import SchemaService
from datachat.exceptions import StreamCancelled
from datachat.generation.answer_builder import (
    build_final_answer_prompt,
    build_general_prompt,
    fill_template,
)
from datachat.models.domain import (
    CachedAnswer,
    FailedPlan,
    HistoryTurn,
    Intent,
    PerformanceRecord,
    Query,
    QueryPlan,
    RerankResult,
    RetrievedChunk,
    StreamFragment,
    TokenUsage,
)
from datachat.models.schemas import StreamEvent
from datachat.observability.logger import get_logger
from datachat.observability.metrics import MetricsCollector
from datachat.observability.tracing import TraceContext
from datachat.planning.sql_planner import SQLPlanner
from datachat.protocols.llm import LLMProvider
from datachat.protocols.message_store import MessageStore
from datachat.query.intent import IntentClassifier
from datachat.retrieval.llm_reranker import LLMReranker
from datachat.retrieval.reranker import KeywordReranker
from datachat.retrieval.vector_retriever import VectorRetriever
from datachat.streaming.session import CancellationToken, StreamSession, StreamState

logger = get_logger("query_pipeline")


@dataclass(frozen=True)
class PreparedAnswer:
    query: Query
    user_message_id: str
    assistant_message_id: str


@dataclass
class _Answer:
    """A ready-to-stream answer plus what it cost and whether it is cacheable."""

    fragments: AsyncIterator[StreamFragment]
    prompt: str
    degraded: bool


async def _single(text: str, usage: TokenUsage | None = None) -> AsyncIterator[StreamFragment]:
    yield StreamFragment(text=text, usage=usage)


class QueryPipeline:
    def __init__(
        self,
        classifier: IntentClassifier,
        retriever: VectorRetriever,
        reranker: KeywordReranker,
        schema_service: SchemaService,
        planner: SQLPlanner,
        executor: QueryExecutor,
        llm: LLMProvider,
        message_store: MessageStore,
        cache: QueryCache,
        metrics: MetricsCollector,
        settings: Settings,
        llm_reranker: LLMReranker | None = None,
    ) -> None:
        self._classifier = classifier
        self._retriever = retriever
        self._reranker = reranker
        self._llm_reranker = llm_reranker
        self._schema = schema_service
        self._planner = planner
        self._executor = executor
        self._llm = llm
        self._store = message_store
        self._cache = cache
        self._metrics = metrics
        self._settings = settings

    async def prepare(self, query: Query) -> PreparedAnswer:
        """Persist the user turn and a streaming placeholder.

        Raises on storage failure; nothing has been streamed at that point.
        """
        if not query.history and self._settings.history_turns > 0:
            previous = await self._store.get_messages_by_chat(query.chat_id)
            turns = tuple(
                HistoryTurn(role=m.role, content=m.content)
                for m in previous
                if not m.is_streaming and not m.is_error
            )[-self._settings.history_turns :]
            query = replace(query, history=turns)

        user_message = await self._store.add_message(query.chat_id, "user", query.raw_text)
        placeholder = await self._store.add_message(
            query.chat_id, "assistant", PLACEHOLDER_TEXT, is_streaming=True
        )
        return PreparedAnswer(
            query=query,
            user_message_id=user_message.id,
            assistant_message_id=placeholder.id,
        )

    async def answer(
        self, prepared: PreparedAnswer, cancel_token: CancellationToken | None = None
    ) -> AsyncGenerator[StreamEvent, None]:
        """Yield start, chunk*, then complete or error events for one query."""
        query = prepared.query
        trace = TraceContext()
        session = StreamSession(
            self._store,
            prepared.assistant_message_id,
            cancel_token=cancel_token,
            queue_size=self._settings.stream_queue_size,
            chunk_timeout=self._settings.stream_chunk_timeout_seconds,
        )
        cache_key = QueryCache.make_key(query.raw_text, query.user_id)
        cache_hit = False
        intent: Intent | None = None
        answer: _Answer | None = None
        failed = False

        try:
            yield session.start()
            cached = self._cache.get(cache_key) if query.image is None else None
            if cached is not None:
                cache_hit = True
                intent = cached.intent
                answer = _Answer(_single(cached.content, cached.token_usage), "", degraded=False)
                logger.info("cache_hit", trace_id=trace.trace_id, chat_id=query.chat_id)
            else:
                with trace.span("intent_classification"):
                    result = self._classifier.classify(query.raw_text)
                intent = result.intent
                if intent is Intent.GENERAL_CONVERSATION:
                    answer = self._general_answer(query)
                else:
                    answer = await self._data_answer(query, trace, session.cancel_token)

            with trace.span("final_response"):
                async for event in session.stream(
                    answer.fragments, prompt=answer.prompt, cached=cache_hit
                ):
                    yield event

            if (
                not cache_hit
                and not answer.degraded
                and query.image is None
                and session.state is StreamState.COMPLETED
                and session.usage is not None
            ):
                self._cache.set(
                    cache_key,
                    CachedAnswer(content=session.content, intent=intent, token_usage=session.usage),
                )
        except StreamCancelled as e:
            logger.info(
                "answer_cancelled", trace_id=trace.trace_id, chat_id=query.chat_id, reason=str(e)
            )
        except Exception as e:
            failed = True
            logger.exception(
                "pipeline_failed",
                trace_id=trace.trace_id,
                chat_id=query.chat_id,
                error=str(e),
            )
            yield await session.fail()
        finally:
            await session.close()
            usage = session.usage
            self._metrics.record(
                PerformanceRecord(
                    tokens=usage.total_tokens if usage and not cache_hit else 0,
                    duration_ms=round(trace.elapsed_ms, 2),
                    cached=cache_hit,
                    error=failed or session.state is StreamState.ERRORED,
                    step_durations_ms=trace.step_durations(),
                )
            )
            logger.info(
                "query_answered",
                trace_id=trace.trace_id,
                chat_id=query.chat_id,
                intent=intent.value if intent else None,
                state=session.state.value,
                cached=cache_hit,
                degraded=answer.degraded if answer else None,
                failed_steps=trace.failed_steps,
                latency_ms=round(trace.elapsed_ms, 2),
            )

    def _general_answer(self, query: Query) -> _Answer:
        system, prompt = build_general_prompt(query)
        return _Answer(
            self._llm.generate_stream(prompt, system=system, image=query.image),
            prompt,
            degraded=False,
        )

    async def _data_answer(
        self, query: Query, trace: TraceContext, cancel_token: CancellationToken
    ) -> _Answer:
        s = self._settings

        with trace.span("retrieval"):
            retrieved = await self._retriever.retrieve(query.raw_text, k=s.retrieval_top_k)

        with trace.span("reranking"):
            reranked = await self._rerank(query, retrieved.value)

        cancel_token.raise_if_cancelled()

        with trace.span("sql_planning"):
            schema = await self._schema.get_schema_context()
            planner_prompt = self._planner.build_prompt(query, schema.value, reranked.context)
            planned = await self._planner.plan_from_prompt(planner_prompt)
        plan = planned.value
        degraded = retrieved.degraded or schema.degraded or planned.degraded

        logger.info(
            "data_plan_ready",
            trace_id=trace.trace_id,
            chunks=len(retrieved.value),
            context_chunks=len(reranked.selected),
            plan_status=plan.status,
            degraded=degraded,
            reasons=[o.reason for o in (retrieved, schema, planned) if o.degraded],
        )

        if not isinstance(plan, QueryPlan):
            return _Answer(
                _single(plan.direct_message),
                planner_prompt,
                degraded=degraded or isinstance(plan, FailedPlan),
            )

        cancel_token.raise_if_cancelled()

        with trace.span("sql_execution"):
            executed = await self._executor.execute(plan.query_text)
        result = executed.value
        degraded = degraded or executed.degraded

        if not result.success:
            logger.warning("data_execution_failed", trace_id=trace.trace_id, error=result.error_message)
            return _Answer(_single(EXECUTION_FAILURE_MESSAGE), planner_prompt, degraded=True)

        if plan.needs_analysis or query.image is not None:
            system, prompt = build_final_answer_prompt(query, result.rows, plan.needs_analysis)
            return _Answer(
                self._llm.generate_stream(prompt, system=system, image=query.image),
                planner_prompt + prompt,
                degraded=degraded,
            )

        return _Answer(
            _single(fill_template(plan.response_template, result.rows)),
            planner_prompt,
            degraded=degraded,
        )

    async def _rerank(self, query: Query, chunks: list[RetrievedChunk]) -> RerankResult:
        s = self._settings
        if s.llm_rerank_enabled and self._llm_reranker is not None:
            return await self._llm_reranker.rerank(
                query, chunks, top_k=s.rerank_top_k, min_score=s.rerank_min_score
            )
        return self._reranker.rerank(
            query.raw_text, chunks, top_k=s.rerank_top_k, min_score=s.rerank_min_score
        )
