"""End-to-end tests for the streaming query pipeline with in-process fakes."""

import json

from conftest import FakeDatabase, FakeLLM, FakeVectorStore

from datachat.cache.query_cache import QueryCache
from datachat.config.constants import (
    CANCEL_MARKER,
    EXECUTION_FAILURE_MESSAGE,
    GENERIC_APOLOGY,
    PLAN_FAILURE_MESSAGE,
)
from datachat.models.domain import Query, TokenUsage
from datachat.observability.metrics import MetricsCollector
from datachat.planning.sql_planner import OUT_OF_CONTEXT_MESSAGE
from datachat.streaming.session import CancellationToken

QUESTION = "berapa total tiket yang closed bulan ini?"

TICKET_PLAN = json.dumps(
    {
        "status": "success",
        "query": "SELECT COUNT(*) AS total FROM \"SDA\".\"m_ticket\" WHERE status = 'closed'",
        "response_type": "direct",
        "text_template": "Total tiket closed: [[total]]",
    }
)


async def _run(pipeline, text, chat_id="chat-1", token=None):
    prepared = await pipeline.prepare(Query(raw_text=text, chat_id=chat_id))
    events = [e async for e in pipeline.answer(prepared, cancel_token=token)]
    return prepared, events


def _text(events):
    return "".join(e.content for e in events if e.type == "chunk")


async def test_data_query_end_to_end(pipeline_factory, message_store, ticket_hits):
    llm = FakeLLM(responses=[TICKET_PLAN])
    db = FakeDatabase(rows=[{"total": 42}])
    cache = QueryCache()
    pipeline = pipeline_factory(llm, database=db, vector_store=FakeVectorStore(ticket_hits), cache=cache)

    prepared, events = await _run(pipeline, QUESTION)

    assert [e.type for e in events] == ["start", "chunk", "complete"]
    assert _text(events) == "Total tiket closed: 42"
    assert events[-1].cached is False
    assert events[-1].token_usage["total_tokens"] > 0

    assistant = message_store.messages[prepared.assistant_message_id]
    assert assistant.content == "Total tiket closed: 42"
    assert assistant.is_streaming is False
    assert assistant.is_error is False
    assert message_store.messages[prepared.user_message_id].content == QUESTION
    assert len(message_store.updates) == 1

    assert '"SDA"."m_ticket": no_ticket' in llm.prompts[0]
    assert any("COUNT(*)" in q for q in db.queries)
    assert cache.size == 1


async def test_repeated_question_is_served_from_cache(pipeline_factory, ticket_hits):
    llm = FakeLLM(responses=[TICKET_PLAN])
    db = FakeDatabase(rows=[{"total": 42}])
    metrics = MetricsCollector()
    pipeline = pipeline_factory(
        llm, database=db, vector_store=FakeVectorStore(ticket_hits), metrics=metrics
    )

    _, first = await _run(pipeline, QUESTION)
    queries_after_first = len(db.queries)
    _, second = await _run(pipeline, "  BERAPA total tiket yang closed   bulan ini? ")

    assert _text(second) == _text(first)
    assert second[-1].cached is True
    assert second[-1].token_usage == first[-1].token_usage
    assert len(db.queries) == queries_after_first
    report = metrics.report()
    assert report["total_queries"] == 2
    assert report["cache_hit_rate"] == 0.5


async def test_cache_is_scoped_per_user(pipeline_factory, message_store, ticket_hits):
    llm = FakeLLM(responses=[TICKET_PLAN, TICKET_PLAN])
    pipeline = pipeline_factory(
        llm, database=FakeDatabase(rows=[{"total": 42}]), vector_store=FakeVectorStore(ticket_hits)
    )
    await _run(pipeline, QUESTION)
    prepared = await pipeline.prepare(Query(raw_text=QUESTION, user_id="other", chat_id="chat-2"))
    events = [e async for e in pipeline.answer(prepared)]
    assert events[-1].cached is False
    assert len(llm.prompts) == 2


async def test_general_conversation_streams_from_model(pipeline_factory, message_store):
    usage = TokenUsage(prompt_tokens=20, completion_tokens=6, total_tokens=26)
    llm = FakeLLM(stream_chunks=["Halo! ", "Ada yang bisa dibantu?"], usage=usage)
    cache = QueryCache()
    pipeline = pipeline_factory(llm, cache=cache)

    prepared, events = await _run(pipeline, "halo")

    assert [e.type for e in events] == ["start", "chunk", "chunk", "complete"]
    assert events[-1].token_usage["total_tokens"] == 26
    assert llm.prompts == []
    assert message_store.messages[prepared.assistant_message_id].content == "Halo! Ada yang bisa dibantu?"
    assert cache.size == 1


async def test_analysis_plan_narrates_rows(pipeline_factory, ticket_hits):
    plan = json.dumps(
        {"status": "success", "query": "SELECT bulan, total FROM t", "response_type": "analysis"}
    )
    llm = FakeLLM(responses=[plan], stream_chunks=["Tren naik."])
    db = FakeDatabase(rows=[{"bulan": "Jan", "total": 42}])
    pipeline = pipeline_factory(llm, database=db, vector_store=FakeVectorStore(ticket_hits))

    _, events = await _run(pipeline, "bagaimana tren tiket tahun ini?")

    assert _text(events) == "Tren naik."
    assert '"total": 42' in llm.stream_prompts[0]


async def test_rejected_sql_is_not_cached(pipeline_factory, ticket_hits):
    plan = json.dumps({"status": "success", "query": "DELETE FROM \"SDA\".\"m_ticket\""})
    db = FakeDatabase(rows=[{"total": 1}])
    cache = QueryCache()
    pipeline = pipeline_factory(
        FakeLLM(responses=[plan]), database=db, vector_store=FakeVectorStore(ticket_hits), cache=cache
    )

    _, events = await _run(pipeline, QUESTION)

    assert _text(events) == EXECUTION_FAILURE_MESSAGE
    assert events[-1].type == "complete"
    assert not any("DELETE" in q for q in db.queries)
    assert cache.size == 0


async def test_planner_failure_answers_with_apology(pipeline_factory, message_store):
    cache = QueryCache()
    pipeline = pipeline_factory(FakeLLM(), database=FakeDatabase(), cache=cache)

    prepared, events = await _run(pipeline, QUESTION)

    assert _text(events) == PLAN_FAILURE_MESSAGE
    assert message_store.messages[prepared.assistant_message_id].is_error is False
    assert cache.size == 0


async def test_out_of_context_question(pipeline_factory):
    llm = FakeLLM(responses=[json.dumps({"status": "out_of_context"})])
    pipeline = pipeline_factory(llm, database=FakeDatabase())

    _, events = await _run(pipeline, "siapa presiden pertama indonesia?")

    assert _text(events) == OUT_OF_CONTEXT_MESSAGE


async def test_demo_mode_without_database(pipeline_factory, ticket_hits):
    plan = json.dumps(
        {
            "status": "success",
            "query": "SELECT COUNT(*) FROM m_ticket",
            "text_template": "Ada [[total]] tiket",
        }
    )
    cache = QueryCache()
    pipeline = pipeline_factory(
        FakeLLM(responses=[plan]), vector_store=FakeVectorStore(ticket_hits), cache=cache
    )

    _, events = await _run(pipeline, QUESTION)

    assert _text(events) == "Ada 15 tiket"
    assert cache.size == 0


async def test_unexpected_failure_emits_error_and_persists_once(
    pipeline_factory, message_store, monkeypatch
):
    metrics = MetricsCollector()
    pipeline = pipeline_factory(FakeLLM(), database=FakeDatabase(), metrics=metrics)

    async def broken_plan(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(pipeline._planner, "plan_from_prompt", broken_plan)
    prepared, events = await _run(pipeline, QUESTION)

    assert [e.type for e in events] == ["start", "error"]
    assert events[-1].message == GENERIC_APOLOGY
    assert len(message_store.updates) == 1
    assert message_store.messages[prepared.assistant_message_id].is_error is True
    assert metrics.report()["error_rate"] == 1.0


async def test_upstream_stream_failure(pipeline_factory, message_store):
    llm = FakeLLM(stream_chunks=["Halo"], stream_error=True)
    pipeline = pipeline_factory(llm)

    prepared, events = await _run(pipeline, "halo")

    assert [e.type for e in events] == ["start", "chunk", "error"]
    stored = message_store.messages[prepared.assistant_message_id]
    assert stored.content == "Halo"
    assert stored.is_error is True


async def test_cancelled_before_planning(pipeline_factory, message_store, ticket_hits):
    llm = FakeLLM(responses=[TICKET_PLAN])
    pipeline = pipeline_factory(llm, database=FakeDatabase(), vector_store=FakeVectorStore(ticket_hits))
    token = CancellationToken()
    token.cancel("client_disconnected")

    prepared, events = await _run(pipeline, QUESTION, token=token)

    assert [e.type for e in events] == ["start"]
    assert llm.prompts == []
    stored = message_store.messages[prepared.assistant_message_id]
    assert stored.content == CANCEL_MARKER
    assert stored.is_error is True


async def test_history_is_loaded_from_store(pipeline_factory, message_store):
    await message_store.add_message("chat-9", "user", "tiket bulan lalu berapa?")
    await message_store.add_message("chat-9", "assistant", "Ada 10 tiket.")
    await message_store.add_message("chat-9", "assistant", "[Sedang memproses...]", is_streaming=True)

    pipeline = pipeline_factory(FakeLLM())
    prepared = await pipeline.prepare(Query(raw_text="kalau bulan ini?", chat_id="chat-9"))

    assert [t.content for t in prepared.query.history] == ["tiket bulan lalu berapa?", "Ada 10 tiket."]


async def test_closed_after_start_is_persisted_as_cancelled(pipeline_factory, message_store):
    metrics = MetricsCollector()
    llm = FakeLLM(responses=[TICKET_PLAN])
    pipeline = pipeline_factory(llm, database=FakeDatabase(), metrics=metrics)
    prepared = await pipeline.prepare(Query(raw_text=QUESTION, chat_id="chat-1"))

    events = pipeline.answer(prepared)
    first = await events.__anext__()
    await events.aclose()

    assert first.type == "start"
    assert llm.prompts == []
    assert len(message_store.updates) == 1
    stored = message_store.messages[prepared.assistant_message_id]
    assert stored.content == CANCEL_MARKER
    assert stored.is_streaming is False
    assert stored.is_error is True
    report = metrics.report()
    assert report["total_queries"] == 1
    assert report["error_rate"] == 0.0
