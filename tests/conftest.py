"""Shared test fixtures and in-process fakes for external collaborators."""

from __future__ import annotations

import tempfile
from datetime import datetime, timezone
from pathlib import Path
from uuid import uuid4

import pytest

from datachat.cache.query_cache import QueryCache
from datachat.config.settings import Settings
from datachat.database.executor import QueryExecutor
from datachat.database.schema_service import SchemaService
from datachat.exceptions import DatabaseQueryError, GenerationError
from datachat.models.domain import (
    ChatMessage,
    QueryRows,
    RetrievedChunk,
    StreamFragment,
    TokenUsage,
    VectorHit,
)
from datachat.observability.metrics import MetricsCollector
from datachat.pipeline.query_pipeline import QueryPipeline
from datachat.planning.sql_planner import SQLPlanner
from datachat.query.intent import IntentClassifier
from datachat.retrieval.reranker import KeywordReranker
from datachat.retrieval.vector_retriever import VectorRetriever


class FakeEmbedder:
    def __init__(self, fail: bool = False) -> None:
        self.calls = 0
        self.fail = fail

    @property
    def dimensions(self) -> int:
        return 3

    async def embed_query(self, query: str) -> list[float]:
        self.calls += 1
        if self.fail:
            raise RuntimeError("embedding backend down")
        return [1.0, 0.0, 0.0]


class FakeVectorStore:
    def __init__(self, hits: dict[str, list[VectorHit]] | None = None) -> None:
        self.hits = hits or {}
        self.failing: set[str] = set()
        self.searches: list[str] = []

    async def search(self, collection: str, vector: list[float], k: int) -> list[VectorHit]:
        self.searches.append(collection)
        if collection in self.failing:
            raise RuntimeError(f"{collection} unavailable")
        return self.hits.get(collection, [])[:k]

    async def ensure_collection(self, name: str) -> None:
        self.hits.setdefault(name, [])

    async def upsert(self, collection: str, points: list[tuple[str, list[float], dict]]) -> None:
        self.hits.setdefault(collection, []).extend(
            VectorHit(id=pid, score=1.0, payload=payload) for pid, _, payload in points
        )

    def collection_sizes(self) -> dict[str, int]:
        return {name: len(h) for name, h in self.hits.items()}


class FakeLLM:
    """Returns queued responses from generate() and fixed chunks from generate_stream()."""

    def __init__(
        self,
        responses: list[str] | None = None,
        stream_chunks: list[str] | None = None,
        usage: TokenUsage | None = None,
        stream_error: bool = False,
    ) -> None:
        self.responses = list(responses or [])
        self.stream_chunks = list(stream_chunks or [])
        self.usage = usage
        self.stream_error = stream_error
        self.prompts: list[str] = []
        self.stream_prompts: list[str] = []

    async def generate(self, prompt, system=None, temperature=0.1, max_tokens=4096) -> str:
        self.prompts.append(prompt)
        if not self.responses:
            raise GenerationError("no scripted response")
        return self.responses.pop(0)

    async def generate_stream(self, prompt, system=None, image=None):
        self.stream_prompts.append(prompt)
        for chunk in self.stream_chunks:
            yield StreamFragment(text=chunk)
        if self.stream_error:
            raise GenerationError("stream broke")
        if self.usage is not None:
            yield StreamFragment(text="", usage=self.usage)


class FakeDatabase:
    def __init__(self, rows: list[dict] | None = None, error: Exception | None = None) -> None:
        self.rows = rows or []
        self.error = error
        self.queries: list[str] = []

    async def query(self, sql: str, params: dict | None = None) -> QueryRows:
        self.queries.append(sql)
        if self.error is not None:
            raise self.error
        if "information_schema" in sql:
            return QueryRows(rows=[], row_count=0)
        return QueryRows(rows=list(self.rows), row_count=len(self.rows))

    async def ping(self) -> bool:
        return self.error is None

    async def dispose(self) -> None:
        return None


class InMemoryMessageStore:
    def __init__(self) -> None:
        self.messages: dict[str, ChatMessage] = {}
        self.updates: list[dict] = []
        self.fail_on_add = False

    async def add_message(self, chat_id, role, content, image_url=None, is_streaming=False):
        if self.fail_on_add:
            raise RuntimeError("storage offline")
        message = ChatMessage(
            id=str(uuid4()),
            chat_id=chat_id,
            role=role,
            content=content,
            image_url=image_url,
            is_streaming=is_streaming,
        )
        self.messages[message.id] = message
        return message

    async def update_message(
        self, message_id, content, is_streaming=False, is_error=False, token_usage=None
    ):
        self.updates.append(
            {
                "message_id": message_id,
                "content": content,
                "is_streaming": is_streaming,
                "is_error": is_error,
                "token_usage": token_usage,
            }
        )
        message = self.messages.get(message_id)
        if message is not None:
            message.content = content
            message.is_streaming = is_streaming
            message.is_error = is_error
            message.token_usage = token_usage
            message.updated_at = datetime.now(timezone.utc)

    async def get_messages_by_chat(self, chat_id):
        return [m for m in self.messages.values() if m.chat_id == chat_id]


@pytest.fixture
def settings():
    """Test settings with temp paths and no real database."""
    tmp = tempfile.mkdtemp()
    return Settings(
        google_api_key="test-key",
        openai_api_key="test-key",
        database_url="",
        message_db_path=str(Path(tmp) / "messages.db"),
        vector_store_path=str(Path(tmp) / "collections"),
        retrieval_collections="schema_context,aggregated_insights",
        stream_chunk_timeout_seconds=2.0,
    )


@pytest.fixture
def tmp_dir():
    return tempfile.mkdtemp()


@pytest.fixture
def message_store():
    return InMemoryMessageStore()


@pytest.fixture
def sample_chunks():
    return [
        RetrievedChunk(
            id="c1",
            title="Tabel m_ticket",
            content="Kolom status, created_at timestamp, developer. Gunakan COUNT untuk jumlah tiket.",
            similarity=0.82,
            collection="schema_context",
        ),
        RetrievedChunk(
            id="c2",
            title="Tabel log_absen",
            content="Kolom jam_masuk timestamp, lokasi_kerja (WFA/WFH/WFO).",
            similarity=0.74,
            collection="schema_context",
        ),
        RetrievedChunk(
            id="c3",
            title="Ringkasan nossa_closed",
            content="Agregasi gangguan per witel dan regional.",
            similarity=0.20,
            collection="aggregated_insights",
        ),
    ]


@pytest.fixture
def ticket_hits():
    return {
        "schema_context": [
            VectorHit(
                id="m_ticket",
                score=0.9,
                payload={
                    "title": "Tabel m_ticket",
                    "content": '"SDA"."m_ticket": no_ticket, status, closed_at timestamp',
                },
            )
        ],
        "aggregated_insights": [],
    }


def build_pipeline(
    settings: Settings,
    llm: FakeLLM,
    message_store: InMemoryMessageStore,
    database: FakeDatabase | None = None,
    vector_store: FakeVectorStore | None = None,
    cache: QueryCache | None = None,
    metrics: MetricsCollector | None = None,
) -> QueryPipeline:
    vector_store = vector_store or FakeVectorStore()
    return QueryPipeline(
        classifier=IntentClassifier(),
        retriever=VectorRetriever(FakeEmbedder(), vector_store, settings.collection_names),
        reranker=KeywordReranker(),
        schema_service=SchemaService(database, schemas=["public", "SDA"]),
        planner=SQLPlanner(llm, timeout=2.0),
        executor=QueryExecutor(database, timeout=2.0),
        llm=llm,
        message_store=message_store,
        cache=cache or QueryCache(),
        metrics=metrics or MetricsCollector(),
        settings=settings,
    )


@pytest.fixture
def pipeline_factory(settings, message_store):
    def _factory(llm, database=None, vector_store=None, cache=None, metrics=None):
        return build_pipeline(
            settings,
            llm,
            message_store,
            database=database,
            vector_store=vector_store,
            cache=cache,
            metrics=metrics,
        )

    return _factory


@pytest.fixture
def db_error():
    return DatabaseQueryError('relation "SDA.unknown" does not exist')
