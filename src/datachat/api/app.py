"""FastAPI application factory with lifespan management."""

from __future__ import annotations

import asyncio
import contextlib
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI

from datachat.api.middleware import RequestTimingMiddleware
from datachat.api.routes_health import router as health_router
from datachat.api.routes_query import router as query_router
from datachat.cache.query_cache import QueryCache
from datachat.config.settings import Settings
from datachat.database.connection import SQLAlchemyDatabase
from datachat.database.executor import QueryExecutor
from datachat.database.schema_service import SchemaService
from datachat.embeddings.gemini_embedder import GeminiEmbedder
from datachat.embeddings.openai_embedder import OpenAIEmbedder
from datachat.exceptions import ConfigurationError
from datachat.generation.gemini_provider import GeminiProvider
from datachat.observability.logger import get_logger, setup_logging
from datachat.observability.metrics import MetricsCollector
from datachat.pipeline.query_pipeline import QueryPipeline
from datachat.planning.sql_planner import SQLPlanner
from datachat.protocols.embedder import Embedder
from datachat.query.intent import IntentClassifier
from datachat.retrieval.llm_reranker import LLMReranker
from datachat.retrieval.reranker import KeywordReranker, RerankWeights
from datachat.retrieval.vector_retriever import VectorRetriever
from datachat.storage.sqlite_message_store import SQLiteMessageStore
from datachat.vectorstore.faiss_store import FAISSCollectionStore

logger = get_logger("app")


def build_embedder(settings: Settings) -> Embedder:
    if settings.embedding_provider == "gemini":
        return GeminiEmbedder(
            api_key=settings.google_api_key,
            model=settings.embedding_model,
            dimensions=settings.embedding_dimensions,
        )
    if settings.embedding_provider == "openai":
        return OpenAIEmbedder(
            api_key=settings.openai_api_key,
            model=settings.embedding_model,
            dimensions=settings.embedding_dimensions,
        )
    raise ConfigurationError(f"Unknown embedding provider: {settings.embedding_provider}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = Settings()
    setup_logging(settings.log_level, settings.log_json)

    Path(settings.message_db_path).parent.mkdir(parents=True, exist_ok=True)

    # Storage
    message_store = SQLiteMessageStore(settings.message_db_path)
    await message_store.initialize()

    # Vector collections
    vector_store = FAISSCollectionStore(
        dimensions=settings.embedding_dimensions,
        base_path=settings.vector_store_path,
    )
    for name in settings.collection_names:
        await vector_store.ensure_collection(name)

    # Relational database (demo mode when no URL is configured)
    database = (
        SQLAlchemyDatabase(
            settings.database_url,
            schemas=settings.schema_names,
            pool_size=settings.db_pool_size,
        )
        if settings.database_url
        else None
    )
    if database is None:
        logger.warning("database_not_configured", mode="demo")

    # LLM + embeddings
    llm = GeminiProvider(
        api_key=settings.google_api_key,
        model=settings.gemini_model,
        temperature=settings.gemini_temperature,
        max_tokens=settings.gemini_max_tokens,
    )
    embedder = build_embedder(settings)

    # Retrieval
    retriever = VectorRetriever(
        embedder=embedder,
        vector_store=vector_store,
        collections=settings.collection_names,
        embedding_timeout=settings.embedding_timeout_seconds,
        search_timeout=settings.vector_search_timeout_seconds,
    )
    reranker = KeywordReranker(
        RerankWeights(
            base=settings.rerank_w_base,
            title=settings.rerank_w_title,
            content=settings.rerank_w_content,
            boost=settings.rerank_w_boost,
            boost_cap=settings.rerank_boost_cap,
        )
    )
    llm_reranker = (
        LLMReranker(llm=llm, fallback=reranker, timeout=settings.llm_timeout_seconds)
        if settings.llm_rerank_enabled
        else None
    )

    # Planning + execution
    schema_service = SchemaService(
        database,
        schemas=settings.schema_names,
        sample_tables=settings.sample_tables,
        sample_rows=settings.schema_sample_rows,
        cache_ttl_seconds=settings.schema_cache_ttl_seconds,
        timeout=settings.sql_timeout_seconds,
    )
    planner = SQLPlanner(llm, timeout=settings.llm_timeout_seconds, row_limit=settings.sql_max_rows)
    executor = QueryExecutor(
        database, timeout=settings.sql_timeout_seconds, max_rows=settings.sql_max_rows
    )

    # Shared services
    query_cache = QueryCache(max_size=settings.cache_max_size, ttl_seconds=settings.cache_ttl_seconds)
    metrics = MetricsCollector(buffer_size=settings.metrics_buffer_size)

    query_pipeline = QueryPipeline(
        classifier=IntentClassifier(extra_keywords=settings.extra_intent_keywords),
        retriever=retriever,
        reranker=reranker,
        llm_reranker=llm_reranker,
        schema_service=schema_service,
        planner=planner,
        executor=executor,
        llm=llm,
        message_store=message_store,
        cache=query_cache,
        metrics=metrics,
        settings=settings,
    )

    # Attach to app state
    app.state.settings = settings
    app.state.query_pipeline = query_pipeline
    app.state.query_cache = query_cache
    app.state.metrics = metrics
    app.state.vector_store = vector_store
    app.state.database = database
    app.state.message_store = message_store

    sweeper = asyncio.create_task(query_cache.run_sweeper(settings.cache_sweep_interval_seconds))

    logger.info(
        "startup_complete",
        collections=vector_store.collection_sizes(),
        database=database is not None,
        embedding_provider=settings.embedding_provider,
        llm_rerank=settings.llm_rerank_enabled,
    )

    yield

    sweeper.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await sweeper
    if database is not None:
        await database.dispose()
    vector_store.save()
    logger.info("shutdown_complete", summary=metrics.summary())


def create_app() -> FastAPI:
    app = FastAPI(
        title="DataChat Engine",
        version="1.0.0",
        description="Streaming natural-language answers over operational PostgreSQL data",
        lifespan=lifespan,
    )
    app.add_middleware(RequestTimingMiddleware)
    app.include_router(health_router, tags=["health"])
    app.include_router(query_router, tags=["chat"])
    return app
