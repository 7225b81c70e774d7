"""Health, metrics and cache administration endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from datachat.api.dependencies import get_database, get_metrics, get_query_cache, get_vector_store
from datachat.cache.query_cache import QueryCache
from datachat.models.schemas import CacheStatsResponse, HealthResponse, MetricsResponse
from datachat.observability.metrics import MetricsCollector
from datachat.protocols.database import Database
from datachat.protocols.vector_store import VectorStore

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health(
    vector_store: VectorStore = Depends(get_vector_store),
    database: Database | None = Depends(get_database),
    cache: QueryCache = Depends(get_query_cache),
) -> HealthResponse:
    db_ok = await database.ping() if database is not None else False
    return HealthResponse(
        status="ok" if db_ok else "degraded",
        database=db_ok,
        collections=vector_store.collection_sizes(),
        cache_size=cache.size,
    )


@router.get("/metrics", response_model=MetricsResponse)
async def metrics(collector: MetricsCollector = Depends(get_metrics)) -> MetricsResponse:
    return MetricsResponse(**collector.report())


@router.get("/cache/stats", response_model=CacheStatsResponse)
async def cache_stats(cache: QueryCache = Depends(get_query_cache)) -> CacheStatsResponse:
    return CacheStatsResponse(**cache.stats())


@router.delete("/cache", response_model=CacheStatsResponse)
async def clear_cache(cache: QueryCache = Depends(get_query_cache)) -> CacheStatsResponse:
    cache.clear()
    return CacheStatsResponse(**cache.stats())
