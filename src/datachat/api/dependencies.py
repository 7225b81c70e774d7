"""FastAPI dependency injection helpers."""

from __future__ import annotations

from fastapi import Request

from datachat.cache.query_cache import QueryCache
from datachat.config.settings import Settings
from datachat.observability.metrics import MetricsCollector
from datachat.pipeline.query_pipeline import QueryPipeline
from datachat.protocols.database import Database
from datachat.protocols.vector_store import VectorStore


def get_query_pipeline(request: Request) -> QueryPipeline:
    return request.app.state.query_pipeline


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_query_cache(request: Request) -> QueryCache:
    return request.app.state.query_cache


def get_metrics(request: Request) -> MetricsCollector:
    return request.app.state.metrics


def get_vector_store(request: Request) -> VectorStore:
    return request.app.state.vector_store


def get_database(request: Request) -> Database | None:
    return request.app.state.database
