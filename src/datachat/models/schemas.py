"""Pydantic models for API request/response serialization."""

from __future__ import annotations

import time
from typing import Literal

from pydantic import BaseModel, Field

from datachat.models.domain import HistoryTurn, ImageAttachment, Query


def _now_ms() -> int:
    return int(time.time() * 1000)


class HistoryItem(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ImagePayload(BaseModel):
    base64: str
    mime_type: str = "image/jpeg"


class AnswerRequest(BaseModel):
    text: str = ""
    user_id: str = "default"
    history: list[HistoryItem] | None = None
    image: ImagePayload | None = None

    def to_query(self, chat_id: str, history_turns: int = 6) -> Query:
        recent = (self.history or [])[-history_turns:] if history_turns > 0 else []
        turns = tuple(HistoryTurn(role=h.role, content=h.content) for h in recent)
        image = (
            ImageAttachment(data=self.image.base64, mime_type=self.image.mime_type)
            if self.image
            else None
        )
        return Query(
            raw_text=self.text.strip(),
            user_id=self.user_id or "default",
            chat_id=chat_id,
            history=turns,
            image=image,
        )


# --- Stream events: each one is a self-contained SSE payload ---


class StartEvent(BaseModel):
    type: Literal["start"] = "start"
    timestamp: int = Field(default_factory=_now_ms)


class ChunkEvent(BaseModel):
    type: Literal["chunk"] = "chunk"
    content: str
    timestamp: int = Field(default_factory=_now_ms)


class CompleteEvent(BaseModel):
    type: Literal["complete"] = "complete"
    cached: bool = False
    token_usage: dict | None = None
    timestamp: int = Field(default_factory=_now_ms)


class ErrorEvent(BaseModel):
    type: Literal["error"] = "error"
    message: str
    timestamp: int = Field(default_factory=_now_ms)


StreamEvent = StartEvent | ChunkEvent | CompleteEvent | ErrorEvent


def to_sse(event: StreamEvent) -> str:
    return f"data: {event.model_dump_json()}\n\n"


class HealthResponse(BaseModel):
    status: str
    database: bool
    collections: dict[str, int]
    cache_size: int


class CacheStatsResponse(BaseModel):
    size: int
    max_size: int
    hits: int
    misses: int
    hit_rate: float


class MetricsResponse(BaseModel):
    total_queries: int
    avg_duration_ms: float
    avg_tokens: float
    cache_hit_rate: float
    error_rate: float
    step_averages_ms: dict[str, float]
    duration_percentiles_ms: dict[str, float]
    token_percentiles: dict[str, float]
