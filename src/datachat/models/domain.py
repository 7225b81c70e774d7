"""Core domain objects used throughout the system."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Generic, Literal, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class ImageAttachment:
    data: str  # base64
    mime_type: str = "image/jpeg"


@dataclass(frozen=True)
class HistoryTurn:
    role: str  # "user" or "assistant"
    content: str


@dataclass(frozen=True)
class Query:
    raw_text: str
    user_id: str = "default"
    chat_id: str = ""
    history: tuple[HistoryTurn, ...] = ()
    image: ImageAttachment | None = None


class Intent(str, Enum):
    GENERAL_CONVERSATION = "general_conversation"
    DATA_QUERY = "data_query"


@dataclass(frozen=True)
class IntentResult:
    intent: Intent
    confidence: float
    rule: str  # which classification rule fired, for logging only


@dataclass
class RetrievedChunk:
    id: str
    title: str
    content: str
    similarity: float
    collection: str


@dataclass
class ScoredChunk:
    chunk: RetrievedChunk
    base_score: float
    title_keyword_score: float
    content_keyword_score: float
    intent_boost: float
    final_score: float


@dataclass
class RerankResult:
    selected: list[ScoredChunk]
    context: str
    scored: list[ScoredChunk] = field(default_factory=list)

    @property
    def has_context(self) -> bool:
        return bool(self.selected)


# --- SQL plan: tagged union, dispatch on type ---


@dataclass(frozen=True)
class QueryPlan:
    query_text: str
    response_template: str
    needs_analysis: bool = False
    status: Literal["success"] = "success"
    needs_execution: bool = True


@dataclass(frozen=True)
class DirectPlan:
    direct_message: str
    status: Literal["success"] = "success"
    needs_execution: bool = False


@dataclass(frozen=True)
class OutOfContextPlan:
    direct_message: str
    status: Literal["out_of_context"] = "out_of_context"
    needs_execution: bool = False


@dataclass(frozen=True)
class FailedPlan:
    direct_message: str
    reason: str
    status: Literal["error"] = "error"
    needs_execution: bool = False


SQLPlan = Union[QueryPlan, DirectPlan, OutOfContextPlan, FailedPlan]


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    error: str | None = None


@dataclass
class QueryRows:
    rows: list[dict[str, Any]]
    row_count: int


@dataclass
class ExecutionResult:
    success: bool
    rows: list[dict[str, Any]] = field(default_factory=list)
    row_count: int = 0
    error_message: str | None = None


@dataclass
class Outcome(Generic[T]):
    """A stage result that records whether it came from a fallback path."""

    value: T
    degraded: bool = False
    reason: str | None = None

    @classmethod
    def real(cls, value: T) -> Outcome[T]:
        return cls(value=value)

    @classmethod
    def fallback(cls, value: T, reason: str) -> Outcome[T]:
        return cls(value=value, degraded=True, reason=reason)


@dataclass
class CacheEntry:
    key: str
    payload: Any
    created_at: float
    last_access_at: float


@dataclass(frozen=True)
class TokenUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    is_estimated: bool = False

    def to_dict(self) -> dict:
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
            "is_estimated": self.is_estimated,
        }


@dataclass(frozen=True)
class CachedAnswer:
    content: str
    intent: Intent
    token_usage: TokenUsage


@dataclass(frozen=True)
class StreamFragment:
    text: str
    usage: TokenUsage | None = None


@dataclass
class PerformanceRecord:
    tokens: int
    duration_ms: float
    cached: bool = False
    error: bool = False
    step_durations_ms: dict[str, float] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)


@dataclass
class VectorHit:
    id: str
    score: float
    payload: dict


@dataclass
class ChatMessage:
    id: str
    chat_id: str
    role: str
    content: str
    image_url: str | None = None
    is_streaming: bool = False
    is_error: bool = False
    token_usage: dict | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
