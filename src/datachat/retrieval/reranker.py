"""Deterministic keyword + intent-boosted reranking of retrieved schema context."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from datachat.config.constants import NO_CONTEXT_SENTINEL, STOPWORDS
from datachat.models.domain import RerankResult, RetrievedChunk, ScoredChunk
from datachat.observability.logger import get_logger

logger = get_logger("reranker")

CONTEXT_SEPARATOR = "\n\n---\n\n"
MAX_KEYWORDS = 12

_TOKEN = re.compile(r"\w+")


@dataclass(frozen=True)
class RerankWeights:
    base: float = 0.35
    title: float = 0.30
    content: float = 0.20
    boost: float = 0.15
    boost_cap: float = 0.35


@dataclass(frozen=True)
class TableRule:
    """Query mentions the table's vocabulary and the chunk title names the table."""

    name: str
    query_pattern: str
    title_marker: str
    boost: float = 0.20


@dataclass(frozen=True)
class ContentRule:
    """Query has a given shape and the chunk content carries a matching signal."""

    name: str
    query_pattern: str
    content_pattern: str
    boost: float = 0.05


DEFAULT_TABLE_RULES: tuple[TableRule, ...] = (
    TableRule(
        "attendance",
        r"absen|kehadiran|check\s?in|check\s?out|terlambat|lembur|wf[ahno]",
        "log_absen",
    ),
    TableRule(
        "ticket",
        r"tiket|ticket|request|pekerjaan|dev|developer|bug|incident|change|explorasi",
        "m_ticket",
    ),
    TableRule(
        "complaint",
        r"nossa|gangguan|aduan|pelanggan|service_id|witel|regional",
        "nossa_closed",
    ),
)

DEFAULT_CONTENT_RULES: tuple[ContentRule, ...] = (
    ContentRule(
        "aggregation",
        r"berapa|jumlah|total|count|rata-rata|average|sum|banyak",
        r"count|sum|avg|group by|jumlah",
    ),
    ContentRule(
        "time",
        r"kapan|when|tanggal|date|bulan|tahun|hari|periode|waktu|minggu|quarter|q[1-4]",
        r"timestamp|date|time|tanggal|waktu",
    ),
    ContentRule("status", r"status|progress|selesai|done|pending|open|close", r"status"),
    ContentRule(
        "analysis",
        r"analisis|analysis|performa|performance|trend|pola|insight|forecast",
        r"avg|average|trend|analysis",
    ),
)


def extract_keywords(text: str, limit: int = MAX_KEYWORDS) -> list[str]:
    keywords: list[str] = []
    seen: set[str] = set()
    for token in _TOKEN.findall(text.lower()):
        if len(token) <= 2 or token in STOPWORDS or token.isdigit() or token in seen:
            continue
        seen.add(token)
        keywords.append(token)
        if len(keywords) == limit:
            break
    return keywords


def keyword_score(text: str, keywords: list[str]) -> float:
    """Coverage plus position-weighted occurrence score, clamped to [0, 1]."""
    if not text or not keywords:
        return 0.0
    lowered = text.lower()
    matched = 0
    weighted = 0.0
    for index, keyword in enumerate(keywords):
        occurrences = lowered.count(keyword)
        if occurrences:
            matched += 1
            weighted += (1 - index * 0.05) * min(occurrences, 3) * 0.1
    coverage = matched / len(keywords)
    return min(1.0, coverage * 0.6 + weighted * 0.4)


@dataclass
class QueryIntents:
    tables: list[TableRule] = field(default_factory=list)
    shapes: list[ContentRule] = field(default_factory=list)

    @property
    def names(self) -> list[str]:
        return [r.name for r in self.tables] + [r.name for r in self.shapes]


class KeywordReranker:
    """Scores chunks by vector similarity, keyword overlap and intent boosts.

    Pure function of (query, chunks, parameters). Weights and rules are
    injected so operators can retune them without code changes.
    """

    def __init__(
        self,
        weights: RerankWeights | None = None,
        table_rules: tuple[TableRule, ...] = DEFAULT_TABLE_RULES,
        content_rules: tuple[ContentRule, ...] = DEFAULT_CONTENT_RULES,
    ) -> None:
        self._weights = weights or RerankWeights()
        self._table_rules = table_rules
        self._content_rules = content_rules

    def detect_intents(self, query: str) -> QueryIntents:
        return QueryIntents(
            tables=[r for r in self._table_rules if re.search(r.query_pattern, query, re.I)],
            shapes=[r for r in self._content_rules if re.search(r.query_pattern, query, re.I)],
        )

    def intent_boost(self, chunk: RetrievedChunk, intents: QueryIntents) -> float:
        title = chunk.title.lower()
        content = chunk.content.lower()
        boost = sum(r.boost for r in intents.tables if r.title_marker in title)
        boost += sum(r.boost for r in intents.shapes if re.search(r.content_pattern, content))
        return min(boost, self._weights.boost_cap)

    def score(
        self, chunk: RetrievedChunk, keywords: list[str], intents: QueryIntents
    ) -> ScoredChunk:
        w = self._weights
        title_score = keyword_score(chunk.title, keywords)
        content_score = keyword_score(chunk.content, keywords)
        boost = self.intent_boost(chunk, intents)
        final = (
            chunk.similarity * w.base
            + title_score * w.title
            + content_score * w.content
            + boost * w.boost
        )
        return ScoredChunk(
            chunk=chunk,
            base_score=chunk.similarity,
            title_keyword_score=title_score,
            content_keyword_score=content_score,
            intent_boost=boost,
            final_score=final,
        )

    def rerank(
        self,
        query_text: str,
        chunks: list[RetrievedChunk],
        top_k: int = 3,
        min_score: float = 0.15,
    ) -> RerankResult:
        if not chunks:
            logger.info("rerank_no_candidates")
            return RerankResult(selected=[], context=NO_CONTEXT_SENTINEL)

        keywords = extract_keywords(query_text)
        intents = self.detect_intents(query_text)
        scored = [self.score(c, keywords, intents) for c in chunks]
        # sorted() is stable: equal scores keep retrieval order
        ranked = sorted(scored, key=lambda s: s.final_score, reverse=True)
        selected = [s for s in ranked if s.final_score >= min_score][:top_k]

        logger.info(
            "rerank_complete",
            candidates=len(chunks),
            selected=len(selected),
            keywords=keywords,
            intents=intents.names,
            top_score=round(ranked[0].final_score, 4),
        )

        if not selected:
            return RerankResult(selected=[], context=NO_CONTEXT_SENTINEL, scored=ranked)
        context = CONTEXT_SEPARATOR.join(s.chunk.content for s in selected)
        return RerankResult(selected=selected, context=context, scored=ranked)
