"""In-memory performance metrics for answered queries."""

from __future__ import annotations

import math
import threading
from collections import deque

from datachat.models.domain import PerformanceRecord
from datachat.observability.logger import get_logger

logger = get_logger("metrics")

STEP_NAMES = (
    "intent_classification",
    "retrieval",
    "reranking",
    "sql_planning",
    "sql_execution",
    "final_response",
)

PERCENTILES = (50, 90, 95, 99)


def percentile(values: list[float], p: float) -> float:
    """Nearest-rank percentile: index = ceil(n * p / 100) - 1."""
    if not values:
        return 0.0
    ordered = sorted(values)
    index = max(0, math.ceil(len(ordered) * p / 100) - 1)
    return ordered[min(index, len(ordered) - 1)]


class MetricsCollector:
    def __init__(self, buffer_size: int = 1000) -> None:
        self._records: deque[PerformanceRecord] = deque(maxlen=buffer_size)
        self._lock = threading.Lock()
        self._total_queries = 0
        self._total_tokens = 0
        self._total_duration_ms = 0.0
        self._cache_hits = 0
        self._errors = 0
        self._step_totals: dict[str, float] = {name: 0.0 for name in STEP_NAMES}
        self._step_counts: dict[str, int] = {name: 0 for name in STEP_NAMES}

    def record(self, record: PerformanceRecord) -> None:
        with self._lock:
            self._records.append(record)
            self._total_queries += 1
            self._total_tokens += record.tokens
            self._total_duration_ms += record.duration_ms
            if record.cached:
                self._cache_hits += 1
            if record.error:
                self._errors += 1
            for step, duration in record.step_durations_ms.items():
                self._step_totals[step] = self._step_totals.get(step, 0.0) + duration
                self._step_counts[step] = self._step_counts.get(step, 0) + 1

        logger.info("query_recorded", summary=self.summary())

    def percentiles(self, metric: str = "duration_ms") -> dict[str, float]:
        with self._lock:
            values = [float(getattr(r, metric)) for r in self._records]
        return {f"p{p}": round(percentile(values, p), 2) for p in PERCENTILES}

    def report(self) -> dict:
        with self._lock:
            n = self._total_queries
            step_averages = {
                step: round(self._step_totals[step] / self._step_counts[step], 2)
                if self._step_counts.get(step)
                else 0.0
                for step in self._step_totals
            }
            report = {
                "total_queries": n,
                "avg_duration_ms": round(self._total_duration_ms / n, 2) if n else 0.0,
                "avg_tokens": round(self._total_tokens / n, 2) if n else 0.0,
                "cache_hit_rate": round(self._cache_hits / n, 4) if n else 0.0,
                "error_rate": round(self._errors / n, 4) if n else 0.0,
                "step_averages_ms": step_averages,
            }
        report["duration_percentiles_ms"] = self.percentiles("duration_ms")
        report["token_percentiles"] = self.percentiles("tokens")
        return report

    def summary(self) -> str:
        with self._lock:
            n = self._total_queries
            avg = self._total_duration_ms / n if n else 0.0
            hit_rate = self._cache_hits / n * 100 if n else 0.0
            errors = self._errors
        return f"queries={n} avg={avg:.0f}ms cache_hit={hit_rate:.1f}% errors={errors}"

    def recent(self, limit: int = 10) -> list[PerformanceRecord]:
        with self._lock:
            return list(self._records)[-limit:]

    def reset(self) -> None:
        with self._lock:
            self._records.clear()
            self._total_queries = 0
            self._total_tokens = 0
            self._total_duration_ms = 0.0
            self._cache_hits = 0
            self._errors = 0
            self._step_totals = {name: 0.0 for name in STEP_NAMES}
            self._step_counts = {name: 0 for name in STEP_NAMES}
