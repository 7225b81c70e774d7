"""Per-query step timing."""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass
from uuid import uuid4


@dataclass
class Span:
    name: str
    started_at: float
    ended_at: float | None = None
    failed: bool = False

    @property
    def duration_ms(self) -> float:
        end = self.ended_at if self.ended_at is not None else time.monotonic()
        return (end - self.started_at) * 1000


class TraceContext:
    """Times the named pipeline steps of one query.

    A step name may be entered more than once; its durations accumulate.
    """

    def __init__(self, trace_id: str | None = None) -> None:
        self.trace_id = trace_id or uuid4().hex[:16]
        self.spans: list[Span] = []
        self._started = time.monotonic()

    @contextmanager
    def span(self, name: str):
        s = Span(name=name, started_at=time.monotonic())
        self.spans.append(s)
        try:
            yield s
        except Exception:
            s.failed = True
            raise
        finally:
            s.ended_at = time.monotonic()

    @property
    def elapsed_ms(self) -> float:
        return (time.monotonic() - self._started) * 1000

    @property
    def failed_steps(self) -> list[str]:
        return [s.name for s in self.spans if s.failed]

    def step_durations(self) -> dict[str, float]:
        """Total milliseconds per step name."""
        durations: dict[str, float] = {}
        for s in self.spans:
            durations[s.name] = round(durations.get(s.name, 0.0) + s.duration_ms, 2)
        return durations
