"""In-memory span collector: for tests and the ``memory`` collector setting."""

from __future__ import annotations

from edge_gateway.tracing.interface import SpanCollector
from edge_gateway.tracing.models import Span


class InMemorySpanCollector(SpanCollector):
    def __init__(self) -> None:
        self._spans: list[Span] = []
        self.flushes = 0

    async def record(self, span: Span) -> None:
        self._spans.append(span)

    async def flush(self) -> None:
        self.flushes += 1

    @property
    def spans(self) -> list[Span]:
        return list(self._spans)

    def by_trace(self, trace_id: str) -> list[Span]:
        return [s for s in self._spans if s.context.trace_id == trace_id]

    def by_name(self, name: str) -> list[Span]:
        return [s for s in self._spans if s.name == name]

    def clear(self) -> None:
        self._spans.clear()
