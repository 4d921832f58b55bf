"""SpanCollector ABC: depends only on tracing.models."""

from __future__ import annotations

from abc import ABC, abstractmethod

from edge_gateway.tracing.models import Span


class SpanCollector(ABC):
    """Receives finished spans. Best-effort: callers swallow its failures."""

    @abstractmethod
    async def record(self, span: Span) -> None: ...

    async def flush(self) -> None:
        """Push anything buffered. Default: nothing is buffered."""
