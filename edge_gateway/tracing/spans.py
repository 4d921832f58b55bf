"""Span lifecycle: start -> tag/log -> finish (once) -> report."""

from __future__ import annotations

import logging
import time
from typing import Any, Mapping

from edge_gateway.tracing.interface import SpanCollector
from edge_gateway.tracing.models import Span, SpanEvent, SpanKind, TagValue, TraceContext

logger = logging.getLogger(__name__)


class SpanManager:
    """Creates, annotates and finishes spans, reporting them to a collector.

    Collector failures never propagate: tracing must not break the request
    it observes. Only sampled spans are reported. Finishing a server span
    also flushes the collector, since it closes the request's call tree.
    """

    def __init__(self, collector: SpanCollector | None = None) -> None:
        self._collector = collector

    @property
    def collector(self) -> SpanCollector | None:
        return self._collector

    def start(
        self,
        context: TraceContext,
        kind: SpanKind,
        name: str,
        tags: Mapping[str, TagValue] | None = None,
    ) -> Span:
        return Span(context=context, kind=kind, name=name, tags=dict(tags or {}))

    def tag(self, span: Span, key: str, value: TagValue) -> None:
        if span.finished:
            logger.debug("tag %s ignored on finished span %s", key, span.context.span_id)
            return
        span.tags[key] = value

    def log(self, span: Span, label: str, **detail: Any) -> None:
        if span.finished:
            logger.debug("event %s ignored on finished span %s", label, span.context.span_id)
            return
        span.events.append(SpanEvent(label=label, detail=detail))

    def mark_error(self, span: Span) -> None:
        if not span.finished:
            span.error = True

    async def finish(self, span: Span) -> bool:
        """Finish and report ``span``. Returns ``False`` if it was already finished."""
        if span.finished:
            return False
        span.finished_at = time.time()

        if self._collector is None or not span.context.sampled:
            return True

        try:
            await self._collector.record(span)
        except Exception as exc:
            logger.warning("span collector rejected span %s: %s", span.context.span_id, exc)

        if span.kind == SpanKind.SERVER:
            try:
                await self._collector.flush()
            except Exception as exc:
                logger.warning("span collector flush failed: %s", exc)
        return True
