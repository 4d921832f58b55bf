"""Zipkin v2 HTTP span collector."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from edge_gateway.tracing.interface import SpanCollector
from edge_gateway.tracing.models import Span, SpanKind

logger = logging.getLogger(__name__)


def _micros(ts: float) -> int:
    return int(ts * 1_000_000)


def encode_zipkin_v2(span: Span, service_name: str) -> dict[str, Any]:
    """Encode one finished span as a Zipkin JSON v2 object."""
    ctx = span.context
    out: dict[str, Any] = {
        "traceId": ctx.trace_id,
        "id": ctx.span_id,
        "name": span.name.lower(),
        "kind": span.kind.value.upper(),
        "timestamp": _micros(span.started_at),
        "localEndpoint": {"serviceName": service_name},
        "tags": {k: str(v).lower() if isinstance(v, bool) else str(v) for k, v in span.tags.items()},
    }
    if ctx.parent_span_id:
        out["parentId"] = ctx.parent_span_id
    if span.finished_at is not None:
        out["duration"] = max(_micros(span.finished_at) - _micros(span.started_at), 1)
    if span.kind == SpanKind.CLIENT and "peer.service" in span.tags:
        out["remoteEndpoint"] = {"serviceName": str(span.tags["peer.service"])}
    if span.error:
        out["tags"]["error"] = "true"
    if span.events:
        out["annotations"] = [
            {
                "timestamp": _micros(e.timestamp),
                "value": e.label if not e.detail else f"{e.label} {e.detail}",
            }
            for e in span.events
        ]
    return out


class ZipkinSpanCollector(SpanCollector):
    """Batches spans and POSTs them to ``{base_url}/api/v2/spans`` on flush."""

    def __init__(
        self,
        base_url: str,
        service_name: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = 5.0,
    ) -> None:
        self._endpoint = base_url.rstrip("/") + "/api/v2/spans"
        self._service = service_name
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._batch: list[dict[str, Any]] = []

    @property
    def endpoint(self) -> str:
        return self._endpoint

    async def record(self, span: Span) -> None:
        self._batch.append(encode_zipkin_v2(span, self._service))

    async def flush(self) -> None:
        if not self._batch:
            return
        batch, self._batch = self._batch, []
        response = await self._client.post(self._endpoint, json=batch)
        response.raise_for_status()
        logger.debug("Reported %d spans to %s", len(batch), self._endpoint)

    async def aclose(self) -> None:
        await self._client.aclose()
