"""JSONL file-based span collector."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from edge_gateway.tracing.interface import SpanCollector
from edge_gateway.tracing.models import Span


class JSONLSpanCollector(SpanCollector):
    """Writes finished spans to ``./traces/{trace_id}.jsonl``.

    Spans are buffered in memory and flushed when the server span of an
    inbound request finishes.
    """

    def __init__(self, trace_dir: str = "./traces") -> None:
        self._dir = Path(trace_dir)
        self._dir.mkdir(parents=True, exist_ok=True)
        self._buffers: dict[str, list[dict[str, Any]]] = {}

    async def record(self, span: Span) -> None:
        entry = span.model_dump(mode="json")
        entry["duration_ms"] = span.duration_ms
        self._buffers.setdefault(span.context.trace_id, []).append(entry)

    async def flush(self) -> None:
        buffers, self._buffers = self._buffers, {}
        for trace_id, entries in buffers.items():
            path = self._dir / f"{trace_id}.jsonl"
            with open(path, "a") as f:
                for entry in entries:
                    f.write(json.dumps(entry, default=str) + "\n")
