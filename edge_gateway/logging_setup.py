"""Log line format carrying the service name and the active trace ids.

Output looks like::

    2026-01-13T08:57:30.719Z  INFO [front-end,traceId:4bf9...,spanId:00f0...] --- [edge_gateway.flows.orders] : message
"""

from __future__ import annotations

import logging
import sys
import time
from typing import Any, MutableMapping

from edge_gateway.tracing.models import Span

_FORMAT = "%(asctime)s  %(levelname)s %(trace_info)s --- [%(name)s] : %(message)s"


class TraceFieldsFilter(logging.Filter):
    """Renders ``trace_info`` from optional ``trace_id``/``span_id`` extras."""

    def __init__(self, service_name: str) -> None:
        super().__init__()
        self._service = service_name

    def filter(self, record: logging.LogRecord) -> bool:
        trace_id = getattr(record, "trace_id", None)
        span_id = getattr(record, "span_id", None)
        if trace_id and span_id:
            record.trace_info = f"[{self._service},traceId:{trace_id},spanId:{span_id}]"
        elif trace_id:
            record.trace_info = f"[{self._service},traceId:{trace_id}]"
        else:
            record.trace_info = f"[{self._service}]"
        return True


class _UTCFormatter(logging.Formatter):
    converter = time.gmtime

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        stamp = time.strftime("%Y-%m-%dT%H:%M:%S", self.converter(record.created))
        return f"{stamp}.{int(record.msecs):03d}Z"


def configure_logging(level: str = "INFO", service_name: str = "front-end") -> None:
    """Install a single stdout handler on the root logger."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_UTCFormatter(_FORMAT))
    handler.addFilter(TraceFieldsFilter(service_name))

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level.upper())


class SpanLoggerAdapter(logging.LoggerAdapter):
    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        extra = dict(self.extra or {})
        extra.update(kwargs.get("extra") or {})
        kwargs["extra"] = extra
        return msg, kwargs


def span_logger(logger: logging.Logger, span: Span | None) -> logging.LoggerAdapter:
    """Bind a span's ids to every record emitted through the returned adapter."""
    if span is None:
        return SpanLoggerAdapter(logger, {})
    return SpanLoggerAdapter(
        logger,
        {"trace_id": span.context.trace_id, "span_id": span.context.span_id},
    )
