from edge_gateway.tracing.models import Span, SpanEvent, SpanKind, TraceContext
from edge_gateway.tracing.interface import SpanCollector
from edge_gateway.tracing.in_memory import InMemorySpanCollector
from edge_gateway.tracing.jsonl_collector import JSONLSpanCollector
from edge_gateway.tracing.zipkin_collector import ZipkinSpanCollector
from edge_gateway.tracing.spans import SpanManager
from edge_gateway.tracing.propagation import (
    HeaderFormat,
    Propagator,
    RequestAccessor,
    StaticRequest,
)

__all__ = [
    "HeaderFormat",
    "InMemorySpanCollector",
    "JSONLSpanCollector",
    "Propagator",
    "RequestAccessor",
    "Span",
    "SpanCollector",
    "SpanEvent",
    "SpanKind",
    "SpanManager",
    "StaticRequest",
    "TraceContext",
    "ZipkinSpanCollector",
]
