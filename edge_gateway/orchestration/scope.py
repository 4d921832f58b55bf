"""Per-request state handed explicitly to every orchestration step."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

from edge_gateway.faults.models import RuleContext
from edge_gateway.tracing.models import Span, TraceContext
from edge_gateway.tracing.propagation import RequestAccessor, baggage_headers


@dataclass
class RequestScope:
    """The inbound request's server span, headers, and fault-rule input."""

    server_span: Span | None
    headers: Mapping[str, str] = field(default_factory=dict)
    fault_context: RuleContext = field(default_factory=RuleContext)
    inbound_context: TraceContext | None = None

    @classmethod
    def from_request(
        cls,
        accessor: RequestAccessor,
        environ: Mapping[str, str] | None = None,
    ) -> RequestScope:
        span = accessor.span
        return cls(
            server_span=span,
            headers=dict(accessor.headers),
            fault_context=RuleContext.from_environ(accessor.headers, environ),
            inbound_context=span.context if span is not None else None,
        )

    @property
    def baggage(self) -> dict[str, str]:
        return baggage_headers(self.headers)
