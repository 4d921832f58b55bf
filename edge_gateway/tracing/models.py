"""Trace data models: no internal dependencies, only Pydantic + stdlib."""

from __future__ import annotations

import re
import secrets
import time
from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field

_HEX16 = re.compile(r"^[0-9a-f]{16}$")
_HEX32 = re.compile(r"^[0-9a-f]{32}$")

TagValue = Union[str, int, float, bool]


def new_span_id() -> str:
    """Random 64-bit id as 16 lower-case hex chars."""
    return secrets.token_hex(8)


def new_trace_id(bits128: bool = False) -> str:
    return secrets.token_hex(16 if bits128 else 8)


def normalize_span_id(value: str | None) -> str | None:
    """Return a valid 64-bit hex id, or ``None`` for anything malformed."""
    if not value:
        return None
    value = value.strip().lower()
    if not _HEX16.match(value) or value == "0" * 16:
        return None
    return value


def normalize_trace_id(value: str | None) -> str | None:
    """Accept 64- or 128-bit hex trace ids; anything else is ``None``."""
    if not value:
        return None
    value = value.strip().lower()
    if not (_HEX16.match(value) or _HEX32.match(value)):
        return None
    if set(value) == {"0"}:
        return None
    return value


# ---------------------------------------------------------------------------
# Trace context
# ---------------------------------------------------------------------------

class TraceContext(BaseModel):
    """Identifiers of one span inside one call tree. Immutable."""

    model_config = ConfigDict(frozen=True)

    trace_id: str
    span_id: str
    parent_span_id: str | None = None
    sampled: bool = True
    trace_state: str | None = None  # inbound vendor state, opaque

    @classmethod
    def fresh(cls, sampled: bool = True, bits128: bool = False) -> TraceContext:
        return cls(trace_id=new_trace_id(bits128), span_id=new_span_id(), sampled=sampled)

    def child(self) -> TraceContext:
        """Context for a downstream call issued from the span owning this context."""
        return TraceContext(
            trace_id=self.trace_id,
            span_id=new_span_id(),
            parent_span_id=self.span_id,
            sampled=self.sampled,
            trace_state=self.trace_state,
        )


# ---------------------------------------------------------------------------
# Span
# ---------------------------------------------------------------------------

class SpanKind(str, Enum):
    SERVER = "server"
    CLIENT = "client"


class SpanEvent(BaseModel):
    timestamp: float = Field(default_factory=time.time)
    label: str
    detail: dict[str, Any] = Field(default_factory=dict)


class Span(BaseModel):
    """One unit of work. Owned by the call that started it."""

    context: TraceContext
    kind: SpanKind
    name: str
    tags: dict[str, TagValue] = Field(default_factory=dict)
    started_at: float = Field(default_factory=time.time)
    finished_at: float | None = None
    error: bool = False
    events: list[SpanEvent] = Field(default_factory=list)

    @property
    def finished(self) -> bool:
        return self.finished_at is not None

    @property
    def duration_ms(self) -> float | None:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at) * 1000
