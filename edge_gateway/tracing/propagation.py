"""Trace context propagation across HTTP hops.

Three interoperable encodings of the same context are understood:

* ``B3_MULTI``: ``x-b3-traceid`` / ``x-b3-spanid`` / ``x-b3-parentspanid``
  / ``x-b3-sampled`` (+ ``x-b3-flags`` debug bit), one field per header.
* ``B3_SINGLE``: ``b3: {traceId}-{spanId}[-{sampled}[-{parentSpanId}]]``.
* ``W3C``: ``traceparent: 00-{traceId:32}-{spanId:16}-{flags:02}`` plus
  the opaque ``tracestate`` companion.

Inbound, the first encoding that decodes cleanly wins (in the order above);
a partial or garbled encoding counts as absent. Outbound, every encoding is
written at once so any downstream service can rebuild the trace.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from enum import Enum
from typing import Mapping
from urllib.parse import urlsplit

from edge_gateway.tracing.models import (
    Span,
    SpanKind,
    TraceContext,
    new_span_id,
    normalize_span_id,
    normalize_trace_id,
)
from edge_gateway.tracing.spans import SpanManager

logger = logging.getLogger(__name__)

B3_TRACE_ID = "x-b3-traceid"
B3_SPAN_ID = "x-b3-spanid"
B3_PARENT_SPAN_ID = "x-b3-parentspanid"
B3_SAMPLED = "x-b3-sampled"
B3_FLAGS = "x-b3-flags"
B3_SINGLE = "b3"
TRACEPARENT = "traceparent"
TRACESTATE = "tracestate"

BAGGAGE_HEADERS = ("x-request-id", "x-correlation-id", "x-vcap-request-id")

COMPONENT = "edge-gateway"
_MAX_TRACESTATE_MEMBERS = 32
_HEX2 = re.compile(r"^[0-9a-f]{2}$")


class HeaderFormat(str, Enum):
    B3_MULTI = "b3-multi"
    B3_SINGLE = "b3-single"
    W3C = "w3c"


EXTRACT_ORDER = (HeaderFormat.B3_MULTI, HeaderFormat.B3_SINGLE, HeaderFormat.W3C)


# ---------------------------------------------------------------------------
# Request accessor (routing-layer collaborator)
# ---------------------------------------------------------------------------

class RequestAccessor(ABC):
    """Read-only view of an inbound request plus a slot for its server span."""

    span: Span | None = None

    @property
    @abstractmethod
    def headers(self) -> Mapping[str, str]: ...

    @property
    @abstractmethod
    def method(self) -> str: ...

    @property
    @abstractmethod
    def path(self) -> str: ...


class StaticRequest(RequestAccessor):
    """Accessor over plain values (CLI, tests, non-HTTP entry points)."""

    def __init__(self, headers: Mapping[str, str], method: str = "GET", path: str = "/") -> None:
        self._headers = dict(headers)
        self._method = method
        self._path = path
        self.span = None

    @property
    def headers(self) -> Mapping[str, str]:
        return self._headers

    @property
    def method(self) -> str:
        return self._method

    @property
    def path(self) -> str:
        return self._path


# ---------------------------------------------------------------------------
# Codec helpers
# ---------------------------------------------------------------------------

def _lower_keys(headers: Mapping[str, str]) -> dict[str, str]:
    return {str(k).lower(): str(v) for k, v in headers.items()}


def _parse_sampled(value: str | None) -> bool | None:
    if value is None:
        return None
    value = value.strip().lower()
    if value in ("1", "true", "d"):
        return True
    if value in ("0", "false"):
        return False
    return None


def _compact_trace_id(trace_id: str) -> str:
    """A 128-bit id whose high half is zero is a padded 64-bit id."""
    if len(trace_id) == 32 and trace_id.startswith("0" * 16):
        return trace_id[16:]
    return trace_id


def _decode_b3_multi(h: Mapping[str, str], trace_state: str | None) -> TraceContext | None:
    trace_id = normalize_trace_id(h.get(B3_TRACE_ID))
    span_id = normalize_span_id(h.get(B3_SPAN_ID))
    if trace_id is None or span_id is None:
        return None
    sampled = _parse_sampled(h.get(B3_SAMPLED))
    if (h.get(B3_FLAGS) or "").strip() == "1":
        sampled = True
    return TraceContext(
        trace_id=trace_id,
        span_id=span_id,
        parent_span_id=normalize_span_id(h.get(B3_PARENT_SPAN_ID)),
        sampled=True if sampled is None else sampled,
        trace_state=trace_state,
    )


def _decode_b3_single(
    h: Mapping[str, str], trace_state: str | None, bits128: bool
) -> TraceContext | None:
    raw = (h.get(B3_SINGLE) or "").strip()
    if not raw:
        return None
    parts = raw.split("-")

    if len(parts) == 1:
        # sampling decision only, no ids: start a new trace honouring it
        sampled = _parse_sampled(parts[0])
        if sampled is None:
            return None
        return TraceContext.fresh(sampled=sampled, bits128=bits128)

    if len(parts) > 4:
        return None
    trace_id = normalize_trace_id(parts[0])
    span_id = normalize_span_id(parts[1])
    if trace_id is None or span_id is None:
        return None
    sampled = _parse_sampled(parts[2]) if len(parts) >= 3 else None
    parent = normalize_span_id(parts[3]) if len(parts) == 4 else None
    return TraceContext(
        trace_id=trace_id,
        span_id=span_id,
        parent_span_id=parent,
        sampled=True if sampled is None else sampled,
        trace_state=trace_state,
    )


def _decode_w3c(h: Mapping[str, str], trace_state: str | None) -> TraceContext | None:
    raw = (h.get(TRACEPARENT) or "").strip().lower()
    parts = raw.split("-")
    if len(parts) < 4:
        return None
    version, trace_raw, span_raw, flags = parts[0], parts[1], parts[2], parts[3]
    if not _HEX2.match(version) or version == "ff" or (version == "00" and len(parts) != 4):
        return None
    if len(trace_raw) != 32 or not _HEX2.match(flags):
        return None
    trace_id = normalize_trace_id(trace_raw)
    span_id = normalize_span_id(span_raw)
    if trace_id is None or span_id is None:
        return None
    sampled = bool(int(flags, 16) & 0x01)
    return TraceContext(
        trace_id=_compact_trace_id(trace_id),
        span_id=span_id,
        sampled=sampled,
        trace_state=trace_state,
    )


def decode(
    fmt: HeaderFormat, headers: Mapping[str, str], bits128: bool = False
) -> TraceContext | None:
    """Decode one encoding from ``headers``; ``None`` when absent or garbled."""
    h = _lower_keys(headers)
    trace_state = (h.get(TRACESTATE) or "").strip() or None
    if fmt is HeaderFormat.B3_MULTI:
        return _decode_b3_multi(h, trace_state)
    if fmt is HeaderFormat.B3_SINGLE:
        return _decode_b3_single(h, trace_state, bits128)
    if fmt is HeaderFormat.W3C:
        return _decode_w3c(h, trace_state)
    raise ValueError(f"unknown header format: {fmt!r}")


def merge_tracestate(vendor: str, span_id: str, inbound: str | None) -> str:
    """Put ``vendor=span_id`` first, keeping other vendors' members."""
    members = [f"{vendor}={span_id}"]
    for member in (inbound or "").split(","):
        member = member.strip()
        if not member or member.split("=", 1)[0].strip() == vendor:
            continue
        members.append(member)
    return ",".join(members[:_MAX_TRACESTATE_MEMBERS])


def encode(fmt: HeaderFormat, ctx: TraceContext, vendor: str = "edgegw") -> dict[str, str]:
    """Render ``ctx`` in one encoding."""
    sampled = "1" if ctx.sampled else "0"
    if fmt is HeaderFormat.B3_MULTI:
        out = {
            B3_TRACE_ID: ctx.trace_id,
            B3_SPAN_ID: ctx.span_id,
            B3_SAMPLED: sampled,
        }
        if ctx.parent_span_id:
            out[B3_PARENT_SPAN_ID] = ctx.parent_span_id
        return out
    if fmt is HeaderFormat.B3_SINGLE:
        value = f"{ctx.trace_id}-{ctx.span_id}-{sampled}"
        if ctx.parent_span_id:
            value += f"-{ctx.parent_span_id}"
        return {B3_SINGLE: value}
    if fmt is HeaderFormat.W3C:
        flags = "01" if ctx.sampled else "00"
        return {
            TRACEPARENT: f"00-{ctx.trace_id.rjust(32, '0')}-{ctx.span_id}-{flags}",
            TRACESTATE: merge_tracestate(vendor, ctx.span_id, ctx.trace_state),
        }
    raise ValueError(f"unknown header format: {fmt!r}")


def baggage_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Request-correlation headers copied verbatim onto outbound calls."""
    h = _lower_keys(headers)
    return {name: h[name] for name in BAGGAGE_HEADERS if h.get(name)}


def service_from_url(url: str) -> tuple[str, str]:
    """``http://user.shop.svc/customers/1`` -> ``("user", "/customers/1")``."""
    parts = urlsplit(url)
    host = parts.hostname or ""
    service = host.split(".", 1)[0] or "unknown"
    return service, parts.path or "/"


# ---------------------------------------------------------------------------
# Propagator
# ---------------------------------------------------------------------------

class Propagator:
    """Turns inbound headers into a server span and spans into outbound headers."""

    def __init__(
        self,
        spans: SpanManager,
        service_name: str = "front-end",
        tracestate_vendor: str = "edgegw",
        trace_id_128bit: bool = False,
    ) -> None:
        self._spans = spans
        self._service = service_name
        self._vendor = tracestate_vendor
        self._bits128 = trace_id_128bit

    @property
    def spans(self) -> SpanManager:
        return self._spans

    # -- inbound ------------------------------------------------------------

    def detect_format(self, headers: Mapping[str, str]) -> HeaderFormat | None:
        for fmt in EXTRACT_ORDER:
            if decode(fmt, headers, self._bits128) is not None:
                return fmt
        return None

    def extract_inbound(self, headers: Mapping[str, str]) -> TraceContext:
        for fmt in EXTRACT_ORDER:
            try:
                ctx = decode(fmt, headers, self._bits128)
            except Exception as exc:
                logger.warning("discarding %s trace headers: %s", fmt.value, exc)
                continue
            if ctx is not None:
                return ctx
        return TraceContext.fresh(sampled=True, bits128=self._bits128)

    def start_server(self, context: TraceContext, method: str, path: str) -> Span:
        return self._spans.start(
            context,
            SpanKind.SERVER,
            f"{method.upper()} {path}",
            tags={
                "http.method": method.upper(),
                "http.path": path,
                "span.kind": SpanKind.SERVER.value,
                "component": COMPONENT,
                "service.name": self._service,
            },
        )

    def handle_inbound(self, accessor: RequestAccessor) -> Span:
        """Extract context, open the server span, and attach it to the request."""
        context = self.extract_inbound(accessor.headers)
        span = self.start_server(context, accessor.method, accessor.path)
        accessor.span = span
        logger.debug(
            "inbound %s %s trace=%s span=%s",
            accessor.method, accessor.path, context.trace_id, context.span_id,
        )
        return span

    # -- outbound -----------------------------------------------------------

    def inject(self, context: TraceContext, headers: dict[str, str] | None = None) -> dict[str, str]:
        """Write every encoding of ``context`` into ``headers`` (created if missing)."""
        target = headers if headers is not None else {}
        for fmt in HeaderFormat:
            target.update(encode(fmt, context, self._vendor))
        return target

    def start_client(
        self,
        parent_span: Span | None,
        method: str,
        target_url: str,
        *,
        fallback: TraceContext | None = None,
    ) -> tuple[Span, dict[str, str]]:
        """Open a client span under ``parent_span`` and build its outbound headers.

        If the parent's context cannot be read, the call is parented on
        ``fallback`` (the inbound context) or, lacking that, on a fresh trace.
        Never raises.
        """
        try:
            parent_ctx = parent_span.context  # type: ignore[union-attr]
            if not isinstance(parent_ctx, TraceContext):
                raise TypeError(f"unexpected span context {type(parent_ctx).__name__}")
            context = parent_ctx.child()
        except Exception as exc:
            logger.warning("parent span unreadable, degrading propagation: %s", exc)
            base = fallback or TraceContext.fresh(bits128=self._bits128)
            context = TraceContext(
                trace_id=base.trace_id,
                span_id=new_span_id(),
                parent_span_id=base.span_id,
                sampled=base.sampled,
            )

        try:
            service, path = service_from_url(target_url)
        except ValueError:
            service, path = "unknown", target_url
        method = method.upper()
        span = self._spans.start(
            context,
            SpanKind.CLIENT,
            f"{method} {service} {path}",
            tags={
                "http.method": method,
                "http.url": target_url,
                "span.kind": SpanKind.CLIENT.value,
                "peer.service": service,
                "component": COMPONENT,
            },
        )
        return span, self.inject(context)

    async def finish(self, span: Span, outcome: int | BaseException) -> None:
        """Close ``span`` with a status code or an error. No-op if already closed."""
        if span.finished:
            return
        if isinstance(outcome, BaseException):
            status = getattr(outcome, "status_code", None)
            self._spans.mark_error(span)
            self._spans.log(
                span,
                "error",
                **{
                    "error.kind": type(outcome).__name__,
                    "message": str(outcome),
                    "status_code": status,
                },
            )
            if isinstance(status, int):
                self._spans.tag(span, "http.status_code", status)
        else:
            self._spans.tag(span, "http.status_code", outcome)
            if outcome >= 400:
                self._spans.mark_error(span)
                self._spans.log(
                    span,
                    "error",
                    **{
                        "error.kind": "http_error",
                        "message": f"HTTP {outcome}",
                        "status_code": outcome,
                    },
                )
        await self._spans.finish(span)
