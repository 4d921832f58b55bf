"""edge_gateway: storefront edge gateway with trace propagation and plan orchestration.

Usage::

    from edge_gateway import create_gateway

    gateway = create_gateway()
    scope = gateway.handle_inbound(accessor)
    result = await gateway.run(plan, scope)
"""

from __future__ import annotations

from dotenv import load_dotenv

load_dotenv()  # reads .env into os.environ (no-op if file missing)

from edge_gateway.errors import GatewayError, PlanAbortedError, TransportError, UpstreamError
from edge_gateway.faults.injector import FaultInjector
from edge_gateway.gateway import Gateway
from edge_gateway.settings import GatewaySettings
from edge_gateway.tracing.in_memory import InMemorySpanCollector
from edge_gateway.tracing.interface import SpanCollector
from edge_gateway.tracing.jsonl_collector import JSONLSpanCollector
from edge_gateway.tracing.propagation import Propagator
from edge_gateway.tracing.spans import SpanManager
from edge_gateway.tracing.zipkin_collector import ZipkinSpanCollector
from edge_gateway.transport.httpx_transport import HttpxTransport
from edge_gateway.transport.interface import HttpTransport

__all__ = [
    "Gateway",
    "GatewayError",
    "GatewaySettings",
    "PlanAbortedError",
    "TransportError",
    "UpstreamError",
    "create_gateway",
]


def _make_collector(settings: GatewaySettings) -> SpanCollector | None:
    if settings.trace_collector == "jsonl":
        return JSONLSpanCollector(settings.trace_dir)
    if settings.trace_collector == "zipkin":
        return ZipkinSpanCollector(settings.zipkin_base_url, service_name=settings.service_name)
    if settings.trace_collector == "memory":
        return InMemorySpanCollector()
    return None


def create_gateway(
    settings: GatewaySettings | None = None,
    *,
    transport: HttpTransport | None = None,
    collector: SpanCollector | None = None,
    injector: FaultInjector | None = None,
) -> Gateway:
    """Wire all components and return a ready-to-use Gateway.

    Anything not passed in is built from ``settings`` (default: read from
    the environment, see :class:`GatewaySettings`).
    """
    settings = settings or GatewaySettings.from_env()

    # -- components --
    if collector is None:
        collector = _make_collector(settings)
    spans = SpanManager(collector)
    propagator = Propagator(
        spans,
        service_name=settings.service_name,
        tracestate_vendor=settings.tracestate_vendor,
        trace_id_128bit=settings.trace_id_128bit,
    )
    transport = transport or HttpxTransport(timeout=settings.downstream_timeout)
    injector = injector or FaultInjector()

    return Gateway(
        settings=settings,
        transport=transport,
        propagator=propagator,
        injector=injector,
        collector=collector,
    )
