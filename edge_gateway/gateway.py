"""Gateway facade: the one object the adapters talk to."""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Mapping

from edge_gateway.faults.injector import FaultInjector
from edge_gateway.faults.models import FaultDecision
from edge_gateway.flows.endpoints import Endpoints
from edge_gateway.orchestration.caller import DownstreamCaller
from edge_gateway.orchestration.orchestrator import Orchestrator
from edge_gateway.orchestration.plan import OrchestrationPlan, PlanResult
from edge_gateway.orchestration.scope import RequestScope
from edge_gateway.settings import GatewaySettings
from edge_gateway.tracing.interface import SpanCollector
from edge_gateway.tracing.propagation import Propagator, RequestAccessor
from edge_gateway.transport.interface import CallOptions, HttpTransport

logger = logging.getLogger(__name__)


class Gateway:
    """Owns the propagator, fault injector, caller and orchestrator.

    One instance serves every request; per-request state lives in the
    :class:`RequestScope` returned by :meth:`handle_inbound`.
    """

    def __init__(
        self,
        settings: GatewaySettings,
        transport: HttpTransport,
        propagator: Propagator,
        injector: FaultInjector,
        collector: SpanCollector | None = None,
    ) -> None:
        self.settings = settings
        self.endpoints = Endpoints.from_domain(settings.domain)
        self.propagator = propagator
        self.injector = injector
        self.collector = collector
        self._transport = transport
        self._caller = DownstreamCaller(transport, propagator, injector)
        self._orchestrator = Orchestrator(self._caller)

    # -- inbound ------------------------------------------------------------

    def handle_inbound(
        self,
        accessor: RequestAccessor,
        environ: Mapping[str, str] | None = None,
    ) -> RequestScope:
        """Open the server span for ``accessor`` and build its request scope."""
        self.propagator.handle_inbound(accessor)
        return RequestScope.from_request(accessor, environ)

    async def finish_inbound(self, scope: RequestScope, outcome: int | BaseException) -> None:
        if scope.server_span is not None:
            await self.propagator.finish(scope.server_span, outcome)

    # -- downstream ---------------------------------------------------------

    def decide(self, scope: RequestScope) -> FaultDecision:
        return self.injector.decide(scope.fault_context)

    async def run(
        self,
        plan: OrchestrationPlan,
        scope: RequestScope,
        initial_input: Any = None,
    ) -> PlanResult:
        return await self._orchestrator.run(plan, initial_input, scope=scope)

    async def call(self, scope: RequestScope, options: CallOptions, *, inject_faults: bool = False) -> Any:
        return await self._caller.call(scope, options, inject_faults=inject_faults)

    def stream(self, scope: RequestScope, url: str) -> AsyncIterator[bytes]:
        return self._caller.stream(scope, url)

    async def aclose(self) -> None:
        await self._transport.aclose()
        if self.collector is not None:
            try:
                await self.collector.flush()
            except Exception as exc:
                logger.warning("final collector flush failed: %s", exc)
            aclose = getattr(self.collector, "aclose", None)
            if aclose is not None:
                await aclose()
