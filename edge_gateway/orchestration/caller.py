"""A single outbound call, wrapped by fault injection and then by tracing."""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Callable

from edge_gateway.faults.injector import FaultInjector
from edge_gateway.faults.models import NO_FAULT
from edge_gateway.orchestration.scope import RequestScope
from edge_gateway.tracing.propagation import Propagator
from edge_gateway.transport.interface import CallOptions, DownstreamResponse, HttpTransport

logger = logging.getLogger(__name__)


class DownstreamCaller:
    """Issues traced downstream calls.

    The client span is opened before the fault decision is applied and is
    finished on every path, so a pre-empted call still shows up in the
    trace with its synthetic failure.
    """

    def __init__(
        self,
        transport: HttpTransport,
        propagator: Propagator,
        injector: FaultInjector,
    ) -> None:
        self._transport = transport
        self._propagator = propagator
        self._injector = injector

    @property
    def transport(self) -> HttpTransport:
        return self._transport

    async def call(
        self,
        scope: RequestScope,
        options: CallOptions,
        *,
        inject_faults: bool = False,
        handle: Callable[[DownstreamResponse], Any] | None = None,
    ) -> Any:
        """Run ``options`` and return ``handle(response)`` (or the response).

        The span is finished after ``handle`` so a response the handler
        rejects is recorded as an error on the call that produced it.
        """
        decision = self._injector.decide(scope.fault_context) if inject_faults else NO_FAULT
        span, trace_headers = self._propagator.start_client(
            scope.server_span, options.method, options.url, fallback=scope.inbound_context,
        )
        options.headers.update(scope.baggage)
        options.headers.update(trace_headers)

        try:
            self._injector.before_call(decision, path=options.url)
            response = await self._transport.call(options)
            result = handle(response) if handle is not None else response
            await self._injector.before_response(decision, path=options.url)
        except BaseException as exc:
            await self._propagator.finish(span, exc)
            raise
        await self._propagator.finish(span, response.status_code)
        return result

    async def stream(
        self,
        scope: RequestScope,
        url: str,
        method: str = "GET",
    ) -> AsyncIterator[bytes]:
        """Relay a downstream byte stream; the span closes when it is exhausted."""
        span, trace_headers = self._propagator.start_client(
            scope.server_span, method, url, fallback=scope.inbound_context,
        )
        options = CallOptions(method=method.upper(), url=url, headers={**scope.baggage, **trace_headers})
        outcome: int | BaseException = 200
        try:
            async for chunk in self._transport.stream(options):
                yield chunk
        except Exception as exc:
            outcome = exc
            raise
        finally:
            await self._propagator.finish(span, outcome)
