"""Shared fixtures for edge_gateway tests."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import Any, AsyncIterator

import pytest
from fastapi.testclient import TestClient

from edge_gateway import create_gateway
from edge_gateway.adapters.web_fastapi.app import create_app
from edge_gateway.faults.injector import FaultInjector
from edge_gateway.orchestration.caller import DownstreamCaller
from edge_gateway.orchestration.orchestrator import Orchestrator
from edge_gateway.orchestration.scope import RequestScope
from edge_gateway.settings import GatewaySettings
from edge_gateway.tracing.in_memory import InMemorySpanCollector
from edge_gateway.tracing.propagation import Propagator, StaticRequest
from edge_gateway.tracing.spans import SpanManager
from edge_gateway.transport.interface import CallOptions, DownstreamResponse, HttpTransport


# -- fake transport ---------------------------------------------------------

@dataclass
class Scripted:
    status_code: int = 200
    body: bytes = b""
    delay: float = 0.0
    raises: BaseException | None = None


class FakeTransport(HttpTransport):
    """Answers from a script keyed on ``(METHOD, url)``; records every call."""

    def __init__(self) -> None:
        self._routes: dict[tuple[str, str], Scripted] = {}
        self.calls: list[CallOptions] = []
        self.finished: list[str] = []
        self.closed = False

    def route(
        self,
        method: str,
        url: str,
        status: int = 200,
        json_body: Any = None,
        body: bytes = b"",
        delay: float = 0.0,
        raises: BaseException | None = None,
    ) -> None:
        if json_body is not None:
            body = json.dumps(json_body).encode()
        self._routes[(method.upper(), url)] = Scripted(status, body, delay, raises)

    def _lookup(self, options: CallOptions) -> Scripted:
        script = self._routes.get((options.method.upper(), options.url))
        if script is None:
            return Scripted(status_code=404)
        return script

    def calls_to(self, url: str) -> list[CallOptions]:
        return [c for c in self.calls if c.url == url]

    async def call(self, options: CallOptions) -> DownstreamResponse:
        self.calls.append(options)
        script = self._lookup(options)
        if script.delay:
            await asyncio.sleep(script.delay)
        self.finished.append(options.url)
        if script.raises is not None:
            raise script.raises
        return DownstreamResponse(
            status_code=script.status_code,
            headers={"content-type": "application/json"},
            body=script.body,
        )

    async def stream(self, options: CallOptions) -> AsyncIterator[bytes]:
        self.calls.append(options)
        script = self._lookup(options)
        if script.raises is not None:
            raise script.raises
        for i in range(0, len(script.body), 4):
            yield script.body[i:i + 4]

    async def aclose(self) -> None:
        self.closed = True


# -- fixtures ---------------------------------------------------------------

@pytest.fixture
def collector():
    return InMemorySpanCollector()


@pytest.fixture
def spans(collector):
    return SpanManager(collector)


@pytest.fixture
def propagator(spans):
    return Propagator(spans, service_name="front-end", tracestate_vendor="edgegw")


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def injector():
    async def no_sleep(seconds: float) -> None:
        return None

    return FaultInjector(rng=lambda: 0.99, sleep=no_sleep)


@pytest.fixture
def orchestrator(transport, propagator, injector):
    return Orchestrator(DownstreamCaller(transport, propagator, injector))


@pytest.fixture
def inbound_headers():
    return {
        "X-B3-TraceId": "463ac35c9f6413ad",
        "X-B3-SpanId": "a2fb4a1d1a96d312",
        "X-B3-Sampled": "1",
        "X-Request-Id": "req-42",
    }


@pytest.fixture
def make_scope(propagator):
    def _make(headers: dict[str, str] | None = None, environ: dict[str, str] | None = None) -> RequestScope:
        accessor = StaticRequest(headers or {}, "GET", "/test")
        propagator.handle_inbound(accessor)
        return RequestScope.from_request(accessor, environ or {})

    return _make


@pytest.fixture
def scope(make_scope, inbound_headers):
    return make_scope(inbound_headers)


@pytest.fixture
def gateway(transport, collector, injector):
    return create_gateway(
        GatewaySettings(trace_collector="memory"),
        transport=transport,
        collector=collector,
        injector=injector,
    )


@pytest.fixture
def client(gateway):
    return TestClient(create_app(gateway))
