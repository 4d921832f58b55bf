"""CLI JSON adapter: decodes inbound trace headers and shows what a child call would send."""

from __future__ import annotations

import argparse
import json
import sys
from typing import Mapping

from edge_gateway.settings import GatewaySettings
from edge_gateway.tracing.propagation import Propagator, StaticRequest
from edge_gateway.tracing.spans import SpanManager


def parse_header_args(pairs: list[str]) -> dict[str, str]:
    """``["X-B3-TraceId: abc", ...]`` -> ``{"X-B3-TraceId": "abc", ...}``."""
    headers: dict[str, str] = {}
    for pair in pairs:
        name, sep, value = pair.partition(":")
        if not sep or not name.strip():
            raise ValueError(f"expected 'Name: value', got {pair!r}")
        headers[name.strip()] = value.strip()
    return headers


def describe(headers: Mapping[str, str], url: str, settings: GatewaySettings | None = None) -> dict:
    settings = settings or GatewaySettings.from_env()
    propagator = Propagator(
        SpanManager(),
        service_name=settings.service_name,
        tracestate_vendor=settings.tracestate_vendor,
        trace_id_128bit=settings.trace_id_128bit,
    )
    fmt = propagator.detect_format(headers)
    server_span = propagator.handle_inbound(StaticRequest(headers, "GET", "/"))
    client_span, outbound = propagator.start_client(server_span, "GET", url)
    return {
        "format": fmt.value if fmt is not None else None,
        "inbound": server_span.context.model_dump(),
        "child": client_span.context.model_dump(),
        "child_span_name": client_span.name,
        "outbound_headers": outbound,
    }


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="edge-trace",
        description="Decode inbound trace headers (B3 multi, B3 single, W3C).",
    )
    parser.add_argument("headers", nargs="*", help="'Name: value' pairs; omit to read a JSON object from stdin")
    parser.add_argument("--url", default="http://carts/carts/1/items", help="target of the simulated child call")
    args = parser.parse_args(argv)

    if args.headers:
        try:
            headers = parse_header_args(args.headers)
        except ValueError as exc:
            parser.error(str(exc))
    else:
        raw = sys.stdin.read().strip()
        if not raw:
            print("Usage: edge-trace 'b3: <trace>-<span>-1'  OR  echo '{\"traceparent\":\"...\"}' | edge-trace", file=sys.stderr)
            sys.exit(1)
        try:
            headers = json.loads(raw)
        except json.JSONDecodeError as exc:
            print(f"stdin is not a JSON object: {exc}", file=sys.stderr)
            sys.exit(1)
        if not isinstance(headers, dict):
            print("stdin is not a JSON object", file=sys.stderr)
            sys.exit(1)
        headers = {str(k): str(v) for k, v in headers.items()}

    print(json.dumps(describe(headers, args.url), indent=2, default=str), flush=True)


if __name__ == "__main__":
    main()
