"""Response handlers shared by the storefront flows."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from edge_gateway.transport.interface import DownstreamResponse


@dataclass
class Relayed:
    """A downstream response passed back to the browser unchanged."""

    status_code: int
    body: bytes = b""
    content_type: str = "application/json"


def relay(response: DownstreamResponse, step_input: Any) -> Relayed:
    return Relayed(
        status_code=response.status_code,
        body=response.body,
        content_type=response.headers.get("content-type", "application/json"),
    )


def embedded(body: Any, key: str) -> list[Any]:
    """``body["_embedded"][key]`` as a list, or ``[]`` if any level is missing."""
    if not isinstance(body, dict):
        return []
    items = (body.get("_embedded") or {}).get(key)
    return items if isinstance(items, list) else []


def relay_ok(response: DownstreamResponse, step_input: Any) -> Relayed:
    """Account pass-throughs answer 200 with whatever body the user service sent."""
    relayed = relay(response, step_input)
    relayed.status_code = 200
    return relayed
