"""HTTP transport ABC and the value types crossing it."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator

from edge_gateway.errors import UpstreamError


@dataclass
class CallOptions:
    """One outbound request. ``headers`` is filled in before the call fires."""

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    json: Any = None
    params: dict[str, Any] | None = None
    timeout: float | None = None


@dataclass
class DownstreamResponse:
    status_code: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        """Parsed body; an unparsable body is an upstream error."""
        if not self.body:
            return None
        try:
            return json.loads(self.body)
        except ValueError as exc:
            raise UpstreamError(
                f"Invalid JSON from upstream: {exc}",
                status_code=502,
                upstream_status=self.status_code,
            ) from exc


class HttpTransport(ABC):
    """Async HTTP client collaborator.

    Implementations raise ``TransportError`` for connection failures and
    timeouts, and return every HTTP response (any status) as-is.
    """

    @abstractmethod
    async def call(self, options: CallOptions) -> DownstreamResponse: ...

    @abstractmethod
    def stream(self, options: CallOptions) -> AsyncIterator[bytes]: ...

    async def aclose(self) -> None:
        return None
