"""httpx-backed transport."""

from __future__ import annotations

import logging
from typing import AsyncIterator

import httpx

from edge_gateway.errors import TransportError, UpstreamError
from edge_gateway.transport.interface import CallOptions, DownstreamResponse, HttpTransport

logger = logging.getLogger(__name__)


class HttpxTransport(HttpTransport):
    def __init__(self, timeout: float = 10.0, client: httpx.AsyncClient | None = None) -> None:
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def call(self, options: CallOptions) -> DownstreamResponse:
        try:
            resp = await self._client.request(
                options.method,
                options.url,
                headers=options.headers,
                json=options.json,
                params=options.params,
                timeout=options.timeout if options.timeout is not None else httpx.USE_CLIENT_DEFAULT,
            )
        except httpx.TimeoutException as exc:
            raise TransportError(f"Timed out calling {options.url}", url=options.url) from exc
        except httpx.TransportError as exc:
            raise TransportError(f"Error calling {options.url}: {exc}", url=options.url) from exc

        logger.debug("%s %s -> %d", options.method, options.url, resp.status_code)
        return DownstreamResponse(
            status_code=resp.status_code,
            headers=dict(resp.headers),
            body=resp.content,
        )

    async def stream(self, options: CallOptions) -> AsyncIterator[bytes]:
        try:
            async with self._client.stream(
                options.method,
                options.url,
                headers=options.headers,
                params=options.params,
            ) as resp:
                if resp.status_code >= 400:
                    raise UpstreamError(
                        f"{options.url} returned {resp.status_code}",
                        status_code=resp.status_code,
                    )
                async for chunk in resp.aiter_bytes():
                    yield chunk
        except httpx.TransportError as exc:
            raise TransportError(f"Error streaming {options.url}: {exc}", url=options.url) from exc

    async def aclose(self) -> None:
        await self._client.aclose()
