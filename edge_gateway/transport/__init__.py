from edge_gateway.transport.interface import CallOptions, DownstreamResponse, HttpTransport
from edge_gateway.transport.httpx_transport import HttpxTransport

__all__ = ["CallOptions", "DownstreamResponse", "HttpTransport", "HttpxTransport"]
