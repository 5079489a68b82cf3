"""
MCP transport implementations for different connection types.

Supports stdio, streamable HTTP, and SSE transports for connecting to MCP servers.
"""

from .base import TransportHandle
from .factory import MCPTransportFactory
from .http_transport import create_sse_transport, create_streamable_http_transport
from .stdio_transport import StderrFilter, create_stdio_transport

__all__ = [
    "MCPTransportFactory",
    "StderrFilter",
    "TransportHandle",
    "create_sse_transport",
    "create_stdio_transport",
    "create_streamable_http_transport",
]
