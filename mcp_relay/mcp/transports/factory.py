"""
Transport factory for creating MCP transport instances.

Provides a unified interface for creating different transport types.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from ..config import MCPTransportConfig
from ..exceptions import MCPError, MCPTransportError
from ..utils import leaf_exception
from .base import TransportHandle
from .http_transport import create_sse_transport, create_streamable_http_transport
from .stdio_transport import create_stdio_transport


class MCPTransportFactory:
    """Factory for creating MCP transport instances based on configuration."""

    @staticmethod
    @asynccontextmanager
    async def create_transport(
        config: MCPTransportConfig, server_name: str = "mcp"
    ) -> AsyncIterator[TransportHandle]:
        """
        Open a transport based on configuration.

        This is an async context manager yielding a ``TransportHandle``;
        leaving it closes the channel.

        Raises:
            MCPTransportError: If the transport type is unsupported or the
                process/connection cannot be established

        Example:
            async with MCPTransportFactory.create_transport(config) as handle:
                async with ClientSession(handle.read_stream, handle.write_stream) as session:
                    await session.initialize()
        """
        try:
            config.validate()
        except ValueError as e:
            raise MCPTransportError(
                str(e), transport_type=config.type, server_name=server_name
            ) from e

        if config.type == "stdio":
            transport_cm = create_stdio_transport(config, server_name)
        elif config.type == "streamable_http":
            transport_cm = create_streamable_http_transport(config, server_name)
        elif config.type == "sse":
            transport_cm = create_sse_transport(config, server_name)
        else:
            raise MCPTransportError(
                f"Unsupported transport type: {config.type}",
                transport_type=config.type,
                server_name=server_name,
                details={"supported_types": ["stdio", "streamable_http", "sse"]},
            )

        try:
            async with transport_cm as handle:
                yield handle
        except Exception as e:
            # Task groups wrap whatever the body raised; keep our own errors intact
            leaf = leaf_exception(e)
            if isinstance(leaf, MCPError):
                raise leaf from None
            raise MCPTransportError(
                f"Transport '{config.type}' for {server_name} failed: {leaf}",
                transport_type=config.type,
                server_name=server_name,
                details={"error": str(leaf), "error_type": type(leaf).__name__},
            ) from e
