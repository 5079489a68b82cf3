"""
HTTP transports: streamable HTTP and the older SSE transport.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from mcp.client.sse import sse_client
from mcp.client.streamable_http import streamablehttp_client

from ..config import MCPTransportConfig
from .base import TransportHandle

logger = logging.getLogger(__name__)


@asynccontextmanager
async def create_streamable_http_transport(
    config: MCPTransportConfig, server_name: str = "mcp"
) -> AsyncIterator[TransportHandle]:
    """Open a streamable HTTP session to ``config.url``."""
    logger.info("Opening streamable HTTP transport for %s: %s", server_name, config.url)
    async with streamablehttp_client(config.url, headers=config.request_headers()) as (
        read_stream,
        write_stream,
        _get_session_id,
    ):
        yield TransportHandle(
            transport_type="streamable_http",
            read_stream=read_stream,
            write_stream=write_stream,
            description=config.url,
        )
    logger.info("Streamable HTTP transport for %s closed", server_name)


@asynccontextmanager
async def create_sse_transport(
    config: MCPTransportConfig, server_name: str = "mcp"
) -> AsyncIterator[TransportHandle]:
    """Open an SSE stream to ``config.url``."""
    logger.info("Opening SSE transport for %s: %s", server_name, config.url)
    async with sse_client(config.url, headers=config.request_headers()) as (
        read_stream,
        write_stream,
    ):
        yield TransportHandle(
            transport_type="sse",
            read_stream=read_stream,
            write_stream=write_stream,
            description=config.url,
        )
    logger.info("SSE transport for %s closed", server_name)
