"""
Pytest configuration and fixtures for MCP Relay tests.
"""

import asyncio
import json
import os
from contextlib import asynccontextmanager
from typing import Any

import pytest
from hypothesis import Verbosity, settings
from mcp import types
from mcp.shared.exceptions import McpError

from mcp_relay.mcp.config import MCPServerConfig, MCPTransportConfig
from mcp_relay.mcp.transports import TransportHandle

# Configure hypothesis settings for property-based testing
settings.register_profile(
    "default",
    max_examples=100,
    verbosity=Verbosity.normal,
    deadline=None,  # Disable deadline for slow operations
)

settings.register_profile(
    "ci",
    max_examples=200,
    verbosity=Verbosity.normal,
    deadline=None,
)

settings.register_profile(
    "dev",
    max_examples=10,
    verbosity=Verbosity.verbose,
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "default"))


class FakeServer:
    """
    Scripted MCP server.

    ``transport_factory`` and ``client_factory`` plug into MCPSession /
    MCPSessionManager and count how often the transport is opened.
    """

    def __init__(self):
        self.tools = [
            types.Tool(
                name="search",
                description="Search the index",
                inputSchema={"type": "object", "properties": {"query": {"type": "string"}}},
            ),
            types.Tool(name="echo", description="Echo arguments", inputSchema={"type": "object"}),
        ]
        self.resources = {"file:///notes.txt": "remember the milk"}
        self.opens = 0
        self.closes = 0
        self.endpoints: list[MCPTransportConfig] = []
        self.handles: list[TransportHandle] = []
        self.client_infos: list[types.Implementation] = []
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.list_tools_calls = 0

        self.open_error: BaseException | None = None
        self.initialize_error: BaseException | None = None
        self.call_error: BaseException | None = None
        self.initialize_delay = 0.0
        self.call_delay = 0.0

    def transport_factory(self):
        @asynccontextmanager
        async def open_transport(endpoint: MCPTransportConfig, server_name: str):
            self.opens += 1
            self.endpoints.append(endpoint)
            if self.open_error is not None:
                raise self.open_error
            handle = TransportHandle(
                transport_type=endpoint.type, read_stream=object(), write_stream=object()
            )
            self.handles.append(handle)
            try:
                yield handle
            finally:
                self.closes += 1

        return open_transport

    def client_factory(self):
        @asynccontextmanager
        async def open_client(read_stream, write_stream, client_info):
            self.client_infos.append(client_info)
            yield FakeClient(self)

        return open_client


class FakeClient:
    """Stands in for mcp.ClientSession, answering with real mcp.types models."""

    def __init__(self, server: FakeServer):
        self.server = server

    async def initialize(self) -> types.InitializeResult:
        if self.server.initialize_delay:
            await asyncio.sleep(self.server.initialize_delay)
        if self.server.initialize_error is not None:
            raise self.server.initialize_error
        return types.InitializeResult(
            protocolVersion="2025-03-26",
            capabilities=types.ServerCapabilities(
                tools=types.ToolsCapability(), resources=types.ResourcesCapability()
            ),
            serverInfo=types.Implementation(name="fake-server", version="1.0.0"),
        )

    async def list_tools(self) -> types.ListToolsResult:
        self.server.list_tools_calls += 1
        return types.ListToolsResult(tools=list(self.server.tools))

    async def call_tool(self, name, arguments=None, read_timeout_seconds=None, progress_callback=None):
        self.server.calls.append((name, arguments or {}))
        if self.server.call_delay:
            await asyncio.sleep(self.server.call_delay)
        if self.server.call_error is not None:
            raise self.server.call_error
        if name not in {tool.name for tool in self.server.tools}:
            raise McpError(types.ErrorData(code=-32602, message=f"Unknown tool: {name}"))
        if progress_callback is not None:
            await progress_callback(1.0, 1.0, None)
        return types.CallToolResult(
            content=[types.TextContent(type="text", text=json.dumps(arguments or {}))]
        )

    async def list_resources(self) -> types.ListResourcesResult:
        return types.ListResourcesResult(
            resources=[types.Resource(uri=uri, name=uri.rsplit("/", 1)[-1]) for uri in self.server.resources]
        )

    async def read_resource(self, uri) -> types.ReadResourceResult:
        text = self.server.resources.get(str(uri))
        if text is None:
            raise McpError(types.ErrorData(code=-32002, message=f"Resource not found: {uri}"))
        return types.ReadResourceResult(
            contents=[types.TextResourceContents(uri=uri, text=text, mimeType="text/plain")]
        )

    async def list_prompts(self) -> types.ListPromptsResult:
        return types.ListPromptsResult(
            prompts=[
                types.Prompt(
                    name="greet",
                    description="Say hello",
                    arguments=[types.PromptArgument(name="who", required=True)],
                )
            ]
        )

    async def get_prompt(self, name, arguments=None) -> types.GetPromptResult:
        who = (arguments or {}).get("who", "world")
        return types.GetPromptResult(
            messages=[
                types.PromptMessage(
                    role="user", content=types.TextContent(type="text", text=f"Hello {who}")
                )
            ]
        )

    async def send_ping(self) -> types.EmptyResult:
        return types.EmptyResult()


def make_config(name: str = "fake", **overrides: Any) -> MCPServerConfig:
    """A stdio server config that needs no credentials."""
    transport = overrides.pop(
        "transport", MCPTransportConfig(type="stdio", command="fake-mcp-server", args=["--quiet"])
    )
    return MCPServerConfig(name=name, transport=transport, **overrides)


@pytest.fixture
def fake_server() -> FakeServer:
    return FakeServer()
