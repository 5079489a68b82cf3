"""
Tests for MCPSession connection lifecycle and capability calls.
"""

import asyncio

import pytest
from conftest import FakeServer, make_config
from mcp import types
from mcp.shared.exceptions import McpError

from mcp_relay.mcp.exceptions import (
    MCPInvalidRequestError,
    MCPNotConfiguredError,
    MCPOperationError,
    MCPProtocolError,
    MCPResourceNotFoundError,
    MCPTimeoutError,
    MCPToolNotFoundError,
    MCPTransportError,
)
from mcp_relay.mcp.session import MCPSession, SessionState


def _session(server: FakeServer, **config_overrides) -> MCPSession:
    config = make_config(**config_overrides)
    return MCPSession(
        config.name,
        config,
        "user-1",
        transport_factory=server.transport_factory(),
        client_factory=server.client_factory(),
    )


class ClosedResourceError(Exception):
    pass


class TestConnect:
    @pytest.mark.asyncio
    async def test_handshake_records_server_details(self, fake_server):
        session = _session(fake_server)
        await session.ensure_connected()

        assert session.state is SessionState.CONNECTED
        assert session.server_info.name == "fake-server"
        assert session.capabilities.tools is not None
        assert fake_server.client_infos[0].name == "mcp-relay-fake"
        await session.close()

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_transport(self, fake_server):
        fake_server.initialize_delay = 0.02
        session = _session(fake_server)

        clients = await asyncio.gather(*(session.ensure_connected() for _ in range(10)))

        assert fake_server.opens == 1
        assert all(client is clients[0] for client in clients)
        await session.close()

    @pytest.mark.asyncio
    async def test_missing_credentials_never_open_transport(self, fake_server, monkeypatch):
        monkeypatch.delenv("FAKE_RELAY_TOKEN", raising=False)
        session = _session(fake_server, required_env=["FAKE_RELAY_TOKEN"])

        with pytest.raises(MCPNotConfiguredError) as exc_info:
            await session.list_tools()

        assert exc_info.value.missing == ["FAKE_RELAY_TOKEN"]
        assert fake_server.opens == 0

    @pytest.mark.asyncio
    async def test_placeholder_credential_counts_as_missing(self, fake_server, monkeypatch):
        monkeypatch.setenv("FAKE_RELAY_TOKEN", "YOUR_FAKE_RELAY_TOKEN_HERE")
        session = _session(fake_server, required_env=["FAKE_RELAY_TOKEN"])

        with pytest.raises(MCPNotConfiguredError):
            await session.ensure_connected()
        assert fake_server.opens == 0

    @pytest.mark.asyncio
    async def test_transport_failure_leaves_session_reusable(self, fake_server):
        fake_server.open_error = OSError("spawn failed")
        session = _session(fake_server)

        with pytest.raises(MCPTransportError, match="spawn failed"):
            await session.ensure_connected()
        assert session.state is SessionState.DISCONNECTED

        fake_server.open_error = None
        await session.ensure_connected()
        assert session.is_connected
        assert fake_server.opens == 2
        await session.close()

    @pytest.mark.asyncio
    async def test_handshake_rejection_is_operation_error(self, fake_server):
        fake_server.initialize_error = McpError(
            types.ErrorData(code=-32602, message="Unsupported protocol version")
        )
        session = _session(fake_server)

        with pytest.raises(MCPOperationError) as exc_info:
            await session.ensure_connected()

        assert exc_info.value.operation == "initialize"
        assert fake_server.closes == 1

    @pytest.mark.asyncio
    async def test_slow_handshake_is_transport_error(self, fake_server):
        fake_server.initialize_delay = 1.0
        session = _session(fake_server, timeout_seconds=0.05)

        with pytest.raises(MCPTransportError, match="handshake"):
            await session.ensure_connected()
        assert session.state is SessionState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, fake_server):
        session = _session(fake_server)
        await session.ensure_connected()

        await session.close()
        await session.close()

        assert fake_server.closes == 1
        assert session.state is SessionState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_close_without_connect_is_noop(self, fake_server):
        session = _session(fake_server)
        await session.close()
        assert fake_server.opens == 0

    @pytest.mark.asyncio
    async def test_close_during_handshake_cancels_attempt(self, fake_server):
        fake_server.initialize_delay = 1.0
        session = _session(fake_server)
        waiter = asyncio.create_task(session.ensure_connected())
        await asyncio.sleep(0.01)

        await session.close()

        with pytest.raises(MCPTransportError):
            await waiter
        assert session.state is SessionState.DISCONNECTED


class TestTermination:
    @pytest.mark.asyncio
    async def test_terminated_transport_reconnects_on_next_call(self, fake_server):
        session = _session(fake_server)
        await session.list_tools()

        fake_server.handles[0].terminated.set()
        await session.wait_closed()
        assert session.state is SessionState.DISCONNECTED

        tools = await session.list_tools()
        assert [t.name for t in tools] == ["search", "echo"]
        assert fake_server.opens == 2
        await session.close()

    @pytest.mark.asyncio
    async def test_terminated_transport_is_not_reused_before_runner_exits(self, fake_server):
        session = _session(fake_server)
        await session.list_tools()

        fake_server.handles[0].terminated.set()
        assert not session.is_live

        await session.list_tools()
        assert fake_server.opens == 2
        assert session.is_connected
        assert not fake_server.handles[1].is_terminated
        await session.close()

    @pytest.mark.asyncio
    async def test_closed_channel_during_call_marks_session_disconnected(self, fake_server):
        session = _session(fake_server)
        await session.ensure_connected()
        fake_server.call_error = ClosedResourceError()

        with pytest.raises(MCPTransportError):
            await session.call_tool("search", {"query": "x"})
        assert not session.is_connected

        fake_server.call_error = None
        await session.wait_closed()
        await session.call_tool("search", {"query": "x"})
        assert fake_server.opens == 2
        await session.close()


class TestCapabilities:
    @pytest.mark.asyncio
    async def test_call_tool_passes_result_through(self, fake_server):
        session = _session(fake_server)
        result = await session.call_tool("echo", {"a": 1})

        assert isinstance(result, types.CallToolResult)
        assert result.content[0].text == '{"a": 1}'
        assert fake_server.calls == [("echo", {"a": 1})]
        await session.close()

    @pytest.mark.asyncio
    async def test_progress_callback_receives_updates(self, fake_server):
        session = _session(fake_server)
        updates = []

        await session.call_tool("echo", {}, progress_callback=lambda p, t: updates.append((p, t)))

        assert updates == [(1.0, 1.0)]
        await session.close()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["", "   "])
    async def test_empty_tool_name_rejected_before_connecting(self, fake_server, name):
        session = _session(fake_server)

        with pytest.raises(MCPInvalidRequestError):
            await session.call_tool(name)

        assert fake_server.opens == 0

    @pytest.mark.asyncio
    async def test_unknown_tool_is_tool_not_found(self, fake_server):
        session = _session(fake_server)

        with pytest.raises(MCPToolNotFoundError) as exc_info:
            await session.call_tool("teleport")

        assert exc_info.value.tool_name == "teleport"
        assert session.is_connected
        await session.close()

    @pytest.mark.asyncio
    async def test_call_timeout_does_not_poison_session(self, fake_server):
        session = _session(fake_server, timeout_seconds=0.05)
        await session.ensure_connected()
        fake_server.call_delay = 1.0

        with pytest.raises(MCPTimeoutError) as exc_info:
            await session.call_tool("search", {"query": "slow"})
        assert exc_info.value.timeout_seconds == 0.05

        fake_server.call_delay = 0.0
        await session.call_tool("search", {"query": "fast"})
        assert session.is_connected
        assert fake_server.opens == 1
        await session.close()

    @pytest.mark.asyncio
    async def test_per_call_deadline_overrides_server_timeout(self, fake_server):
        session = _session(fake_server, timeout_seconds=5.0)
        await session.ensure_connected()
        fake_server.call_delay = 1.0

        with pytest.raises(MCPTimeoutError) as exc_info:
            await session.call_tool("search", {"query": "slow"}, timeout=0.05)
        assert exc_info.value.timeout_seconds == 0.05

        fake_server.call_delay = 0.0
        await session.call_tool("search", {"query": "fast"})
        await session.list_tools(timeout=0.5)
        assert session.is_connected
        assert fake_server.opens == 1
        await session.close()

    @pytest.mark.asyncio
    async def test_remote_parse_error_is_protocol_error(self, fake_server):
        session = _session(fake_server)
        fake_server.call_error = McpError(types.ErrorData(code=-32700, message="Parse error"))

        with pytest.raises(MCPProtocolError):
            await session.call_tool("search")
        await session.close()

    @pytest.mark.asyncio
    async def test_read_resource(self, fake_server):
        session = _session(fake_server)

        resources = await session.list_resources()
        result = await session.read_resource(str(resources[0].uri))

        assert result.contents[0].text == "remember the milk"
        await session.close()

    @pytest.mark.asyncio
    async def test_missing_resource_is_resource_not_found(self, fake_server):
        session = _session(fake_server)

        with pytest.raises(MCPResourceNotFoundError) as exc_info:
            await session.read_resource("file:///missing.txt")

        assert exc_info.value.uri == "file:///missing.txt"
        await session.close()

    @pytest.mark.asyncio
    async def test_empty_resource_uri_rejected_before_connecting(self, fake_server):
        session = _session(fake_server)

        with pytest.raises(MCPInvalidRequestError):
            await session.read_resource("")
        assert fake_server.opens == 0

    @pytest.mark.asyncio
    async def test_prompts(self, fake_server):
        session = _session(fake_server)

        prompts = await session.list_prompts()
        result = await session.get_prompt("greet", {"who": "Ada"})

        assert prompts[0].name == "greet"
        assert result.messages[0].content.text == "Hello Ada"
        await session.close()

    @pytest.mark.asyncio
    async def test_status_snapshot(self, fake_server):
        session = _session(fake_server)
        assert session.get_status()["state"] == "disconnected"

        await session.send_ping()
        status = session.get_status()

        assert status["connected"] is True
        assert status["identity"] == "user-1"
        assert status["server_info"] == {"name": "fake-server", "version": "1.0.0"}
        assert status["capabilities"]["tools"] is True
        assert status["capabilities"]["prompts"] is False
        await session.close()
