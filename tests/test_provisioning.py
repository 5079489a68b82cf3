"""
Tests for StrataProvisioner against a mocked provisioning API.
"""

import json

import httpx
import pytest

from mcp_relay.mcp.config import MCPTransportConfig, ProvisioningConfig
from mcp_relay.mcp.exceptions import MCPProvisioningError
from mcp_relay.mcp.provisioning import StrataProvisioner

API_URL = "https://provision.test/mcp-server/strata/create"


def _provisioner(handler) -> StrataProvisioner:
    config = ProvisioningConfig(api_url=API_URL, api_key="sk-test", servers=["Mem0", "Gmail"])
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return StrataProvisioner(config, http_client=client)


BASE = MCPTransportConfig(type="streamable_http", headers={"X-Team": "relay"})


class TestStrataProvisioner:
    @pytest.mark.asyncio
    async def test_returns_endpoint_from_response(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"strataServerUrl": "https://strata.test/u/alice"})

        endpoint = await _provisioner(handler).provision("alice", BASE)

        assert endpoint.type == "streamable_http"
        assert endpoint.url == "https://strata.test/u/alice"
        assert endpoint.headers == {"X-Team": "relay"}
        assert seen["auth"] == "Bearer sk-test"
        assert seen["body"] == {"userId": "alice", "servers": ["Mem0", "Gmail"]}

    @pytest.mark.asyncio
    async def test_keeps_sse_transport_type(self):
        def handler(request):
            return httpx.Response(200, json={"serverUrl": "https://strata.test/sse"})

        endpoint = await _provisioner(handler).provision(
            "alice", MCPTransportConfig(type="sse")
        )
        assert endpoint.type == "sse"

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        def handler(request):
            return httpx.Response(403, text="invalid api key")

        with pytest.raises(MCPProvisioningError) as exc_info:
            await _provisioner(handler).provision("alice", BASE)

        assert exc_info.value.status_code == 403
        assert exc_info.value.identity == "alice"
        assert "HTTP 403" in exc_info.value.get_troubleshooting_message()

    @pytest.mark.asyncio
    async def test_response_without_url(self):
        def handler(request):
            return httpx.Response(200, json={"ok": True})

        with pytest.raises(MCPProvisioningError, match="server URL"):
            await _provisioner(handler).provision("alice", BASE)

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        def handler(request):
            return httpx.Response(200, text="<html>")

        with pytest.raises(MCPProvisioningError, match="invalid JSON"):
            await _provisioner(handler).provision("alice", BASE)

    @pytest.mark.asyncio
    async def test_network_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(MCPProvisioningError, match="connection refused"):
            await _provisioner(handler).provision("alice", BASE)
