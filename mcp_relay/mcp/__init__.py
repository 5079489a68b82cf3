"""
MCP (Model Context Protocol) session management for MCP Relay.

This module opens sessions to MCP servers over stdio, streamable HTTP or SSE,
keeps one session per identity key, and exposes their tools, resources and
prompts.
"""

from .config import MCPServerConfig, MCPTransportConfig, ProvisioningConfig
from .exceptions import (
    MCPConfigurationError,
    MCPError,
    MCPInvalidRequestError,
    MCPNotConfiguredError,
    MCPOperationError,
    MCPProtocolError,
    MCPProvisioningError,
    MCPResourceNotFoundError,
    MCPTimeoutError,
    MCPToolNotFoundError,
    MCPTransportError,
)
from .facades import (
    BrowserAutomation,
    DatabaseInspector,
    RemoteTool,
    prefixed_tools,
    tool_callables,
)
from .manager import MCPSessionManager
from .provisioning import EndpointProvisioner, StrataProvisioner
from .registry import MCPServerRegistry
from .session import GLOBAL_IDENTITY, MCPSession, SessionState

__all__ = [
    "GLOBAL_IDENTITY",
    "BrowserAutomation",
    "DatabaseInspector",
    "EndpointProvisioner",
    "MCPConfigurationError",
    "MCPError",
    "MCPInvalidRequestError",
    "MCPNotConfiguredError",
    "MCPOperationError",
    "MCPProtocolError",
    "MCPProvisioningError",
    "MCPResourceNotFoundError",
    "MCPServerConfig",
    "MCPServerRegistry",
    "MCPSession",
    "MCPSessionManager",
    "MCPTimeoutError",
    "MCPToolNotFoundError",
    "MCPTransportConfig",
    "MCPTransportError",
    "ProvisioningConfig",
    "RemoteTool",
    "SessionState",
    "StrataProvisioner",
    "prefixed_tools",
    "tool_callables",
]
