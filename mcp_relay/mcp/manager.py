"""
MCP Session Manager for MCP Relay.

Keeps one session per identity key for a single configured server.
"""

import functools
import logging
from types import TracebackType
from typing import Any

from mcp import types

from .config import MCPServerConfig, MCPTransportConfig
from .exceptions import (
    MCPError,
    MCPInvalidRequestError,
    MCPNotConfiguredError,
    MCPProvisioningError,
)
from .provisioning import EndpointProvisioner, StrataProvisioner
from .session import GLOBAL_IDENTITY, ClientFactory, MCPSession, TransportOpener

logger = logging.getLogger(__name__)


class MCPSessionManager:
    """
    Registry of sessions to one MCP server, keyed by identity.

    Identity keys are opaque: a user id for per-user sessions, or
    ``GLOBAL_IDENTITY`` for a process-wide one. At most one live session
    exists per key; callers that race on a key share its connection attempt.
    Only ``get_or_create``, ``disconnect`` and ``disconnect_all`` touch the
    registry.

    Usage:
        manager = MCPSessionManager(config)
        tools = await manager.list_tools(identity="user-42")
        result = await manager.call_tool("search", {"query": "x"}, identity="user-42")
        await manager.disconnect_all()
    """

    def __init__(
        self,
        config: MCPServerConfig,
        *,
        provisioner: EndpointProvisioner | None = None,
        transport_factory: TransportOpener | None = None,
        client_factory: ClientFactory | None = None,
        client_info: types.Implementation | None = None,
    ):
        self.config = config
        self._transport_factory = transport_factory
        self._client_factory = client_factory
        self._client_info = client_info
        self._provisioner = provisioner
        self._sessions: dict[str, MCPSession] = {}
        self._endpoints: dict[str, MCPTransportConfig] = {}

    @property
    def server_name(self) -> str:
        return self.config.name

    def missing_credentials(self) -> list[str]:
        return self.config.missing_credentials()

    def is_configured(self) -> bool:
        """True when every required credential is present."""
        return not self.missing_credentials()

    def _require_configured(self) -> None:
        missing = self.missing_credentials()
        if missing:
            raise MCPNotConfiguredError(self.server_name, missing)

    def _get_provisioner(self) -> EndpointProvisioner:
        if self._provisioner is None:
            if self.config.provisioning is None:
                raise MCPProvisioningError(
                    f"Server {self.server_name} has no provisioning configuration"
                )
            resolved = self.config.resolve_env_vars()
            self._provisioner = StrataProvisioner(resolved.provisioning)
        return self._provisioner

    async def _resolve_endpoint(self, identity: str) -> MCPTransportConfig:
        base = self.config.transport.resolve_env_vars()
        if self.config.tenancy != "per_identity":
            return base

        cached = self._endpoints.get(identity)
        if cached is not None:
            return cached

        try:
            endpoint = await self._get_provisioner().provision(identity, base)
        except MCPError:
            raise
        except Exception as e:
            raise MCPProvisioningError(
                f"Provisioning failed for {self.server_name}: {e}",
                identity=identity,
                details={"error": str(e), "error_type": type(e).__name__},
            ) from e

        self._endpoints[identity] = endpoint
        return endpoint

    def _new_session(self, identity: str) -> MCPSession:
        return MCPSession(
            self.server_name,
            self.config,
            identity,
            client_info=self._client_info,
            transport_factory=self._transport_factory,
            client_factory=self._client_factory,
            endpoint_resolver=functools.partial(self._resolve_endpoint, identity),
        )

    async def get_or_create(self, identity: str = GLOBAL_IDENTITY) -> MCPSession:
        """
        Return the connected session for ``identity``, connecting if needed.

        A cached session that is connected or connecting is reused; a
        disconnected one is discarded and replaced.

        Raises:
            MCPNotConfiguredError: If required credentials are missing
            MCPError: Whatever the connection attempt raised
        """
        self._require_configured()

        # No await between lookup and insert: concurrent callers see the same entry
        session = self._sessions.get(identity)
        if session is None or not session.is_live:
            session = self._new_session(identity)
            self._sessions[identity] = session

        try:
            await session.ensure_connected()
        except MCPError:
            if self._sessions.get(identity) is session and not session.is_live:
                del self._sessions[identity]
            raise
        return session

    def get_session(self, identity: str = GLOBAL_IDENTITY) -> MCPSession | None:
        """Return the cached session without connecting."""
        return self._sessions.get(identity)

    async def disconnect(self, identity: str = GLOBAL_IDENTITY) -> None:
        """Close and evict the session for ``identity``; no-op if absent."""
        session = self._sessions.pop(identity, None)
        self._endpoints.pop(identity, None)
        if session is None:
            return
        await session.close()
        logger.info("Disconnected %s session for identity %s", self.server_name, identity)

    async def disconnect_all(self) -> dict[str, Exception]:
        """
        Close and evict every session.

        A failing close is logged and the sweep continues.

        Returns:
            Mapping of identity to the error its close raised
        """
        sessions = list(self._sessions.items())
        self._sessions.clear()
        self._endpoints.clear()

        failures: dict[str, Exception] = {}
        for identity, session in sessions:
            try:
                await session.close()
            except Exception as e:
                logger.warning(
                    "Error closing %s session for identity %s: %s", self.server_name, identity, e
                )
                failures[identity] = e

        if sessions:
            logger.info("Disconnected %d %s session(s)", len(sessions), self.server_name)
        return failures

    def list_sessions(self) -> list[dict[str, Any]]:
        return [session.get_status() for session in self._sessions.values()]

    async def list_tools(
        self, identity: str = GLOBAL_IDENTITY, *, timeout: float | None = None
    ) -> list[types.Tool]:
        session = await self.get_or_create(identity)
        return await session.list_tools(timeout=timeout)

    async def call_tool(
        self,
        tool_name: str,
        arguments: dict[str, Any] | None = None,
        identity: str = GLOBAL_IDENTITY,
        *,
        timeout: float | None = None,
    ) -> types.CallToolResult:
        if not isinstance(tool_name, str) or not tool_name.strip():
            raise MCPInvalidRequestError("Tool name must be a non-empty string", field="toolName")
        session = await self.get_or_create(identity)
        logger.info("%s: calling tool %s", self.server_name, tool_name)
        return await session.call_tool(tool_name, arguments, timeout=timeout)

    async def list_resources(
        self, identity: str = GLOBAL_IDENTITY, *, timeout: float | None = None
    ) -> list[types.Resource]:
        session = await self.get_or_create(identity)
        return await session.list_resources(timeout=timeout)

    async def read_resource(
        self, uri: str, identity: str = GLOBAL_IDENTITY, *, timeout: float | None = None
    ) -> types.ReadResourceResult:
        if not isinstance(uri, str) or not uri.strip():
            raise MCPInvalidRequestError("Resource URI must be a non-empty string", field="uri")
        session = await self.get_or_create(identity)
        return await session.read_resource(uri, timeout=timeout)

    async def list_prompts(
        self, identity: str = GLOBAL_IDENTITY, *, timeout: float | None = None
    ) -> list[types.Prompt]:
        session = await self.get_or_create(identity)
        return await session.list_prompts(timeout=timeout)

    async def get_prompt(
        self,
        prompt_name: str,
        arguments: dict[str, str] | None = None,
        identity: str = GLOBAL_IDENTITY,
        *,
        timeout: float | None = None,
    ) -> types.GetPromptResult:
        if not isinstance(prompt_name, str) or not prompt_name.strip():
            raise MCPInvalidRequestError(
                "Prompt name must be a non-empty string", field="promptName"
            )
        session = await self.get_or_create(identity)
        return await session.get_prompt(prompt_name, arguments, timeout=timeout)

    async def __aenter__(self) -> "MCPSessionManager":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.disconnect_all()
