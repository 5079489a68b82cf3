"""
MCP Session for MCP Relay.

Owns one connection to an MCP server: the transport, the ``ClientSession``
handshake, and the capability calls made over it.
"""

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable
from contextlib import AbstractAsyncContextManager
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from mcp import ClientSession, types
from mcp.shared.exceptions import McpError
from pydantic import AnyUrl, ValidationError

from .. import __version__
from .config import MCPServerConfig, MCPTransportConfig
from .exceptions import (
    MCPError,
    MCPInvalidRequestError,
    MCPNotConfiguredError,
    MCPOperationError,
    MCPProtocolError,
    MCPResourceNotFoundError,
    MCPTimeoutError,
    MCPToolNotFoundError,
    MCPTransportError,
)
from .transports import MCPTransportFactory, TransportHandle
from .utils import is_closed_connection_error, leaf_exception

logger = logging.getLogger(__name__)

GLOBAL_IDENTITY = "__global__"

# JSON-RPC / MCP error codes the SDK surfaces through McpError
PARSE_ERROR = -32700
CONNECTION_CLOSED = -32000
RESOURCE_NOT_FOUND = -32002
REQUEST_TIMEOUT = 408

_TOOL_NOT_FOUND = re.compile(r"unknown tool|no such tool|tool\b.*\bnot found", re.IGNORECASE)
_RESOURCE_NOT_FOUND = re.compile(
    r"unknown resource|no such resource|resource\b.*\bnot found", re.IGNORECASE
)

TransportOpener = Callable[[MCPTransportConfig, str], AbstractAsyncContextManager[TransportHandle]]
ClientFactory = Callable[[Any, Any, types.Implementation], AbstractAsyncContextManager[Any]]
EndpointResolver = Callable[[], Awaitable[MCPTransportConfig]]


class SessionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


def default_client_factory(
    read_stream: Any, write_stream: Any, client_info: types.Implementation
) -> ClientSession:
    return ClientSession(read_stream, write_stream, client_info=client_info)


def _result_text(result: types.CallToolResult) -> str:
    return " ".join(
        item.text for item in result.content if isinstance(item, types.TextContent)
    )


class MCPSession:
    """
    One logical connection to an MCP server for one identity.

    The transport and ``ClientSession`` live in a dedicated runner task so the
    anyio scopes inside the SDK are entered and exited by the same task.
    Every capability call goes through ``ensure_connected``, which shares a
    single in-flight connection attempt between concurrent callers. A failed
    attempt or a terminated transport leaves the session DISCONNECTED; the
    next call connects again.
    """

    def __init__(
        self,
        server_name: str,
        config: MCPServerConfig,
        identity: str = GLOBAL_IDENTITY,
        *,
        client_info: types.Implementation | None = None,
        transport_factory: TransportOpener | None = None,
        client_factory: ClientFactory | None = None,
        endpoint_resolver: EndpointResolver | None = None,
    ):
        """
        Initialize the session (does not connect).

        Args:
            server_name: Name of the MCP server
            config: Server configuration
            identity: Identity key this session belongs to
            client_info: Name/version sent in the handshake
            transport_factory: Opens a transport; defaults to MCPTransportFactory
            client_factory: Builds the MCP client over a transport's streams
            endpoint_resolver: Supplies the endpoint to open; defaults to the
                configured transport with ${VAR} references resolved
        """
        self.server_name = server_name
        self.config = config
        self.identity = identity
        self.client_info = client_info or types.Implementation(
            name=f"mcp-relay-{server_name}", version=__version__
        )
        self._transport_factory = transport_factory or MCPTransportFactory.create_transport
        self._client_factory = client_factory or default_client_factory
        self._endpoint_resolver = endpoint_resolver

        self.state = SessionState.DISCONNECTED
        self.capabilities: types.ServerCapabilities | None = None
        self.server_info: types.Implementation | None = None
        self.connected_at: datetime | None = None
        self.last_activity: datetime | None = None
        self.connect_count = 0

        self._client: Any = None
        self._handle: TransportHandle | None = None
        self._runner: asyncio.Task | None = None
        self._ready: asyncio.Future | None = None
        self._closing: asyncio.Event | None = None
        self._close_error: MCPError | None = None

    @property
    def is_connected(self) -> bool:
        return self.state is SessionState.CONNECTED

    @property
    def is_live(self) -> bool:
        """True while connected or connecting over a transport that is still up."""
        if self._handle is not None and self._handle.is_terminated:
            return False
        return self.state in (SessionState.CONNECTED, SessionState.CONNECTING)

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def ensure_connected(self) -> Any:
        """
        Return the connected MCP client, connecting first if needed.

        Concurrent callers await the same attempt.

        Raises:
            MCPNotConfiguredError: Required credentials are missing
            MCPTransportError: The transport could not be opened
            MCPProvisioningError: Endpoint allocation failed
            MCPOperationError: The server rejected the handshake
        """
        if self._handle is not None and self._handle.is_terminated:
            # The runner may not have unwound yet; never hand out its client
            self._mark_terminated()

        if self.state is SessionState.CONNECTED and self._client is not None:
            return self._client

        missing = self.config.missing_credentials()
        if missing:
            raise MCPNotConfiguredError(self.server_name, missing)

        if self._ready is None or self._ready.done():
            self._start()

        await asyncio.shield(self._ready)
        if self._client is None:
            raise MCPTransportError(
                f"Connection to {self.server_name} closed during handshake",
                transport_type=self.config.transport.type,
                server_name=self.server_name,
            )
        return self._client

    # Alias used by callers that think in connect/disconnect terms
    connect = ensure_connected

    def _start(self) -> None:
        loop = asyncio.get_running_loop()
        ready = loop.create_future()
        closing = asyncio.Event()
        self._ready = ready
        self._closing = closing
        self._close_error = None
        self.state = SessionState.CONNECTING
        self._runner = loop.create_task(
            self._run(ready, closing),
            name=f"mcp-session:{self.server_name}:{self.identity}",
        )

    async def _resolve_endpoint(self) -> MCPTransportConfig:
        if self._endpoint_resolver is not None:
            return await self._endpoint_resolver()
        return self.config.transport.resolve_env_vars()

    async def _run(self, ready: asyncio.Future, closing: asyncio.Event) -> None:
        try:
            endpoint = await self._resolve_endpoint()
            self.connect_count += 1
            logger.info("Connecting to %s (identity=%s)...", self.server_name, self.identity)

            async with self._transport_factory(endpoint, self.server_name) as handle:
                async with self._client_factory(
                    handle.read_stream, handle.write_stream, self.client_info
                ) as client:
                    result = await self._handshake(client, endpoint)

                    if self._ready is ready:
                        self._client = client
                        self._handle = handle
                        self.capabilities = result.capabilities
                        self.server_info = result.serverInfo
                        self.connected_at = datetime.now()
                        self.last_activity = self.connected_at
                        self.state = SessionState.CONNECTED
                    ready.set_result(None)
                    logger.info("Connected to %s (identity=%s)", self.server_name, self.identity)

                    await self._wait_for_shutdown(handle, closing)
                    if handle.is_terminated and not closing.is_set():
                        logger.warning(
                            "Transport for %s (identity=%s) terminated unexpectedly",
                            self.server_name,
                            self.identity,
                        )
        except asyncio.CancelledError:
            if not ready.done():
                ready.set_exception(
                    MCPTransportError(
                        f"Connection attempt to {self.server_name} was cancelled",
                        transport_type=self.config.transport.type,
                        server_name=self.server_name,
                    )
                )
            raise
        except Exception as e:
            error = self._as_connect_error(e)
            if not ready.done():
                logger.error("Failed to connect to %s: %s", self.server_name, error)
                ready.set_exception(error)
            elif closing.is_set():
                self._close_error = error
            else:
                logger.warning("Session %s (identity=%s) ended: %s", self.server_name, self.identity, error)
        finally:
            if self._ready is ready:
                self._client = None
                self._handle = None
                self.state = SessionState.DISCONNECTED
            logger.info("Disconnected from %s (identity=%s)", self.server_name, self.identity)

    async def _handshake(self, client: Any, endpoint: MCPTransportConfig) -> types.InitializeResult:
        try:
            return await asyncio.wait_for(client.initialize(), timeout=self.config.timeout_seconds)
        except TimeoutError as e:
            raise MCPTransportError(
                f"{self.server_name} did not complete the handshake within "
                f"{self.config.timeout_seconds}s",
                transport_type=endpoint.type,
                server_name=self.server_name,
            ) from e
        except McpError as e:
            raise MCPOperationError(
                f"Failed to initialize session: {e.error.message}",
                operation="initialize",
                server_name=self.server_name,
                code=e.error.code,
                details={"error": e.error.message, "error_type": type(e).__name__},
            ) from e
        except ValidationError as e:
            raise MCPProtocolError(
                f"Malformed initialize result from {self.server_name}: {e}",
                operation="initialize",
            ) from e

    def _as_connect_error(self, error: BaseException) -> MCPError:
        leaf = leaf_exception(error)
        if isinstance(leaf, MCPError):
            return leaf
        return MCPTransportError(
            f"Failed to connect to {self.server_name}: {leaf}",
            transport_type=self.config.transport.type,
            server_name=self.server_name,
            details={"error": str(leaf), "error_type": type(leaf).__name__},
        )

    @staticmethod
    async def _wait_for_shutdown(handle: TransportHandle, closing: asyncio.Event) -> None:
        waiters = [
            asyncio.ensure_future(closing.wait()),
            asyncio.ensure_future(handle.terminated.wait()),
        ]
        try:
            await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in waiters:
                waiter.cancel()

    def _mark_terminated(self) -> None:
        """The channel is gone; drop the client so the next call reconnects."""
        self.state = SessionState.DISCONNECTED
        self._client = None
        if self._handle is not None:
            self._handle.terminated.set()
            self._handle = None

    async def wait_closed(self) -> None:
        """Wait until the runner task (if any) has released the transport."""
        runner = self._runner
        if runner is not None and not runner.done():
            await asyncio.wait([runner])

    async def close(self) -> None:
        """
        Close the session and its transport.

        Safe to call more than once; a session that never connected is a no-op.

        Raises:
            MCPError: If tearing down the transport failed
        """
        runner = self._runner
        if runner is None or runner.done():
            self.state = SessionState.DISCONNECTED
            return

        ready = self._ready
        if ready is not None and not ready.done():
            runner.cancel()
        elif self._closing is not None:
            self._closing.set()

        await asyncio.wait([runner])
        self.state = SessionState.DISCONNECTED
        if ready is not None and ready.done() and not ready.cancelled():
            # Consume a cancelled handshake's error so it is not reported as unretrieved
            ready.exception()

        error, self._close_error = self._close_error, None
        if error is not None:
            raise error

    # ------------------------------------------------------------------
    # Capability calls
    # ------------------------------------------------------------------

    async def _request(
        self, operation: str, coro: Awaitable[Any], timeout: float | None = None, **context: Any
    ) -> Any:
        timeout = timeout or self.config.timeout_seconds
        try:
            result = await asyncio.wait_for(coro, timeout=timeout)
        except TimeoutError as e:
            raise MCPTimeoutError(
                f"{operation} on {self.server_name} timed out after {timeout}s",
                operation=operation,
                timeout_seconds=timeout,
                details=context,
            ) from e
        except McpError as e:
            raise self._translate_mcp_error(operation, e, context, timeout) from e
        except ValidationError as e:
            raise MCPProtocolError(
                f"Unexpected {operation} response from {self.server_name}: {e}",
                operation=operation,
                details=context,
            ) from e
        except Exception as e:
            if is_closed_connection_error(e):
                self._mark_terminated()
                raise MCPTransportError(
                    f"Connection to {self.server_name} closed during {operation}",
                    transport_type=self.config.transport.type,
                    server_name=self.server_name,
                    details={**context, "error": str(e), "error_type": type(e).__name__},
                ) from e
            raise MCPOperationError(
                f"Failed to {operation.replace('_', ' ')}: {e}",
                operation=operation,
                server_name=self.server_name,
                details={**context, "error": str(e), "error_type": type(e).__name__},
            ) from e

        self.last_activity = datetime.now()
        return result

    def _translate_mcp_error(
        self, operation: str, error: McpError, context: dict[str, Any], timeout: float
    ) -> MCPError:
        code = error.error.code
        message = error.error.message
        details = {**context, "error": message, "code": code}

        if code == REQUEST_TIMEOUT:
            return MCPTimeoutError(
                f"{operation} on {self.server_name} timed out: {message}",
                operation=operation,
                timeout_seconds=timeout,
                details=details,
            )
        if code == CONNECTION_CLOSED or is_closed_connection_error(error):
            self._mark_terminated()
            return MCPTransportError(
                f"Connection to {self.server_name} closed: {message}",
                transport_type=self.config.transport.type,
                server_name=self.server_name,
                details=details,
            )
        if operation == "tool_call" and _TOOL_NOT_FOUND.search(message):
            return MCPToolNotFoundError(
                context.get("tool_name", "?"), server_name=self.server_name, code=code, details=details
            )
        if operation == "resource_read" and (
            code == RESOURCE_NOT_FOUND or _RESOURCE_NOT_FOUND.search(message)
        ):
            return MCPResourceNotFoundError(
                context.get("uri", "?"), server_name=self.server_name, code=code, details=details
            )
        if code == PARSE_ERROR:
            return MCPProtocolError(
                f"{self.server_name} could not parse {operation}: {message}",
                operation=operation,
                details=details,
            )
        return MCPOperationError(
            f"{operation} failed on {self.server_name}: {message}",
            operation=operation,
            server_name=self.server_name,
            code=code,
            details=details,
        )

    async def list_tools(self, *, timeout: float | None = None) -> list[types.Tool]:
        """
        List available tools from the server.

        Returns:
            List of Tool objects
        """
        client = await self.ensure_connected()
        result = await self._request("list_tools", client.list_tools(), timeout)
        return result.tools

    async def call_tool(
        self,
        name: str,
        arguments: dict[str, Any] | None = None,
        progress_callback: Callable[[float, float | None], None] | None = None,
        *,
        timeout: float | None = None,
    ) -> types.CallToolResult:
        """
        Call a tool with optional progress tracking.

        Args:
            name: Tool name (must be non-empty)
            arguments: Tool arguments
            progress_callback: Optional callback for progress updates (progress, total)
            timeout: Deadline for this call in seconds; defaults to the server timeout

        Returns:
            CallToolResult with tool output, passed through as the server sent it

        Raises:
            MCPInvalidRequestError: If the tool name is empty
            MCPToolNotFoundError: If the server does not know the tool
            MCPOperationError: If the server reports another failure
            MCPTimeoutError: If the call exceeds the deadline
        """
        if not isinstance(name, str) or not name.strip():
            raise MCPInvalidRequestError("Tool name must be a non-empty string", field="name")

        kwargs: dict[str, Any] = {
            "read_timeout_seconds": timedelta(seconds=timeout or self.config.timeout_seconds),
        }
        if progress_callback:

            async def _progress_wrapper(
                progress: float, total: float | None = None, message: str | None = None
            ) -> None:
                progress_callback(progress, total)

            kwargs["progress_callback"] = _progress_wrapper

        client = await self.ensure_connected()
        result = await self._request(
            "tool_call",
            client.call_tool(name=name, arguments=arguments or {}, **kwargs),
            timeout,
            tool_name=name,
        )

        if getattr(result, "isError", False) and _TOOL_NOT_FOUND.search(_result_text(result)):
            raise MCPToolNotFoundError(name, server_name=self.server_name)
        return result

    async def list_resources(self, *, timeout: float | None = None) -> list[types.Resource]:
        """List available resources from the server."""
        client = await self.ensure_connected()
        result = await self._request("list_resources", client.list_resources(), timeout)
        return result.resources

    async def read_resource(
        self, uri: str, *, timeout: float | None = None
    ) -> types.ReadResourceResult:
        """
        Read a resource from the server.

        Raises:
            MCPInvalidRequestError: If the URI is empty or malformed
            MCPResourceNotFoundError: If the server has no such resource
        """
        if not isinstance(uri, str) or not uri.strip():
            raise MCPInvalidRequestError("Resource URI must be a non-empty string", field="uri")
        try:
            any_url = AnyUrl(uri)
        except ValidationError as e:
            raise MCPInvalidRequestError(f"Invalid resource URI: {uri}", field="uri") from e

        client = await self.ensure_connected()
        return await self._request(
            "resource_read", client.read_resource(any_url), timeout, uri=uri
        )

    async def list_prompts(self, *, timeout: float | None = None) -> list[types.Prompt]:
        """List available prompts from the server."""
        client = await self.ensure_connected()
        result = await self._request("list_prompts", client.list_prompts(), timeout)
        return result.prompts

    async def get_prompt(
        self, name: str, arguments: dict[str, str] | None = None, *, timeout: float | None = None
    ) -> types.GetPromptResult:
        """Get a rendered prompt from the server."""
        if not isinstance(name, str) or not name.strip():
            raise MCPInvalidRequestError("Prompt name must be a non-empty string", field="name")
        client = await self.ensure_connected()
        return await self._request(
            "prompt_get",
            client.get_prompt(name=name, arguments=arguments),
            timeout,
            prompt_name=name,
        )

    async def send_ping(self, *, timeout: float | None = None) -> types.EmptyResult:
        """Send a ping to check connection health."""
        client = await self.ensure_connected()
        return await self._request("ping", client.send_ping(), timeout)

    def get_status(self) -> dict[str, Any]:
        """
        Get session status information.

        Returns:
            Dictionary with status information
        """
        connected = self.is_connected
        return {
            "server_name": self.server_name,
            "identity": self.identity,
            "state": self.state.value,
            "connected": connected,
            "connected_at": self.connected_at.isoformat() if connected and self.connected_at else None,
            "last_activity": (
                self.last_activity.isoformat() if connected and self.last_activity else None
            ),
            "transport_type": self.config.transport.type,
            "server_info": (
                {"name": self.server_info.name, "version": self.server_info.version}
                if connected and self.server_info
                else None
            ),
            "capabilities": (
                {
                    "tools": self.capabilities.tools is not None,
                    "resources": self.capabilities.resources is not None,
                    "prompts": self.capabilities.prompts is not None,
                }
                if connected and self.capabilities
                else None
            ),
        }
