"""
MCP-specific exceptions for MCP Relay.

Provides detailed error handling for MCP client operations with user-friendly
messages and troubleshooting guidance.
"""

from typing import Any

from ..core.exceptions import RelayError


class MCPError(RelayError):
    """Base class for MCP-related errors."""

    kind = "mcp_error"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.details = details or {}

    def get_troubleshooting_message(self) -> str:
        """Get troubleshooting guidance for this error."""
        return "For more information, run with --verbose for detailed logs."


class MCPConfigurationError(MCPError):
    """Error in MCP server configuration."""

    kind = "configuration_error"

    def __init__(
        self,
        message: str,
        server_name: str | None = None,
        config_field: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.server_name = server_name
        self.config_field = config_field

    def get_troubleshooting_message(self) -> str:
        """Get troubleshooting guidance for configuration errors."""
        tips = [
            "Troubleshooting:",
            "  1. Check your mcp_relay.yaml file for syntax errors",
            "  2. Verify all required fields are present",
            "  3. Ensure field values are of the correct type",
        ]

        if self.config_field:
            tips.append(f"  4. Review the '{self.config_field}' field in your configuration")

        return "\n".join(tips)


class MCPNotConfiguredError(MCPConfigurationError):
    """Required credentials are absent; no connection is attempted."""

    kind = "not_configured"

    def __init__(
        self,
        server_name: str,
        missing: list[str],
        details: dict[str, Any] | None = None,
    ):
        names = " and ".join(missing) if missing else "the required credentials"
        super().__init__(
            f"MCP server '{server_name}' is not configured. Please set {names}.",
            server_name=server_name,
            details=details,
        )
        self.missing = list(missing)

    def get_troubleshooting_message(self) -> str:
        tips = ["Troubleshooting:"]
        for i, name in enumerate(self.missing, start=1):
            tips.append(f"  {i}. Set the {name} environment variable")
        tips.append("  Placeholder values such as YOUR_..._HERE count as unset")
        return "\n".join(tips)


class MCPInvalidRequestError(MCPError):
    """A caller supplied an invalid or incomplete request."""

    kind = "invalid_request"

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.field = field

    def get_troubleshooting_message(self) -> str:
        if self.field:
            return f"Troubleshooting:\n  1. Provide a non-empty '{self.field}' value"
        return "Troubleshooting:\n  1. Check the request parameters"


class MCPTransportError(MCPError):
    """The transport could not be opened or the channel went away."""

    kind = "transport_unavailable"

    def __init__(
        self,
        message: str,
        transport_type: str | None = None,
        server_name: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.transport_type = transport_type
        self.server_name = server_name

    def get_troubleshooting_message(self) -> str:
        """Get troubleshooting guidance for transport errors."""
        tips = ["Troubleshooting:"]

        if self.transport_type == "stdio":
            tips.extend(
                [
                    "  1. Ensure the server command is installed and in your PATH",
                    "  2. Verify the command and arguments in your configuration",
                    "  3. Check that any required environment variables are set",
                    "  4. Try running the command manually to test it works",
                ]
            )
        elif self.transport_type in ("streamable_http", "sse"):
            tips.extend(
                [
                    "  1. Verify the server URL is correct and accessible",
                    "  2. Check your network connection",
                    "  3. Ensure any required authentication tokens are valid",
                    "  4. Verify SSL certificates if using HTTPS",
                ]
            )
        else:
            tips.extend(
                ["  1. Check the transport configuration", "  2. Verify network connectivity"]
            )

        tips.append("  5. The next call will try to reconnect")

        return "\n".join(tips)


class MCPProvisioningError(MCPError):
    """Allocating a dedicated endpoint for an identity failed."""

    kind = "provisioning_failed"

    def __init__(
        self,
        message: str,
        identity: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.identity = identity
        self.status_code = status_code

    def get_troubleshooting_message(self) -> str:
        tips = [
            "Troubleshooting:",
            "  1. Verify the provisioning API key is valid",
            "  2. Check that the provisioning API URL is reachable",
        ]
        if self.status_code:
            tips.append(f"  3. Provisioning API answered HTTP {self.status_code}")
        return "\n".join(tips)


class MCPOperationError(MCPError):
    """The remote server reported a failure for an operation."""

    kind = "remote_error"

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        server_name: str | None = None,
        code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.operation = operation
        self.server_name = server_name
        self.code = code

    def get_troubleshooting_message(self) -> str:
        """Get troubleshooting guidance for operation errors."""
        tips = ["Troubleshooting:"]

        if self.operation == "tool_call":
            tips.extend(
                [
                    "  1. Verify the tool name is correct",
                    "  2. Check that all required arguments are provided",
                    "  3. Ensure argument types match the tool's input schema",
                    "  4. Try listing tools to see available options",
                ]
            )
        elif self.operation == "resource_read":
            tips.extend(
                [
                    "  1. Verify the resource URI is correct",
                    "  2. Check that the resource exists on the server",
                    "  3. Try listing resources to see available options",
                ]
            )
        elif self.operation == "prompt_get":
            tips.extend(
                [
                    "  1. Verify the prompt name is correct",
                    "  2. Check that all required arguments are provided",
                    "  3. Try listing prompts to see available options",
                ]
            )
        else:
            tips.extend(
                [
                    "  1. Check the operation parameters",
                    "  2. Verify the server is still connected",
                ]
            )

        return "\n".join(tips)


class MCPToolNotFoundError(MCPOperationError):
    """The remote server does not know the requested tool."""

    kind = "tool_not_found"

    def __init__(self, tool_name: str, server_name: str | None = None, **kwargs: Any):
        super().__init__(
            f"Tool not found: {tool_name}",
            operation="tool_call",
            server_name=server_name,
            **kwargs,
        )
        self.tool_name = tool_name


class MCPResourceNotFoundError(MCPOperationError):
    """The remote server does not know the requested resource URI."""

    kind = "resource_not_found"

    def __init__(self, uri: str, server_name: str | None = None, **kwargs: Any):
        super().__init__(
            f"Resource not found: {uri}",
            operation="resource_read",
            server_name=server_name,
            **kwargs,
        )
        self.uri = uri


class MCPProtocolError(MCPError):
    """The server answered with a malformed or unexpected message."""

    kind = "protocol_error"

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.operation = operation

    def get_troubleshooting_message(self) -> str:
        return "\n".join(
            [
                "Troubleshooting:",
                "  1. Check that the server speaks a supported MCP protocol version",
                "  2. Update the server package to a current release",
            ]
        )


class MCPTimeoutError(MCPError):
    """Operation timed out."""

    kind = "timeout"

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        timeout_seconds: float | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.operation = operation
        self.timeout_seconds = timeout_seconds

    def get_troubleshooting_message(self) -> str:
        """Get troubleshooting guidance for timeout errors."""
        tips = [
            "Troubleshooting:",
            "  1. The operation took longer than expected",
            "  2. Try increasing timeout_seconds in your configuration",
            "  3. Check if the server is responding slowly",
        ]

        if self.timeout_seconds:
            tips.append(f"  4. Current timeout: {self.timeout_seconds} seconds")

        return "\n".join(tips)


def format_mcp_error(error: MCPError, verbose: bool = False) -> str:
    """Format an MCP error for display to the user.

    Args:
        error: The MCP error to format
        verbose: Whether to include detailed information

    Returns:
        Formatted error message
    """
    lines = [f"Error: {error!s}"]

    if isinstance(error, MCPNotConfiguredError):
        lines.append(f"Missing: {', '.join(error.missing)}")

    elif isinstance(error, MCPConfigurationError):
        if error.server_name:
            lines.append(f"Server: {error.server_name}")
        if error.config_field:
            lines.append(f"Field: {error.config_field}")

    elif isinstance(error, MCPOperationError):
        if error.operation:
            lines.append(f"Operation: {error.operation}")
        if error.server_name:
            lines.append(f"Server: {error.server_name}")

    elif isinstance(error, MCPTransportError):
        if error.transport_type:
            lines.append(f"Transport: {error.transport_type}")

    elif isinstance(error, MCPTimeoutError):
        if error.operation:
            lines.append(f"Operation: {error.operation}")
        if error.timeout_seconds:
            lines.append(f"Timeout: {error.timeout_seconds}s")

    if verbose and error.details:
        lines.append("\nDetails:")
        for key, value in error.details.items():
            lines.append(f"  {key}: {value}")

    lines.append("")
    lines.append(error.get_troubleshooting_message())

    return "\n".join(lines)
