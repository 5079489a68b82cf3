"""
Custom exceptions for MCP Relay.

Provides specific exception types for better error handling and user feedback.
"""


class RelayError(Exception):
    """Base exception for MCP Relay errors."""


class ConfigurationError(RelayError):
    """Error in configuration."""


class ConfigFileError(ConfigurationError):
    """Configuration file could not be read or parsed."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Could not load configuration from {path}: {reason}")
        self.path = path
        self.user_message = f"The configuration file '{path}' is invalid."
        self.recovery_hint = "Check the YAML/JSON syntax and the 'mcp_servers' section."


class UnknownServerError(RelayError):
    """A server name was requested that is not configured."""

    def __init__(self, server_name: str, available: list[str] | None = None):
        super().__init__(f"MCP server not configured: {server_name}")
        self.server_name = server_name
        self.available = sorted(available or [])
        self.user_message = f"Server '{server_name}' is not configured."
        if self.available:
            self.recovery_hint = f"Configured servers: {', '.join(self.available)}"
        else:
            self.recovery_hint = "Add it under 'mcp_servers' in your configuration file."


def format_error_message(error: Exception) -> str:
    """
    Format an error message for display to user.

    Args:
        error: Exception to format

    Returns:
        Formatted error message with recovery hints
    """
    if isinstance(error, RelayError) and hasattr(error, "user_message"):
        message = error.user_message
        if hasattr(error, "recovery_hint"):
            message += f"\n\nHint: {error.recovery_hint}"
        return message
    return str(error)
