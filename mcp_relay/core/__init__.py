"""
Core functionality for MCP Relay.
"""

from .config import RelayConfig
from .exceptions import ConfigFileError, ConfigurationError, RelayError, UnknownServerError
from .logging import get_logger, setup_logging

__all__ = [
    "ConfigFileError",
    "ConfigurationError",
    "RelayConfig",
    "RelayError",
    "UnknownServerError",
    "get_logger",
    "setup_logging",
]
