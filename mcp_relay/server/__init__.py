"""
HTTP boundary for MCP Relay.
"""

from .app import create_app

__all__ = ["create_app"]
