"""
Named MCP servers hosted by one process.
"""

import logging
from typing import Any

from mcp import types

from .. import __version__
from ..core.exceptions import UnknownServerError
from .config import MCPServerConfig
from .manager import MCPSessionManager

logger = logging.getLogger(__name__)


class MCPServerRegistry:
    """Maps server names to their session managers."""

    def __init__(self, managers: dict[str, MCPSessionManager] | None = None):
        self._managers: dict[str, MCPSessionManager] = dict(managers or {})

    @classmethod
    def from_configs(
        cls,
        configs: dict[str, MCPServerConfig],
        client_name: str | None = None,
        client_version: str | None = None,
        **manager_kwargs: Any,
    ) -> "MCPServerRegistry":
        """
        Build one manager per enabled server config.

        With ``client_name`` each server sees the handshake client name
        ``<client_name>-<server>``.
        """
        managers = {}
        for name, config in configs.items():
            if not config.enabled:
                logger.debug("Skipping disabled MCP server %s", name)
                continue
            kwargs = dict(manager_kwargs)
            if client_name:
                kwargs["client_info"] = types.Implementation(
                    name=f"{client_name}-{name}", version=client_version or __version__
                )
            managers[name] = MCPSessionManager(config, **kwargs)
        return cls(managers)

    def names(self) -> list[str]:
        return sorted(self._managers)

    def get(self, name: str) -> MCPSessionManager:
        """
        Raises:
            UnknownServerError: If no server with that name is configured
        """
        manager = self._managers.get(name)
        if manager is None:
            raise UnknownServerError(name, list(self._managers))
        return manager

    def __contains__(self, name: object) -> bool:
        return name in self._managers

    def list_servers(self) -> list[dict[str, Any]]:
        servers = []
        for name in self.names():
            manager = self._managers[name]
            config = manager.config
            servers.append(
                {
                    "name": name,
                    "description": config.description,
                    "transport": config.transport.type,
                    "tenancy": config.tenancy,
                    "facade": config.facade,
                    "readOnly": config.read_only,
                    "configured": manager.is_configured(),
                    "missing": manager.missing_credentials(),
                    "sessions": len(manager.list_sessions()),
                }
            )
        return servers

    async def disconnect_all(self) -> None:
        for name in self.names():
            failures = await self._managers[name].disconnect_all()
            if failures:
                logger.warning("%s: %d session(s) failed to close cleanly", name, len(failures))
