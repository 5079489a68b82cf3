"""
Configuration management for MCP Relay.
"""

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from .exceptions import ConfigFileError, ConfigurationError

if TYPE_CHECKING:
    from ..mcp.config import MCPServerConfig

DEFAULT_CONFIG_FILES = ("mcp_relay.yaml", "mcp_relay.yml", "mcp_relay.json")


@dataclass
class RelayConfig:
    """Process-wide settings: which servers to host and where to listen."""

    mcp_servers: dict[str, dict[str, Any]] = field(default_factory=dict)
    include_presets: bool = True
    client_name: str = "mcp-relay"
    client_version: str | None = None
    environment: str = "development"
    host: str = "127.0.0.1"
    port: int = 8000

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @classmethod
    def from_environment(cls, environ: Mapping[str, str] | None = None) -> "RelayConfig":
        """Settings from MCP_RELAY_* variables; servers come from the presets."""
        environ = os.environ if environ is None else environ
        port = environ.get("MCP_RELAY_PORT", "8000")
        try:
            port_number = int(port)
        except ValueError:
            raise ConfigurationError(f"MCP_RELAY_PORT must be an integer, got {port!r}")

        return cls(
            environment=environ.get("MCP_RELAY_ENV", "development"),
            host=environ.get("MCP_RELAY_HOST", "127.0.0.1"),
            port=port_number,
        )

    @classmethod
    def load_from_file(
        cls, config_path: Path, environ: Mapping[str, str] | None = None
    ) -> "RelayConfig":
        """Load configuration from a YAML or JSON file, over environment defaults."""
        if not config_path.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        try:
            with open(config_path) as f:
                if config_path.suffix.lower() == ".json":
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ConfigFileError(str(config_path), str(e)) from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigFileError(str(config_path), "top level must be a mapping")

        base = cls.from_environment(environ)
        servers = data.pop("mcp_servers", None) or {}
        if not isinstance(servers, dict):
            raise ConfigFileError(str(config_path), "'mcp_servers' must be a mapping")

        try:
            config = cls(
                mcp_servers=servers,
                **{
                    "environment": base.environment,
                    "host": base.host,
                    "port": base.port,
                    **data,
                },
            )
        except TypeError as e:
            raise ConfigFileError(str(config_path), str(e)) from e

        config.validate()
        return config

    @classmethod
    def discover(cls, start: Path | None = None) -> "RelayConfig":
        """Load the first default config file found in ``start``, else use the environment."""
        directory = start or Path.cwd()
        for name in DEFAULT_CONFIG_FILES:
            candidate = directory / name
            if candidate.exists():
                return cls.load_from_file(candidate)
        return cls.from_environment()

    def server_configs(
        self, environ: Mapping[str, str] | None = None
    ) -> dict[str, "MCPServerConfig"]:
        """
        Build server configs: presets first, then file-declared servers by name.

        Raises:
            ConfigurationError: If a declared server is invalid
        """
        from ..mcp.config import MCPServerConfig
        from ..mcp.presets import default_server_configs

        configs = default_server_configs(environ) if self.include_presets else {}
        for name, raw in self.mcp_servers.items():
            try:
                config = MCPServerConfig.from_dict({"name": name, **(raw or {})})
                config.validate()
            except (TypeError, ValueError) as e:
                raise ConfigurationError(f"Invalid MCP server '{name}': {e}") from e
            configs[name] = config
        return configs

    def validate(self) -> None:
        if not isinstance(self.port, int) or not 0 < self.port < 65536:
            raise ConfigurationError(f"Invalid port: {self.port}")
        for name, raw in self.mcp_servers.items():
            if raw is not None and not isinstance(raw, dict):
                raise ConfigurationError(f"MCP server '{name}' must be a mapping")
