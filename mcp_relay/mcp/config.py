"""
MCP configuration models for MCP Relay.

Defines configuration structures for MCP servers and transport settings.
"""

import os
import re
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
from typing import Any

TRANSPORT_TYPES = ("stdio", "streamable_http", "sse")
TENANCY_MODES = ("shared", "per_identity")
FACADES = ("browser", "database")

_ENV_REF = re.compile(r"\$\{([^}]+)\}")
_PLACEHOLDER = re.compile(r"^YOUR_[A-Z0-9_]+_HERE$")


def credential_present(value: str | None) -> bool:
    """Return True if a credential value is set and is not a template placeholder."""
    if value is None:
        return False
    value = value.strip()
    return bool(value) and not _PLACEHOLDER.match(value)


def _resolve(value: str, environ: Mapping[str, str]) -> str:
    return _ENV_REF.sub(lambda m: environ.get(m.group(1), m.group(0)), value)


@dataclass
class MCPTransportConfig:
    """Transport-specific configuration for MCP connections."""

    type: str  # "stdio", "streamable_http", "sse"

    # Stdio-specific fields
    command: str | None = None
    args: list[str] | None = None
    env: dict[str, str] | None = None

    # HTTP-specific fields
    url: str | None = None
    headers: dict[str, str] | None = None

    # Authentication fields
    auth_type: str | None = None  # "bearer"
    auth_token: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MCPTransportConfig":
        """Create from dictionary."""
        return cls(**data)

    @property
    def is_http(self) -> bool:
        return self.type in ("streamable_http", "sse")

    def validate(self) -> None:
        """Validate transport-specific required fields."""
        if self.type not in TRANSPORT_TYPES:
            raise ValueError(
                f"Invalid transport type: {self.type}. Must be one of {', '.join(TRANSPORT_TYPES)}"
            )

        if self.type == "stdio":
            if not self.command:
                raise ValueError("Stdio transport requires 'command' field")
        elif not self.url:
            raise ValueError(f"{self.type} transport requires 'url' field")

        if self.auth_type not in (None, "bearer"):
            raise ValueError(f"Unsupported auth_type: {self.auth_type}")

    def request_headers(self) -> dict[str, str]:
        """HTTP headers including the bearer token, if any."""
        headers = dict(self.headers or {})
        if self.auth_token and (self.auth_type or "bearer") == "bearer":
            headers.setdefault("Authorization", f"Bearer {self.auth_token}")
        return headers

    def resolve_env_vars(self, environ: Mapping[str, str] | None = None) -> "MCPTransportConfig":
        """Resolve environment variable references in configuration.

        Replaces ${VAR_NAME} patterns with actual environment variable values.
        Unknown variables are left as-is.
        """
        environ = os.environ if environ is None else environ

        return MCPTransportConfig(
            type=self.type,
            command=_resolve(self.command, environ) if self.command else None,
            args=[_resolve(a, environ) for a in self.args] if self.args else None,
            env={k: _resolve(v, environ) for k, v in self.env.items()} if self.env else None,
            url=_resolve(self.url, environ) if self.url else None,
            headers=(
                {k: _resolve(v, environ) for k, v in self.headers.items()}
                if self.headers
                else None
            ),
            auth_type=self.auth_type,
            auth_token=_resolve(self.auth_token, environ) if self.auth_token else None,
        )


@dataclass
class ProvisioningConfig:
    """Per-identity endpoint allocation settings."""

    api_url: str
    api_key: str | None = None
    servers: list[str] = field(default_factory=list)
    timeout_seconds: float = 30.0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProvisioningConfig":
        return cls(**data)


@dataclass
class MCPServerConfig:
    """Configuration for an MCP server."""

    name: str
    description: str | None = None
    transport: MCPTransportConfig = field(default_factory=lambda: MCPTransportConfig(type="stdio"))
    enabled: bool = True
    timeout_seconds: float = 30.0
    tenancy: str = "shared"  # "shared" | "per_identity"
    required_env: list[str] = field(default_factory=list)
    facade: str | None = None  # "browser" | "database"
    read_only: bool = False
    provisioning: ProvisioningConfig | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MCPServerConfig":
        """Create from dictionary."""
        data = dict(data)
        transport_data = data.pop("transport", {})
        if isinstance(transport_data, dict):
            transport = MCPTransportConfig.from_dict(transport_data)
        else:
            transport = transport_data

        provisioning_data = data.pop("provisioning", None)
        if isinstance(provisioning_data, dict):
            data["provisioning"] = ProvisioningConfig.from_dict(provisioning_data)
        else:
            data["provisioning"] = provisioning_data

        return cls(transport=transport, **data)

    def validate(self) -> None:
        """Validate server configuration."""
        if not self.name:
            raise ValueError("Server name is required")

        if self.timeout_seconds <= 0:
            raise ValueError("Timeout must be positive")

        if self.tenancy not in TENANCY_MODES:
            raise ValueError(
                f"Invalid tenancy: {self.tenancy}. Must be one of {', '.join(TENANCY_MODES)}"
            )

        if self.tenancy == "per_identity" and self.provisioning is None:
            raise ValueError("per_identity tenancy requires a 'provisioning' section")

        if self.facade is not None and self.facade not in FACADES:
            raise ValueError(f"Invalid facade: {self.facade}. Must be one of {', '.join(FACADES)}")

        # Per-identity servers get their URL from provisioning
        if self.tenancy == "shared":
            self.transport.validate()

    def missing_credentials(self, environ: Mapping[str, str] | None = None) -> list[str]:
        """Names of required environment variables that are unset or placeholders."""
        environ = os.environ if environ is None else environ
        missing = [name for name in self.required_env if not credential_present(environ.get(name))]

        if self.tenancy == "per_identity":
            api_key = self.provisioning.api_key if self.provisioning else None
            if api_key and api_key.startswith("${") and api_key.endswith("}"):
                env_name = api_key[2:-1]
                if not credential_present(environ.get(env_name)) and env_name not in missing:
                    missing.append(env_name)
            elif not credential_present(api_key):
                missing.append("provisioning.api_key")

        return missing

    def resolve_env_vars(self, environ: Mapping[str, str] | None = None) -> "MCPServerConfig":
        """Resolve environment variable references in configuration."""
        environ = os.environ if environ is None else environ
        provisioning = self.provisioning
        if provisioning is not None:
            provisioning = ProvisioningConfig(
                api_url=_resolve(provisioning.api_url, environ),
                api_key=_resolve(provisioning.api_key, environ) if provisioning.api_key else None,
                servers=list(provisioning.servers),
                timeout_seconds=provisioning.timeout_seconds,
            )

        return MCPServerConfig(
            name=self.name,
            description=self.description,
            transport=self.transport.resolve_env_vars(environ),
            enabled=self.enabled,
            timeout_seconds=self.timeout_seconds,
            tenancy=self.tenancy,
            required_env=list(self.required_env),
            facade=self.facade,
            read_only=self.read_only,
            provisioning=provisioning,
        )
