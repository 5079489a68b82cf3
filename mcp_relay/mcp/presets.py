"""
Built-in server configurations driven by environment variables.

Each preset runs the vendor's MCP server over stdio by default. Setting
``<NAME>_MCP_URL`` points the preset at an already-running server over
streamable HTTP instead, with ``<NAME>_MCP_BEARER_TOKEN`` as the optional
bearer token.
"""

import os
from collections.abc import Mapping

from .config import (
    MCPServerConfig,
    MCPTransportConfig,
    ProvisioningConfig,
    credential_present,
)

NOTION_SSE_URL = "https://mcp.notion.com/sse"
STRATA_CREATE_URL = "https://api.klavis.ai/mcp-server/strata/create"


def _url_override(
    prefix: str, environ: Mapping[str, str]
) -> MCPTransportConfig | None:
    url = environ.get(f"{prefix}_MCP_URL")
    if not credential_present(url):
        return None
    token_var = f"{prefix}_MCP_BEARER_TOKEN"
    token = f"${{{token_var}}}" if credential_present(environ.get(token_var)) else None
    return MCPTransportConfig(
        type="streamable_http",
        url=url,
        auth_type="bearer" if token else None,
        auth_token=token,
    )


def browserbase_config(environ: Mapping[str, str] | None = None) -> MCPServerConfig:
    environ = os.environ if environ is None else environ
    override = _url_override("BROWSERBASE", environ)
    if override is not None:
        transport, required = override, []
    else:
        transport = MCPTransportConfig(
            type="stdio",
            command="npx",
            args=["-y", "@browserbasehq/mcp-server-browserbase"],
            env={
                "BROWSERBASE_API_KEY": "${BROWSER_BASE_API_TOKEN}",
                "BROWSERBASE_PROJECT_ID": "${BROWSER_BASE_PROJECT_ID}",
            },
        )
        required = ["BROWSER_BASE_API_TOKEN", "BROWSER_BASE_PROJECT_ID"]

    return MCPServerConfig(
        name="browserbase",
        description="Cloud browser automation",
        transport=transport,
        timeout_seconds=60.0,
        required_env=required,
        facade="browser",
    )


def supabase_config(environ: Mapping[str, str] | None = None) -> MCPServerConfig:
    environ = os.environ if environ is None else environ
    override = _url_override("SUPABASE", environ)
    if override is not None:
        transport, required = override, []
    else:
        transport = MCPTransportConfig(
            type="stdio",
            command="npx",
            args=[
                "-y",
                "@supabase/mcp-server-supabase@latest",
                "--read-only",
                "--project-ref=${SUPABASE_PROJECT_REF}",
            ],
            env={"SUPABASE_ACCESS_TOKEN": "${SUPABASE_ACCESS_TOKEN}"},
        )
        required = ["SUPABASE_ACCESS_TOKEN", "SUPABASE_PROJECT_REF"]

    return MCPServerConfig(
        name="supabase",
        description="Read-only database access",
        transport=transport,
        required_env=required,
        facade="database",
        read_only=True,
    )


def notion_config(environ: Mapping[str, str] | None = None) -> MCPServerConfig:
    environ = os.environ if environ is None else environ
    override = _url_override("NOTION", environ)
    if override is not None:
        transport, required = override, []
    elif credential_present(environ.get("NOTION_MCP_TOKEN")):
        # Hosted server, OAuth token obtained elsewhere
        transport = MCPTransportConfig(
            type="sse",
            url=environ.get("NOTION_MCP_SSE_URL") or NOTION_SSE_URL,
            auth_type="bearer",
            auth_token="${NOTION_MCP_TOKEN}",
        )
        required = ["NOTION_MCP_TOKEN"]
    else:
        transport = MCPTransportConfig(
            type="stdio",
            command="npx",
            args=["--no-install", "notion-mcp-server"],
            env={"NOTION_TOKEN": "${NOTION_API_KEY}"},
        )
        required = ["NOTION_API_KEY"]

    return MCPServerConfig(
        name="notion",
        description="Notion workspace pages and databases",
        transport=transport,
        required_env=required,
    )


def assistant_config(environ: Mapping[str, str] | None = None) -> MCPServerConfig:
    """
    Gateway server for assistant integrations.

    ``ASSISTANT_MCP_TENANCY`` selects ``per_identity`` (default, one
    provisioned endpoint per user) or ``shared`` (``ASSISTANT_MCP_URL``).
    """
    environ = os.environ if environ is None else environ
    tenancy = environ.get("ASSISTANT_MCP_TENANCY", "per_identity").strip() or "per_identity"
    servers = [
        s.strip() for s in environ.get("ASSISTANT_MCP_SERVERS", "").split(",") if s.strip()
    ]

    if tenancy == "shared":
        transport = _url_override("ASSISTANT", environ) or MCPTransportConfig(
            type="streamable_http", url="${ASSISTANT_MCP_URL}"
        )
        return MCPServerConfig(
            name="assistant",
            description="Assistant integrations gateway",
            transport=transport,
            required_env=["ASSISTANT_MCP_URL"],
        )

    return MCPServerConfig(
        name="assistant",
        description="Assistant integrations gateway",
        transport=MCPTransportConfig(type="streamable_http"),
        tenancy=tenancy,
        provisioning=ProvisioningConfig(
            api_url=environ.get("ASSISTANT_PROVISIONING_URL") or STRATA_CREATE_URL,
            api_key="${KLAVIS_API_KEY}",
            servers=servers,
        ),
    )


def default_server_configs(environ: Mapping[str, str] | None = None) -> dict[str, MCPServerConfig]:
    """All built-in presets, keyed by server name."""
    environ = os.environ if environ is None else environ
    configs = [
        browserbase_config(environ),
        supabase_config(environ),
        notion_config(environ),
        assistant_config(environ),
    ]
    return {config.name: config for config in configs}
