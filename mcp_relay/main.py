"""
Command line interface for MCP Relay.

Inspect configured servers, call tools from the terminal, or serve the
HTTP interface.
"""

import argparse
import asyncio
import json
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from . import __version__
from .core.config import RelayConfig
from .core.exceptions import RelayError, format_error_message
from .core.logging import get_logger, setup_logging
from .mcp.exceptions import MCPError, format_mcp_error
from .mcp.manager import MCPSessionManager
from .mcp.registry import MCPServerRegistry
from .mcp.session import GLOBAL_IDENTITY
from .mcp.utils import to_jsonable

logger = get_logger(__name__)
console = Console()


def _load_config(args: argparse.Namespace) -> RelayConfig:
    if args.config:
        return RelayConfig.load_from_file(Path(args.config))
    return RelayConfig.discover()


def _build_registry(config: RelayConfig) -> MCPServerRegistry:
    return MCPServerRegistry.from_configs(
        config.server_configs(),
        client_name=config.client_name,
        client_version=config.client_version,
    )


def _print_json(data: Any) -> None:
    console.print(Syntax(json.dumps(to_jsonable(data), indent=2), "json", word_wrap=True))


async def _run_on_server(
    config: RelayConfig,
    server: str,
    operation: Callable[[MCPSessionManager], Awaitable[Any]],
) -> Any:
    registry = _build_registry(config)
    try:
        return await operation(registry.get(server))
    finally:
        await registry.disconnect_all()


def cmd_servers(args: argparse.Namespace, config: RelayConfig) -> int:
    registry = _build_registry(config)
    table = Table(title="MCP servers", show_header=True, header_style="bold cyan")
    table.add_column("Name", style="cyan")
    table.add_column("Transport")
    table.add_column("Tenancy")
    table.add_column("Status")
    table.add_column("Description", style="dim")

    for server in registry.list_servers():
        if server["configured"]:
            status = "[green]configured[/green]"
        else:
            status = f"[yellow]missing {', '.join(server['missing'])}[/yellow]"
        table.add_row(
            server["name"],
            server["transport"],
            server["tenancy"],
            status,
            server["description"] or "",
        )

    console.print(table)
    return 0


def cmd_tools(args: argparse.Namespace, config: RelayConfig) -> int:
    tools = asyncio.run(
        _run_on_server(config, args.server, lambda m: m.list_tools(identity=args.identity))
    )
    if not tools:
        console.print("[yellow]No tools available[/yellow]")
        return 0

    table = Table(title=f"Tools from '{args.server}'")
    table.add_column("Name", style="cyan")
    table.add_column("Description", style="white")
    for tool in tools:
        table.add_row(tool.name, tool.description or "")
    console.print(table)

    if args.schemas:
        for tool in tools:
            console.print(f"\n[cyan]{tool.name}[/cyan]")
            _print_json(tool.inputSchema)
    return 0


def cmd_call(args: argparse.Namespace, config: RelayConfig) -> int:
    try:
        tool_args = json.loads(args.args) if args.args else {}
    except json.JSONDecodeError as e:
        console.print(f"[red]Invalid JSON arguments:[/red] {e}")
        return 2
    if not isinstance(tool_args, dict):
        console.print("[red]Tool arguments must be a JSON object[/red]")
        return 2

    result = asyncio.run(
        _run_on_server(
            config,
            args.server,
            lambda m: m.call_tool(
                args.tool, tool_args, identity=args.identity, timeout=args.timeout
            ),
        )
    )
    _print_json(result)
    return 1 if result.isError else 0


def cmd_read(args: argparse.Namespace, config: RelayConfig) -> int:
    result = asyncio.run(
        _run_on_server(
            config,
            args.server,
            lambda m: m.read_resource(args.uri, identity=args.identity, timeout=args.timeout),
        )
    )
    _print_json(result)
    return 0


def cmd_serve(args: argparse.Namespace, config: RelayConfig) -> int:
    import uvicorn

    from .server.app import create_app

    app = create_app(config)
    uvicorn.run(
        app,
        host=args.host or config.host,
        port=args.port or config.port,
        log_config=None,
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mcp-relay",
        description="MCP Relay: sessions to Model Context Protocol servers",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  mcp-relay servers
  mcp-relay tools browserbase
  mcp-relay call supabase execute_sql --args '{"query": "select 1"}'
  mcp-relay read notion notion://page/123
  mcp-relay serve --port 8080
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", "-c", type=str, help="Path to mcp_relay.yaml")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    servers = subparsers.add_parser("servers", help="List configured servers")
    servers.set_defaults(func=cmd_servers)

    identity_help = f"Identity key for the session (default: {GLOBAL_IDENTITY})"
    timeout_help = "Deadline for the call in seconds (default: the server timeout)"

    tools = subparsers.add_parser("tools", help="List a server's tools")
    tools.add_argument("server")
    tools.add_argument("--identity", default=GLOBAL_IDENTITY, help=identity_help)
    tools.add_argument("--schemas", action="store_true", help="Show input schemas")
    tools.set_defaults(func=cmd_tools)

    call = subparsers.add_parser("call", help="Call a tool")
    call.add_argument("server")
    call.add_argument("tool")
    call.add_argument("--args", "-a", type=str, help="Tool arguments as a JSON object")
    call.add_argument("--identity", default=GLOBAL_IDENTITY, help=identity_help)
    call.add_argument("--timeout", type=float, help=timeout_help)
    call.set_defaults(func=cmd_call)

    read = subparsers.add_parser("read", help="Read a resource")
    read.add_argument("server")
    read.add_argument("uri")
    read.add_argument("--identity", default=GLOBAL_IDENTITY, help=identity_help)
    read.add_argument("--timeout", type=float, help=timeout_help)
    read.set_defaults(func=cmd_read)

    serve = subparsers.add_parser("serve", help="Serve the HTTP interface")
    serve.add_argument("--host", type=str, help="Host to bind to (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, help="Port to bind to (default: 8000)")
    serve.set_defaults(func=cmd_serve)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(verbose=args.verbose)

    try:
        config = _load_config(args)
        return args.func(args, config)
    except MCPError as e:
        console.print(format_mcp_error(e, verbose=args.verbose), style="red", markup=False)
        return 1
    except RelayError as e:
        console.print(format_error_message(e), style="red", markup=False)
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
