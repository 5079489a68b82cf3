"""
HTTP interface for MCP Relay using FastAPI.

Each configured MCP server is exposed under ``/api/mcp/{server}``. POST runs
an action against the caller's session; GET reports configuration and
connection status.
"""

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .. import __version__
from ..core.config import RelayConfig
from ..core.logging import get_logger
from ..mcp.exceptions import MCPError
from ..mcp.registry import MCPServerRegistry
from ..mcp.session import GLOBAL_IDENTITY
from ..mcp.utils import to_jsonable
from .actions import available_actions, dispatch
from .errors import configure_exception_handlers, error_response

logger = get_logger(__name__)


class ActionRequest(BaseModel):
    """Body of ``POST /api/mcp/{server}``."""

    # Optional so a missing action is reported as a 400, not a schema error
    action: Any = None
    params: dict[str, Any] | None = None
    identity: str | None = None


def _registry(request: Request) -> MCPServerRegistry:
    return request.app.state.registry


def _with_read_only(content: dict[str, Any], read_only: bool) -> dict[str, Any]:
    if read_only:
        content["readOnly"] = True
    return content


def create_app(
    config: RelayConfig | None = None,
    registry: MCPServerRegistry | None = None,
) -> FastAPI:
    """
    Create a configured FastAPI app.

    Args:
        config: Relay settings; discovered from the working directory if omitted
        registry: Prebuilt registry; built from ``config`` on startup if omitted
    """
    config = config or RelayConfig.discover()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.registry is None:
            app.state.registry = MCPServerRegistry.from_configs(
                config.server_configs(),
                client_name=config.client_name,
                client_version=config.client_version,
            )
        logger.info("Hosting MCP servers: %s", ", ".join(app.state.registry.names()) or "none")

        yield

        logger.info("Shutting down, closing MCP sessions")
        await app.state.registry.disconnect_all()

    app = FastAPI(title="MCP Relay", version=__version__, lifespan=lifespan)
    app.state.registry = registry
    app.state.config = config
    configure_exception_handlers(app, production=config.is_production)

    @app.get("/health")
    async def health():
        return {"status": "ok", "version": __version__}

    @app.get("/api/mcp")
    async def list_servers(request: Request):
        return {"success": True, "servers": _registry(request).list_servers()}

    @app.get("/api/mcp/{server}")
    async def server_status(request: Request, server: str, identity: str | None = None):
        manager = _registry(request).get(server)
        read_only = manager.config.read_only

        if not manager.is_configured():
            missing = manager.missing_credentials()
            return _with_read_only(
                {
                    "success": True,
                    "configured": False,
                    "message": f"{server} not configured. Set {' and '.join(missing)}.",
                    "missing": missing,
                    "availableActions": [],
                },
                read_only,
            )

        content: dict[str, Any] = {"success": True, "configured": True}
        tools = []
        if identity is None and manager.config.tenancy == "per_identity":
            # Connecting would provision an endpoint for a made-up identity
            content["connectionStatus"] = "requires_identity"
            content["availableActions"] = available_actions(manager.config.facade)
            content["tools"] = []
            return _with_read_only(content, read_only)

        try:
            tools = await manager.list_tools(identity=identity or GLOBAL_IDENTITY)
            content["connectionStatus"] = "connected"
        except MCPError as e:
            logger.warning("Status check for %s failed: %s", server, e)
            content["connectionStatus"] = "disconnected"
            content["error"] = str(e)

        content["availableActions"] = available_actions(manager.config.facade)
        content["tools"] = [{"name": t.name, "description": t.description} for t in tools]
        return _with_read_only(content, read_only)

    @app.post("/api/mcp/{server}")
    async def run_action(request: Request, server: str, body: ActionRequest):
        manager = _registry(request).get(server)
        read_only = manager.config.read_only
        identity = body.identity or GLOBAL_IDENTITY

        logger.info("%s: %s (identity=%s)", server, body.action, identity)
        try:
            result = await dispatch(manager, body.action, body.params or {}, identity)
        except MCPError as e:
            response = error_response(e, production=config.is_production)
            log = logger.error if response.status_code >= 500 else logger.warning
            log("%s: %s failed (%s): %s", server, body.action, response.kind, e)
            return JSONResponse(
                status_code=response.status_code,
                content=_with_read_only(response.to_dict(), read_only),
            )

        return _with_read_only(
            {"success": True, "action": body.action, "result": to_jsonable(result)},
            read_only,
        )

    @app.delete("/api/mcp/{server}/sessions/{identity}")
    async def disconnect_session(request: Request, server: str, identity: str):
        manager = _registry(request).get(server)
        await manager.disconnect(identity)
        return {"success": True, "disconnected": identity}

    return app
