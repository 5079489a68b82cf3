"""
Domain-specific wrappers over a session manager.

Each method is a thin adapter that names a remote tool and shapes its
arguments. Nothing here holds state or retries; errors from the manager
pass through unchanged.
"""

import json
from dataclasses import dataclass, field
from typing import Any

from mcp import types

from .manager import MCPSessionManager
from .session import GLOBAL_IDENTITY

DEFAULT_OBSERVE_INSTRUCTION = "Observe the page content"


class BrowserAutomation:
    """Browser verbs for a browserbase-style MCP server."""

    def __init__(
        self,
        manager: MCPSessionManager,
        identity: str = GLOBAL_IDENTITY,
        timeout: float | None = None,
    ):
        self.manager = manager
        self.identity = identity
        self.timeout = timeout

    async def _call(self, tool_name: str, arguments: dict[str, Any]) -> types.CallToolResult:
        return await self.manager.call_tool(
            tool_name, arguments, identity=self.identity, timeout=self.timeout
        )

    async def navigate_and_act(
        self, url: str, instruction: str | None = None
    ) -> types.CallToolResult:
        return await self._call(
            "browserbase_navigate",
            {"url": url, "instruction": instruction or DEFAULT_OBSERVE_INSTRUCTION},
        )

    async def take_screenshot(self) -> types.CallToolResult:
        return await self._call("browserbase_screenshot", {})

    async def fill_form(
        self,
        url: str,
        form_data: dict[str, Any],
        submit_instruction: str = "Submit the form",
    ) -> types.CallToolResult:
        instruction = (
            f"Fill out the form with the following data: {json.dumps(form_data)}. "
            f"Then {submit_instruction}."
        )
        return await self.navigate_and_act(url, instruction)

    async def extract_data(self, url: str, extraction_instruction: str) -> types.CallToolResult:
        return await self.navigate_and_act(
            url, f"Extract the following information: {extraction_instruction}"
        )

    async def click(self, selector: str) -> types.CallToolResult:
        return await self._call("browserbase_click", {"selector": selector})

    async def type_text(self, selector: str, text: str) -> types.CallToolResult:
        return await self._call("browserbase_type", {"selector": selector, "text": text})

    async def get_page_content(self) -> types.CallToolResult:
        return await self._call("browserbase_get_content", {})


class DatabaseInspector:
    """Read-only database verbs for a supabase-style MCP server."""

    def __init__(
        self,
        manager: MCPSessionManager,
        identity: str = GLOBAL_IDENTITY,
        timeout: float | None = None,
    ):
        self.manager = manager
        self.identity = identity
        self.timeout = timeout

    async def _call(self, tool_name: str, arguments: dict[str, Any]) -> types.CallToolResult:
        return await self.manager.call_tool(
            tool_name, arguments, identity=self.identity, timeout=self.timeout
        )

    async def execute_query(self, query: str) -> types.CallToolResult:
        return await self._call("execute_sql", {"query": query})

    async def get_schema(self) -> types.CallToolResult:
        return await self._call("get_schemas", {})

    async def list_tables(self) -> types.CallToolResult:
        return await self._call("list_tables", {})


def prefixed_tools(tools: list[types.Tool], prefix: str) -> list[types.Tool]:
    """
    Copy ``tools`` with ``<prefix>_`` prepended to each name.

    Used when several servers' tools share one catalogue.
    """
    return [tool.model_copy(update={"name": f"{prefix}_{tool.name}"}) for tool in tools]


@dataclass
class RemoteTool:
    """A remote tool bound to a manager and identity, callable like a local one."""

    name: str
    description: str | None
    input_schema: dict[str, Any]
    remote_name: str
    manager: MCPSessionManager = field(repr=False)
    identity: str = GLOBAL_IDENTITY

    async def execute(
        self, arguments: dict[str, Any] | None = None, *, timeout: float | None = None
    ) -> types.CallToolResult:
        return await self.manager.call_tool(
            self.remote_name, arguments, identity=self.identity, timeout=timeout
        )

    __call__ = execute


def _object_schema(schema: dict[str, Any] | None) -> dict[str, Any]:
    schema = schema or {}
    return {
        "type": "object",
        "properties": schema.get("properties") or {},
        "required": schema.get("required") or [],
        "additionalProperties": False,
    }


async def tool_callables(
    manager: MCPSessionManager,
    identity: str = GLOBAL_IDENTITY,
    prefix: str | None = None,
) -> dict[str, RemoteTool]:
    """
    List the server's tools and bind each one to ``manager`` and ``identity``.

    Args:
        manager: Manager the tools are called through
        identity: Identity whose session serves the calls
        prefix: Optional ``<prefix>_`` added to each key, as in ``prefixed_tools``

    Returns:
        Mapping of tool name to RemoteTool; ``execute`` still sends the
        server's own tool name
    """
    tools = await manager.list_tools(identity=identity)
    bound: dict[str, RemoteTool] = {}
    for tool in tools:
        name = f"{prefix}_{tool.name}" if prefix else tool.name
        bound[name] = RemoteTool(
            name=name,
            description=tool.description,
            input_schema=_object_schema(tool.inputSchema),
            remote_name=tool.name,
            manager=manager,
            identity=identity,
        )
    return bound
