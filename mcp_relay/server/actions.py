"""
Action dispatch for the HTTP boundary.

Request bodies name an action from a closed set; each action maps to one
handler. Browser and database verbs are only offered by servers configured
with the matching facade.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..mcp.exceptions import MCPInvalidRequestError
from ..mcp.facades import BrowserAutomation, DatabaseInspector
from ..mcp.manager import MCPSessionManager


class Action(str, Enum):
    LIST_TOOLS = "list_tools"
    CALL_TOOL = "call_tool"
    LIST_RESOURCES = "list_resources"
    READ_RESOURCE = "read_resource"
    LIST_PROMPTS = "list_prompts"
    GET_PROMPT = "get_prompt"
    # browser
    NAVIGATE = "navigate"
    FILL_FORM = "fill_form"
    SCREENSHOT = "screenshot"
    EXTRACT = "extract"
    CLICK = "click"
    TYPE = "type"
    GET_CONTENT = "get_content"
    # database
    EXECUTE_QUERY = "execute_query"
    GET_SCHEMA = "get_schema"
    LIST_TABLES = "list_tables"


Handler = Callable[[MCPSessionManager, dict[str, Any], str], Awaitable[Any]]


@dataclass(frozen=True)
class ActionSpec:
    handler: Handler
    facade: str | None = None


def _require(params: dict[str, Any], action: Action, *names: str) -> None:
    missing = [name for name in names if not params.get(name)]
    if missing:
        fields = " or ".join(f'"params.{name}"' for name in missing)
        raise MCPInvalidRequestError(
            f"Missing {fields} for {action.value} action", field=f"params.{missing[0]}"
        )


def _arguments(params: dict[str, Any]) -> dict[str, Any]:
    args = params.get("args") or {}
    if not isinstance(args, dict):
        raise MCPInvalidRequestError('"params.args" must be an object', field="params.args")
    return args


def _timeout(params: dict[str, Any]) -> float | None:
    value = params.get("timeoutSeconds")
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise MCPInvalidRequestError(
            '"params.timeoutSeconds" must be a positive number', field="params.timeoutSeconds"
        )
    return float(value)


async def _list_tools(manager, params, identity):
    return await manager.list_tools(identity=identity, timeout=_timeout(params))


async def _call_tool(manager, params, identity):
    _require(params, Action.CALL_TOOL, "toolName")
    return await manager.call_tool(
        params["toolName"], _arguments(params), identity=identity, timeout=_timeout(params)
    )


async def _list_resources(manager, params, identity):
    return await manager.list_resources(identity=identity, timeout=_timeout(params))


async def _read_resource(manager, params, identity):
    _require(params, Action.READ_RESOURCE, "uri")
    return await manager.read_resource(
        params["uri"], identity=identity, timeout=_timeout(params)
    )


async def _list_prompts(manager, params, identity):
    return await manager.list_prompts(identity=identity, timeout=_timeout(params))


async def _get_prompt(manager, params, identity):
    _require(params, Action.GET_PROMPT, "promptName")
    arguments = {k: str(v) for k, v in _arguments(params).items()}
    return await manager.get_prompt(
        params["promptName"], arguments, identity=identity, timeout=_timeout(params)
    )


async def _navigate(manager, params, identity):
    _require(params, Action.NAVIGATE, "url")
    browser = BrowserAutomation(manager, identity, _timeout(params))
    return await browser.navigate_and_act(params["url"], params.get("instruction"))


async def _fill_form(manager, params, identity):
    _require(params, Action.FILL_FORM, "url", "formData")
    browser = BrowserAutomation(manager, identity, _timeout(params))
    return await browser.fill_form(
        params["url"],
        params["formData"],
        params.get("submitInstruction") or "Submit the form",
    )


async def _screenshot(manager, params, identity):
    return await BrowserAutomation(manager, identity, _timeout(params)).take_screenshot()


async def _extract(manager, params, identity):
    _require(params, Action.EXTRACT, "url", "instruction")
    browser = BrowserAutomation(manager, identity, _timeout(params))
    return await browser.extract_data(params["url"], params["instruction"])


async def _click(manager, params, identity):
    _require(params, Action.CLICK, "selector")
    browser = BrowserAutomation(manager, identity, _timeout(params))
    return await browser.click(params["selector"])


async def _type(manager, params, identity):
    _require(params, Action.TYPE, "selector", "text")
    browser = BrowserAutomation(manager, identity, _timeout(params))
    return await browser.type_text(params["selector"], params["text"])


async def _get_content(manager, params, identity):
    return await BrowserAutomation(manager, identity, _timeout(params)).get_page_content()


async def _execute_query(manager, params, identity):
    _require(params, Action.EXECUTE_QUERY, "query")
    database = DatabaseInspector(manager, identity, _timeout(params))
    return await database.execute_query(params["query"])


async def _get_schema(manager, params, identity):
    return await DatabaseInspector(manager, identity, _timeout(params)).get_schema()


async def _list_tables(manager, params, identity):
    return await DatabaseInspector(manager, identity, _timeout(params)).list_tables()


ACTIONS: dict[Action, ActionSpec] = {
    Action.LIST_TOOLS: ActionSpec(_list_tools),
    Action.CALL_TOOL: ActionSpec(_call_tool),
    Action.LIST_RESOURCES: ActionSpec(_list_resources),
    Action.READ_RESOURCE: ActionSpec(_read_resource),
    Action.LIST_PROMPTS: ActionSpec(_list_prompts),
    Action.GET_PROMPT: ActionSpec(_get_prompt),
    Action.NAVIGATE: ActionSpec(_navigate, "browser"),
    Action.FILL_FORM: ActionSpec(_fill_form, "browser"),
    Action.SCREENSHOT: ActionSpec(_screenshot, "browser"),
    Action.EXTRACT: ActionSpec(_extract, "browser"),
    Action.CLICK: ActionSpec(_click, "browser"),
    Action.TYPE: ActionSpec(_type, "browser"),
    Action.GET_CONTENT: ActionSpec(_get_content, "browser"),
    Action.EXECUTE_QUERY: ActionSpec(_execute_query, "database"),
    Action.GET_SCHEMA: ActionSpec(_get_schema, "database"),
    Action.LIST_TABLES: ActionSpec(_list_tables, "database"),
}


def available_actions(facade: str | None) -> list[str]:
    """Action names a server with ``facade`` accepts."""
    return [
        action.value
        for action, spec in ACTIONS.items()
        if spec.facade is None or spec.facade == facade
    ]


def resolve_action(name: Any, facade: str | None) -> ActionSpec:
    """
    Look up the handler for an action name.

    Raises:
        MCPInvalidRequestError: If the action is missing, unknown, or not
            offered by this server
    """
    if not name:
        raise MCPInvalidRequestError('Missing "action" field', field="action")
    try:
        action = Action(name)
    except ValueError:
        raise MCPInvalidRequestError(f"Unknown action: {name}", field="action")

    spec = ACTIONS[action]
    if spec.facade is not None and spec.facade != facade:
        raise MCPInvalidRequestError(f"Unknown action: {name}", field="action")
    return spec


async def dispatch(
    manager: MCPSessionManager, action: Any, params: dict[str, Any], identity: str
) -> Any:
    spec = resolve_action(action, manager.config.facade)
    return await spec.handler(manager, params, identity)
