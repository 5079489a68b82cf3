"""
Tests for the browser/database facades and tool prefixing.
"""

import json

import pytest
from mcp import types

from mcp_relay.mcp.facades import (
    BrowserAutomation,
    DatabaseInspector,
    prefixed_tools,
    tool_callables,
)
from mcp_relay.mcp.session import GLOBAL_IDENTITY


class _Manager:
    """Records call_tool invocations."""

    def __init__(self, tools=None):
        self.tools = tools or []
        self.calls = []
        self.timeouts = []
        self.listed_for = []

    async def list_tools(self, identity=GLOBAL_IDENTITY, timeout=None):
        self.listed_for.append(identity)
        return self.tools

    async def call_tool(self, tool_name, arguments=None, identity=GLOBAL_IDENTITY, timeout=None):
        self.calls.append((tool_name, arguments, identity))
        self.timeouts.append(timeout)
        return types.CallToolResult(content=[types.TextContent(type="text", text="ok")])


class TestBrowserAutomation:
    @pytest.mark.asyncio
    async def test_navigate_defaults_to_observing(self):
        manager = _Manager()
        await BrowserAutomation(manager).navigate_and_act("https://example.com")

        assert manager.calls == [
            (
                "browserbase_navigate",
                {"url": "https://example.com", "instruction": "Observe the page content"},
                GLOBAL_IDENTITY,
            )
        ]

    @pytest.mark.asyncio
    async def test_fill_form_builds_instruction(self):
        manager = _Manager()
        browser = BrowserAutomation(manager, identity="alice")

        await browser.fill_form("https://example.com/signup", {"email": "a@b.c"}, "click Join")

        tool, args, identity = manager.calls[0]
        assert tool == "browserbase_navigate"
        assert identity == "alice"
        assert args["instruction"] == (
            f"Fill out the form with the following data: {json.dumps({'email': 'a@b.c'})}. "
            "Then click Join."
        )

    @pytest.mark.asyncio
    async def test_extract_data(self):
        manager = _Manager()
        await BrowserAutomation(manager).extract_data("https://example.com", "the page title")

        assert manager.calls[0][1]["instruction"] == (
            "Extract the following information: the page title"
        )

    @pytest.mark.asyncio
    async def test_element_verbs(self):
        manager = _Manager()
        browser = BrowserAutomation(manager)

        await browser.click("#submit")
        await browser.type_text("#q", "hello")
        await browser.take_screenshot()
        await browser.get_page_content()

        assert [(name, args) for name, args, _ in manager.calls] == [
            ("browserbase_click", {"selector": "#submit"}),
            ("browserbase_type", {"selector": "#q", "text": "hello"}),
            ("browserbase_screenshot", {}),
            ("browserbase_get_content", {}),
        ]


class TestDatabaseInspector:
    @pytest.mark.asyncio
    async def test_verbs_map_to_tools(self):
        manager = _Manager()
        database = DatabaseInspector(manager, identity="alice")

        await database.execute_query("select 1")
        await database.get_schema()
        await database.list_tables()

        assert manager.calls == [
            ("execute_sql", {"query": "select 1"}, "alice"),
            ("get_schemas", {}, "alice"),
            ("list_tables", {}, "alice"),
        ]

    @pytest.mark.asyncio
    async def test_timeout_is_forwarded(self):
        manager = _Manager()
        await DatabaseInspector(manager, timeout=2.5).list_tables()
        await BrowserAutomation(manager, timeout=4.0).take_screenshot()

        assert manager.timeouts == [2.5, 4.0]


def test_prefixed_tools_leaves_originals_untouched():
    tools = [types.Tool(name="search", inputSchema={"type": "object"})]

    prefixed = prefixed_tools(tools, "notion")

    assert [t.name for t in prefixed] == ["notion_search"]
    assert tools[0].name == "search"


class TestToolCallables:
    @pytest.mark.asyncio
    async def test_tools_become_callables_bound_to_identity(self):
        manager = _Manager(
            tools=[
                types.Tool(
                    name="search",
                    description="Search the index",
                    inputSchema={
                        "type": "object",
                        "properties": {"query": {"type": "string"}},
                        "required": ["query"],
                    },
                ),
                types.Tool(name="echo", inputSchema={"type": "object"}),
            ]
        )

        tools = await tool_callables(manager, identity="alice")

        assert list(tools) == ["search", "echo"]
        assert manager.listed_for == ["alice"]
        assert tools["search"].description == "Search the index"
        assert tools["search"].input_schema == {
            "type": "object",
            "properties": {"query": {"type": "string"}},
            "required": ["query"],
            "additionalProperties": False,
        }
        assert tools["echo"].input_schema["properties"] == {}

        result = await tools["search"].execute({"query": "mcp"}, timeout=3.0)
        await tools["echo"]()

        assert result.content[0].text == "ok"
        assert manager.calls == [("search", {"query": "mcp"}, "alice"), ("echo", None, "alice")]
        assert manager.timeouts == [3.0, None]

    @pytest.mark.asyncio
    async def test_prefix_renames_keys_but_calls_remote_name(self):
        manager = _Manager(tools=[types.Tool(name="search", inputSchema={"type": "object"})])

        tools = await tool_callables(manager, prefix="notion")

        assert list(tools) == ["notion_search"]
        assert tools["notion_search"].name == "notion_search"
        await tools["notion_search"].execute({"query": "x"})
        assert manager.calls == [("search", {"query": "x"}, GLOBAL_IDENTITY)]
