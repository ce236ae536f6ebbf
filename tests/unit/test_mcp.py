"""Tests for agentcore.mcp: tool adaptation and multi-server routing.

A fake session stands in for ``mcp.ClientSession`` so no server process
is needed.
"""

from __future__ import annotations

import json
from contextlib import asynccontextmanager
from types import SimpleNamespace

import pytest

from agentcore.errors import ConfigurationError, MCPError
from agentcore.mcp import client as client_module
from agentcore.mcp.client import (
    MCPClient,
    parse_permissions,
    qualified_name,
    result_text,
    split_qualified_name,
)
from agentcore.mcp.manager import MCPManager
from agentcore.permissions.manager import PermissionManager
from agentcore.tools.executor import ToolExecutor
from agentcore.types.config import MCPServerConfig, PermissionMode
from agentcore.types.tools import ToolPermission


def _text(text: str) -> SimpleNamespace:
    return SimpleNamespace(type="text", text=text)


class FakeSession:
    """Just enough of ClientSession for tool discovery and calls."""

    def __init__(self, tools: dict[str, str], *, fail_list: bool = False):
        self._tools = tools
        self._fail_list = fail_list
        self.calls: list[tuple[str, dict]] = []
        self.responses: dict[str, object] = {}

    async def list_tools(self):
        if self._fail_list:
            raise RuntimeError("server went away")
        return SimpleNamespace(tools=[
            SimpleNamespace(
                name=name,
                description=desc,
                inputSchema={"type": "object", "properties": {"q": {"type": "string"}}},
            )
            for name, desc in self._tools.items()
        ])

    async def call_tool(self, name, arguments):
        self.calls.append((name, arguments))
        response = self.responses.get(name)
        if isinstance(response, Exception):
            raise response
        if response is not None:
            return response
        return SimpleNamespace(
            content=[_text(f"{name}: {arguments.get('q', '')}")],
            isError=False,
            structuredContent=None,
        )


class ConnectingSession(FakeSession):
    """FakeSession usable where ``connect`` builds a ClientSession."""

    def __init__(self, events: list, *, fail_list: bool = False):
        super().__init__({"search": "Search docs"}, fail_list=fail_list)
        self._events = events

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        self._events.append("session closed")

    async def initialize(self):
        self._events.append("initialized")


@pytest.fixture
def stdio_transport(monkeypatch):
    """Patch the stdio transport and ClientSession; returns (events, options)."""
    events: list = []
    options = {"fail_list": False}

    @asynccontextmanager
    async def fake_stdio_client(params):
        events.append(f"spawned {params.command}")
        try:
            yield "read", "write"
        finally:
            events.append(f"stopped {params.command}")

    monkeypatch.setattr(client_module, "stdio_client", fake_stdio_client)
    monkeypatch.setattr(
        client_module, "ClientSession",
        lambda read, write: ConnectingSession(events, fail_list=options["fail_list"]),
    )
    return events, options


async def _client(name="docs", tools=None, **config) -> tuple[MCPClient, FakeSession]:
    session = FakeSession(tools if tools is not None else {"search": "Search docs"})
    client = MCPClient(name, MCPServerConfig(**config))
    await client.attach(session)
    return client, session


class TestNames:
    def test_round_trip(self):
        assert qualified_name("docs", "search") == "mcp__docs__search"
        assert split_qualified_name("mcp__docs__search") == ("docs", "search")

    def test_tool_names_may_contain_separator(self):
        assert split_qualified_name("mcp__docs__find__all") == ("docs", "find__all")

    @pytest.mark.parametrize("name", ["search", "mcp__docs", "other__docs__search", "mcp____x"])
    def test_non_mcp_names(self, name):
        assert split_qualified_name(name) is None

    @pytest.mark.parametrize("name", ["", "a__b"])
    def test_invalid_server_names(self, name):
        with pytest.raises(ConfigurationError):
            MCPClient(name)


class TestPermissions:
    def test_parse(self):
        assert parse_permissions(["read"]) == ToolPermission.READ
        assert parse_permissions(("Read", "NETWORK")) == ToolPermission.READ | ToolPermission.NETWORK

    def test_empty_falls_back_to_default(self):
        assert parse_permissions([]) == ToolPermission.EXECUTE | ToolPermission.NETWORK

    def test_unknown(self):
        with pytest.raises(ConfigurationError, match="Unknown tool permission"):
            parse_permissions(["admin"])


class TestResultText:
    def test_mixed_content(self):
        result = SimpleNamespace(content=[
            _text("line one"),
            SimpleNamespace(type="image", data="AAAA", mimeType="image/png"),
            _text("line two"),
        ])
        assert result_text(result) == "line one\n[image/png content]\nline two"

    def test_empty(self):
        assert result_text(SimpleNamespace(content=[])) == "No output"


class TestMCPClient:
    @pytest.mark.asyncio
    async def test_discovery(self):
        client, _ = await _client(tools={"search": "Search docs", "fetch": ""})
        assert client.connected
        names = [t.definition.name for t in client.tools]
        assert names == ["mcp__docs__search", "mcp__docs__fetch"]
        search, fetch = client.tools
        assert search.definition.description == "Search docs"
        assert fetch.definition.description == "MCP tool from docs"
        assert search.definition.permissions == ToolPermission.EXECUTE | ToolPermission.NETWORK
        assert search.definition.input_schema()["properties"] == {"q": {"type": "string"}}
        assert search.server_name == "docs"
        assert search.tool_name == "search"

    @pytest.mark.asyncio
    async def test_configured_permissions(self):
        client, _ = await _client(permissions=("read",))
        assert client.tools[0].definition.permissions == ToolPermission.READ

    @pytest.mark.asyncio
    async def test_discovery_failure(self):
        client = MCPClient("docs")
        with pytest.raises(MCPError, match="server went away"):
            await client.attach(FakeSession({}, fail_list=True))

    @pytest.mark.asyncio
    async def test_call_uses_short_name(self):
        client, session = await _client()
        result = await client.tools[0].execute(b'{"q": "install"}')
        assert result.content == "search: install"
        assert not result.is_error
        assert session.calls == [("search", {"q": "install"})]

    @pytest.mark.asyncio
    async def test_server_error_flag(self):
        client, session = await _client()
        session.responses["search"] = SimpleNamespace(
            content=[_text("index missing")], isError=True, structuredContent=None,
        )
        result = await client.call_tool("search", {})
        assert result.is_error
        assert result.content == "index missing"

    @pytest.mark.asyncio
    async def test_structured_content(self):
        client, session = await _client()
        session.responses["search"] = SimpleNamespace(
            content=[_text("2 hits")], isError=False, structuredContent={"hits": 2},
        )
        result = await client.call_tool("search", {})
        assert json.loads(result.structured) == {"hits": 2}

    @pytest.mark.asyncio
    async def test_exception_becomes_error_result(self):
        client, session = await _client()
        session.responses["search"] = TimeoutError("slow server")
        result = await client.call_tool("search", {})
        assert result.is_error
        assert result.content == "MCP tool error: TimeoutError: slow server"

    @pytest.mark.asyncio
    async def test_invalid_input_is_error_result(self):
        client, session = await _client()
        result = await client.tools[0].execute(b"[1, 2]")
        assert result.is_error
        assert session.calls == []

    @pytest.mark.asyncio
    async def test_disconnect(self):
        client, _ = await _client()
        await client.disconnect()
        assert not client.connected
        assert client.tools == []
        result = await client.call_tool("search", {})
        assert result.is_error
        assert result.content == "MCP server 'docs' not connected"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("config, match", [
        (MCPServerConfig(transport="stdio"), "needs a command"),
        (MCPServerConfig(transport="http"), "needs a url"),
        (MCPServerConfig(transport="carrier-pigeon"), "Unknown MCP transport"),
    ])
    async def test_connect_rejects_bad_config(self, config, match):
        with pytest.raises(ConfigurationError, match=match):
            await MCPClient("docs", config).connect()


class TestMCPManager:
    @pytest.mark.asyncio
    async def test_routing(self):
        docs, docs_session = await _client("docs")
        db, db_session = await _client("db", tools={"search": "Search rows"})
        manager = MCPManager()
        manager.add_client(docs)
        manager.add_client(db)

        assert manager.server_names == ["docs", "db"]
        assert manager.server_count == 2
        assert manager.tool_count == 2
        assert manager.tool_set().names == ["mcp__docs__search", "mcp__db__search"]

        client, short = manager.get_server_for_tool("mcp__db__search")
        assert client is db
        assert short == "search"

        result = await manager.call_tool("mcp__db__search", {"q": "users"})
        assert result.content == "search: users"
        assert db_session.calls == [("search", {"q": "users"})]
        assert docs_session.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["mcp__nowhere__search", "search"])
    async def test_unknown_tool(self, name):
        manager = MCPManager()
        assert manager.get_server_for_tool(name) is None
        result = await manager.call_tool(name, {})
        assert result.is_error
        assert result.content == f"No MCP server found for tool: {name}"

    @pytest.mark.asyncio
    async def test_duplicate_server(self):
        docs, _ = await _client("docs")
        manager = MCPManager()
        manager.add_client(docs)
        with pytest.raises(ConfigurationError, match="already added"):
            manager.add_client(docs)
        with pytest.raises(ConfigurationError, match="already added"):
            await manager.add_server("docs", MCPServerConfig(command="x"))

    @pytest.mark.asyncio
    async def test_failed_server_is_not_registered(self):
        manager = MCPManager()
        with pytest.raises(ConfigurationError):
            await manager.add_server("broken", MCPServerConfig(transport="http"))
        assert manager.server_count == 0

    @pytest.mark.asyncio
    async def test_context_manager_disconnects(self):
        docs, _ = await _client("docs")
        async with MCPManager() as manager:
            manager.add_client(docs)
        assert manager.server_count == 0
        assert not docs.connected

    @pytest.mark.asyncio
    async def test_tools_go_through_permission_gate(self):
        docs, session = await _client("docs")
        manager = MCPManager()
        manager.add_client(docs)
        executor = ToolExecutor(manager.tool_set(), PermissionManager(PermissionMode.ACCEPT_READ_ONLY))

        result = await executor.execute("mcp__docs__search", "tu1", b'{"q": "x"}')

        assert result.is_error
        assert result.content.startswith("Permission denied")
        assert session.calls == []


class TestConnect:
    @pytest.mark.asyncio
    async def test_connect_and_disconnect(self, stdio_transport):
        events, _ = stdio_transport
        client = MCPClient("docs", MCPServerConfig(command="docs-server"))
        await client.connect()
        assert client.connected
        assert [t.definition.name for t in client.tools] == ["mcp__docs__search"]
        assert events == ["spawned docs-server", "initialized"]

        await client.disconnect()
        assert events[2:] == ["session closed", "stopped docs-server"]

    @pytest.mark.asyncio
    async def test_discovery_failure_releases_transport(self, stdio_transport):
        events, options = stdio_transport
        options["fail_list"] = True
        client = MCPClient("docs", MCPServerConfig(command="docs-server"))
        with pytest.raises(MCPError, match="server went away"):
            await client.connect()
        assert not client.connected
        assert client.tools == []
        assert events[-2:] == ["session closed", "stopped docs-server"]

    @pytest.mark.asyncio
    async def test_manager_failure_releases_transport(self, stdio_transport):
        events, options = stdio_transport
        options["fail_list"] = True
        manager = MCPManager()
        with pytest.raises(MCPError):
            await manager.add_server("docs", MCPServerConfig(command="docs-server"))
        assert manager.server_count == 0
        assert events[-1] == "stopped docs-server"
