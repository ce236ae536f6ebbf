"""Multi-server MCP manager."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from agentcore.errors import ConfigurationError
from agentcore.mcp.client import MCPClient, MCPTool, split_qualified_name
from agentcore.tools.manager import ToolSet
from agentcore.types.config import MCPServerConfig
from agentcore.types.tools import ToolResult

logger = logging.getLogger(__name__)


class MCPManager:
    """Manages multiple MCP server connections.

    Usage::

        async with MCPManager() as mcp:
            await mcp.add_servers(options_servers)
            tools = build_tool_set([*local_tools, *mcp.tools()])
    """

    def __init__(self) -> None:
        self._clients: dict[str, MCPClient] = {}

    async def add_server(self, name: str, config: MCPServerConfig) -> MCPClient:
        """Add and connect to an MCP server."""
        if name in self._clients:
            raise ConfigurationError(f"MCP server '{name}' already added")
        client = MCPClient(name, config)
        try:
            await client.connect()
        except Exception as exc:
            logger.error("Failed to connect MCP server '%s': %s", name, exc)
            raise
        self._clients[name] = client
        logger.info("Added MCP server: %s (%d tools)", name, len(client.tools))
        return client

    async def add_servers(self, servers: Mapping[str, MCPServerConfig]) -> None:
        for name, config in servers.items():
            await self.add_server(name, config)

    def add_client(self, client: MCPClient) -> None:
        """Register a client that is already connected."""
        if client.name in self._clients:
            raise ConfigurationError(f"MCP server '{client.name}' already added")
        self._clients[client.name] = client

    def tools(self) -> list[MCPTool]:
        """All tools from all connected servers, in server order."""
        tools: list[MCPTool] = []
        for client in self._clients.values():
            tools.extend(client.tools)
        return tools

    def tool_set(self) -> ToolSet:
        return ToolSet(self.tools())

    def get_server_for_tool(self, tool_name: str) -> tuple[MCPClient, str] | None:
        """Find which server owns a tool. Returns (client, short_name) or None.

        tool_name is the full prefixed name like "mcp__postgres__query".
        """
        parts = split_qualified_name(tool_name)
        if parts is None:
            return None
        server_name, short_name = parts
        client = self._clients.get(server_name)
        if client is None:
            return None
        return client, short_name

    async def call_tool(self, tool_name: str, args: dict[str, Any]) -> ToolResult:
        """Route a tool call to the correct MCP server."""
        found = self.get_server_for_tool(tool_name)
        if found is None:
            return ToolResult.error(f"No MCP server found for tool: {tool_name}")
        client, short_name = found
        return await client.call_tool(short_name, args)

    async def disconnect_all(self) -> None:
        """Disconnect all MCP servers, newest first."""
        for name in reversed(list(self._clients)):
            client = self._clients[name]
            try:
                await client.disconnect()
                logger.info("Disconnected MCP server: %s", name)
            except Exception as exc:
                logger.warning("Error disconnecting '%s': %s", name, exc)
        self._clients.clear()

    @property
    def server_names(self) -> list[str]:
        return list(self._clients)

    @property
    def server_count(self) -> int:
        return len(self._clients)

    @property
    def tool_count(self) -> int:
        return sum(len(c.tools) for c in self._clients.values())

    async def __aenter__(self) -> MCPManager:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.disconnect_all()
