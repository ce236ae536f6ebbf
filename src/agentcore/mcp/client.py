"""Low-level MCP client wrapping the official mcp SDK."""

from __future__ import annotations

import json
import logging
from contextlib import AsyncExitStack
from typing import Any

from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client
from mcp.client.streamable_http import streamablehttp_client

from agentcore.errors import ConfigurationError, MCPError, ToolInputError
from agentcore.tools.base import decode_input
from agentcore.types.config import MCPServerConfig
from agentcore.types.tools import ToolDef, ToolPermission, ToolResult

logger = logging.getLogger(__name__)

TOOL_PREFIX = "mcp"
DEFAULT_PERMISSIONS = ToolPermission.EXECUTE | ToolPermission.NETWORK


def qualified_name(server: str, tool: str) -> str:
    return f"{TOOL_PREFIX}__{server}__{tool}"


def split_qualified_name(name: str) -> tuple[str, str] | None:
    """``mcp__server__tool`` -> ``(server, tool)``, or None for other names."""
    parts = name.split("__", 2)
    if len(parts) != 3 or parts[0] != TOOL_PREFIX or not parts[1] or not parts[2]:
        return None
    return parts[1], parts[2]


def parse_permissions(names: tuple[str, ...] | list[str]) -> ToolPermission:
    """Map configured category names (``"read"``, ``"network"``...) to flags."""
    flags = ToolPermission.NONE
    for name in names:
        try:
            flags |= ToolPermission[name.upper()]
        except KeyError:
            raise ConfigurationError(f"Unknown tool permission: {name!r}") from None
    return flags or DEFAULT_PERMISSIONS


def result_text(result: Any) -> str:
    """Flatten the content items of a ``tools/call`` result into text."""
    parts: list[str] = []
    for item in result.content:
        text = getattr(item, "text", None)
        if text is not None:
            parts.append(text)
        elif getattr(item, "data", None) is not None:
            parts.append(f"[{getattr(item, 'mimeType', 'binary')} content]")
        else:
            parts.append(str(item))
    return "\n".join(parts) if parts else "No output"


class MCPTool:
    """Adapts one server tool to the Tool protocol."""

    def __init__(
        self,
        client: MCPClient,
        tool_name: str,
        description: str,
        schema: dict[str, Any] | None,
        permissions: ToolPermission = DEFAULT_PERMISSIONS,
    ) -> None:
        self._client = client
        self._tool_name = tool_name
        self._definition = ToolDef(
            name=qualified_name(client.name, tool_name),
            description=description or f"MCP tool from {client.name}",
            permissions=permissions,
            schema=schema or {"type": "object", "properties": {}},
        )

    @property
    def definition(self) -> ToolDef:
        return self._definition

    @property
    def server_name(self) -> str:
        return self._client.name

    @property
    def tool_name(self) -> str:
        return self._tool_name

    async def execute(self, input_data: bytes) -> ToolResult:
        try:
            args = decode_input(input_data)
        except ToolInputError as exc:
            return ToolResult.error(str(exc))
        return await self._client.call_tool(self._tool_name, args)

    def __repr__(self) -> str:
        return f"MCPTool({self._definition.name!r})"


class MCPClient:
    """Manages a connection to a single MCP server.

    ``connect`` opens the configured transport (a subprocess over stdio or a
    streamable HTTP endpoint), runs the ``initialize`` handshake and lists
    the server's tools. All transport resources live on one exit stack and
    are released by ``disconnect``.
    """

    def __init__(self, name: str, config: MCPServerConfig | None = None):
        if not name or "__" in name:
            raise ConfigurationError(f"Invalid MCP server name: {name!r}")
        self.name = name
        self._config = config or MCPServerConfig()
        self._permissions = parse_permissions(self._config.permissions)
        self._stack: AsyncExitStack | None = None
        self._session: Any = None
        self._tools: list[MCPTool] = []

    async def connect(self) -> None:
        """Connect to the server and discover its tools. Raises MCPError."""
        if self._session is not None:
            return
        stack = AsyncExitStack()
        try:
            read, write = await self._open_transport(stack)
            session = await stack.enter_async_context(ClientSession(read, write))
            await session.initialize()
        except ConfigurationError:
            await stack.aclose()
            raise
        except Exception as exc:
            await stack.aclose()
            raise MCPError(f"Failed to connect MCP server '{self.name}': {exc}") from exc
        self._stack = stack
        try:
            await self.attach(session)
        except MCPError:
            await self.disconnect()
            raise

    async def _open_transport(self, stack: AsyncExitStack) -> tuple[Any, Any]:
        cfg = self._config
        match cfg.transport:
            case "stdio":
                if not cfg.command:
                    raise ConfigurationError(
                        f"MCP server '{self.name}' needs a command for stdio transport",
                    )
                params = StdioServerParameters(
                    command=cfg.command,
                    args=list(cfg.args),
                    env=dict(cfg.env) if cfg.env else None,
                )
                read, write = await stack.enter_async_context(stdio_client(params))
            case "http":
                if not cfg.url:
                    raise ConfigurationError(
                        f"MCP server '{self.name}' needs a url for http transport",
                    )
                read, write, _ = await stack.enter_async_context(streamablehttp_client(cfg.url))
            case other:
                raise ConfigurationError(f"Unknown MCP transport: {other!r}")
        return read, write

    async def attach(self, session: Any) -> None:
        """Use an already-initialized session and discover its tools."""
        self._session = session
        try:
            await self._discover_tools()
        except Exception as exc:
            self._session = None
            raise MCPError(f"Listing tools of MCP server '{self.name}' failed: {exc}") from exc
        logger.info("MCP server '%s' connected with %d tools", self.name, len(self._tools))

    async def _discover_tools(self) -> None:
        result = await self._session.list_tools()
        self._tools = [
            MCPTool(
                self,
                tool.name,
                tool.description or "",
                tool.inputSchema,
                self._permissions,
            )
            for tool in result.tools
        ]

    @property
    def tools(self) -> list[MCPTool]:
        return list(self._tools)

    @property
    def connected(self) -> bool:
        return self._session is not None

    async def call_tool(self, tool_name: str, args: dict[str, Any]) -> ToolResult:
        """Call a tool by its short name. Never raises for server-side failures."""
        if self._session is None:
            return ToolResult.error(f"MCP server '{self.name}' not connected")
        try:
            result = await self._session.call_tool(tool_name, args)
        except Exception as exc:
            logger.warning("MCP call %s on '%s' failed: %s", tool_name, self.name, exc)
            return ToolResult.error(f"MCP tool error: {type(exc).__name__}: {exc}")

        structured = getattr(result, "structuredContent", None)
        return ToolResult(
            content=result_text(result),
            is_error=bool(getattr(result, "isError", False)),
            structured=json.dumps(structured).encode() if structured is not None else None,
        )

    async def disconnect(self) -> None:
        """Close the session and its transport."""
        stack, self._stack = self._stack, None
        self._session = None
        self._tools = []
        if stack is not None:
            await stack.aclose()

    def __repr__(self) -> str:
        return f"MCPClient({self.name!r}, transport={self._config.transport}, tools={len(self._tools)})"
