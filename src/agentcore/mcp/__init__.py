"""MCP (Model Context Protocol) client system."""

from agentcore.mcp.client import MCPClient, MCPTool
from agentcore.mcp.manager import MCPManager

__all__ = ["MCPClient", "MCPManager", "MCPTool"]
