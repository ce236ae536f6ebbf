"""Tool catalog, adapters and the execution gate."""

from agentcore.tools.base import BaseTool
from agentcore.tools.executor import ToolExecutor
from agentcore.tools.function import FunctionTool, function_tool
from agentcore.tools.manager import ToolSet, build_tool_set

__all__ = [
    "BaseTool",
    "FunctionTool",
    "ToolExecutor",
    "ToolSet",
    "build_tool_set",
    "function_tool",
]
