"""agentcore: an engine for multi-turn, tool-using conversations with a model backend.

Usage:
    import agentcore

    async for msg in agentcore.run("Summarize the open issues", backend=backend):
        match msg:
            case agentcore.AssistantMessage() as m:
                print(m.text, end="")
            case agentcore.ResultMessage(is_error=True) as r:
                print(f"Tool failed: {r.text}")
"""

from agentcore.core.engine import create_agent, run
from agentcore.core.loop import AgentLoop
from agentcore.core.session import Session, SessionState
from agentcore.errors import (
    AgentError,
    BackendCommunicationError,
    ConfigurationError,
    QueryInProgressError,
    SessionCancelledError,
    TurnLimitExceeded,
)
from agentcore.tools.base import BaseTool
from agentcore.tools.function import FunctionTool, function_tool
from agentcore.tools.manager import ToolSet, build_tool_set
from agentcore.types.agents import SubAgentBatchResult, SubAgentResult, SubAgentTask
from agentcore.types.config import (
    CompactionConfig,
    EngineOptions,
    MCPServerConfig,
    PermissionMode,
)
from agentcore.types.hooks import HookEvent
from agentcore.types.messages import (
    AssistantMessage,
    Message,
    ResultMessage,
    SystemMessage,
    TextBlock,
    ThinkingBlock,
    ToolResultBlock,
    ToolUseBlock,
    UserMessage,
)
from agentcore.types.providers import ModelBackend
from agentcore.types.tools import Tool, ToolDef, ToolParam, ToolPermission, ToolResult

__version__ = "0.1.0"

__all__ = [
    # Core API
    "AgentLoop",
    "create_agent",
    "run",
    "Session",
    "SessionState",
    # Message types
    "AssistantMessage",
    "Message",
    "ResultMessage",
    "SystemMessage",
    "TextBlock",
    "ThinkingBlock",
    "ToolResultBlock",
    "ToolUseBlock",
    "UserMessage",
    # Configuration
    "CompactionConfig",
    "EngineOptions",
    "HookEvent",
    "MCPServerConfig",
    "ModelBackend",
    "PermissionMode",
    # Tools
    "BaseTool",
    "FunctionTool",
    "Tool",
    "ToolDef",
    "ToolParam",
    "ToolPermission",
    "ToolResult",
    "ToolSet",
    "build_tool_set",
    "function_tool",
    # Sub-agents
    "SubAgentBatchResult",
    "SubAgentResult",
    "SubAgentTask",
    # Errors
    "AgentError",
    "BackendCommunicationError",
    "ConfigurationError",
    "QueryInProgressError",
    "SessionCancelledError",
    "TurnLimitExceeded",
]
