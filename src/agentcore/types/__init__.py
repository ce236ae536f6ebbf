"""Type definitions for agentcore."""

from agentcore.types.agents import (
    SubAgentBatchResult,
    SubAgentProgress,
    SubAgentResult,
    SubAgentTask,
    SubAgentToolCall,
)
from agentcore.types.config import (
    CompactionConfig,
    EngineOptions,
    MCPServerConfig,
    PermissionMode,
)
from agentcore.types.hooks import (
    AfterResponseContext,
    AfterToolExecutionContext,
    BeforeRequestContext,
    BeforeToolExecutionContext,
    CompactionContext,
    ErrorContext,
    HookEvent,
    HookHandler,
    MessageContext,
)
from agentcore.types.messages import (
    AssistantMessage,
    ContentBlock,
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

__all__ = [
    "AfterResponseContext",
    "AfterToolExecutionContext",
    "AssistantMessage",
    "BeforeRequestContext",
    "BeforeToolExecutionContext",
    "CompactionConfig",
    "CompactionContext",
    "ContentBlock",
    "EngineOptions",
    "ErrorContext",
    "HookEvent",
    "HookHandler",
    "MCPServerConfig",
    "Message",
    "MessageContext",
    "ModelBackend",
    "PermissionMode",
    "ResultMessage",
    "SubAgentBatchResult",
    "SubAgentProgress",
    "SubAgentResult",
    "SubAgentTask",
    "SubAgentToolCall",
    "SystemMessage",
    "TextBlock",
    "ThinkingBlock",
    "Tool",
    "ToolDef",
    "ToolParam",
    "ToolPermission",
    "ToolResult",
    "ToolResultBlock",
    "ToolUseBlock",
    "UserMessage",
]
