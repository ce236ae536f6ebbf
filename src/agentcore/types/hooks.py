"""Hook event names and the context snapshots passed to handlers."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from agentcore.types.messages import Message
from agentcore.types.tools import ToolDef, ToolResult


class HookEvent(Enum):
    """Lifecycle points handlers can observe."""

    BEFORE_REQUEST = "beforeRequest"
    AFTER_RESPONSE = "afterResponse"
    ON_ERROR = "onError"
    BEFORE_TOOL_EXECUTION = "beforeToolExecution"
    AFTER_TOOL_EXECUTION = "afterToolExecution"
    ON_MESSAGE = "onMessage"
    ON_COMPACTION = "onCompaction"
    BEFORE_FILE_UPLOAD = "beforeFileUpload"
    AFTER_FILE_UPLOAD = "afterFileUpload"


HookHandler = Callable[[Any], Awaitable[None] | None]


@dataclass(frozen=True, slots=True)
class BeforeRequestContext:
    messages: tuple[Message, ...]
    model: str
    system_prompt: str | None
    tools: tuple[ToolDef, ...]


@dataclass(frozen=True, slots=True)
class AfterResponseContext:
    messages: tuple[Message, ...]
    success: bool
    error: BaseException | None = None


@dataclass(frozen=True, slots=True)
class ErrorContext:
    error: BaseException
    phase: str  # "request", "compaction", "tool_execution", "turn_limit"


@dataclass(frozen=True, slots=True)
class BeforeToolExecutionContext:
    tool_name: str
    tool_use_id: str
    input: bytes


@dataclass(frozen=True, slots=True)
class AfterToolExecutionContext:
    tool_name: str
    tool_use_id: str
    result: ToolResult


@dataclass(frozen=True, slots=True)
class MessageContext:
    message: Message


@dataclass(frozen=True, slots=True)
class CompactionContext:
    tokens_before: int
    tokens_after: int
    messages_before: int
    messages_after: int
    summary: str
