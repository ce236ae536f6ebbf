"""Message types exchanged with the model backend and stored in history."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any


# ---------------------------------------------------------------------------
# Content blocks
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class TextBlock:
    text: str


@dataclass(frozen=True, slots=True)
class ThinkingBlock:
    thinking: str


@dataclass(frozen=True, slots=True)
class ToolUseBlock:
    """Model requests a tool call.

    ``input`` holds the raw JSON bytes sent by the model; use :attr:`args`
    for the decoded object.
    """

    id: str
    name: str
    input: bytes = b"{}"

    @classmethod
    def from_args(cls, id: str, name: str, args: dict[str, Any] | None = None) -> ToolUseBlock:
        return cls(id=id, name=name, input=json.dumps(args or {}).encode())

    @property
    def args(self) -> dict[str, Any]:
        try:
            value = json.loads(self.input) if self.input else {}
        except (json.JSONDecodeError, UnicodeDecodeError):
            return {}
        return value if isinstance(value, dict) else {}


@dataclass(frozen=True, slots=True)
class ToolResultBlock:
    tool_use_id: str
    content: tuple[ContentBlock, ...] = ()
    is_error: bool = False


ContentBlock = TextBlock | ThinkingBlock | ToolUseBlock | ToolResultBlock


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class UserMessage:
    content: str


@dataclass(frozen=True, slots=True)
class SystemMessage:
    content: str


@dataclass(frozen=True, slots=True)
class AssistantMessage:
    """A complete assistant turn as received from the backend."""

    content: tuple[ContentBlock, ...] = ()
    model: str = ""

    @property
    def tool_uses(self) -> list[ToolUseBlock]:
        return [b for b in self.content if isinstance(b, ToolUseBlock)]

    @property
    def text(self) -> str:
        return "".join(b.text for b in self.content if isinstance(b, TextBlock))


@dataclass(frozen=True, slots=True)
class ResultMessage:
    """Outcome of one tool call, keyed by the id of its tool-use block."""

    tool_use_id: str
    content: tuple[ContentBlock, ...] = ()
    is_error: bool = False

    @property
    def text(self) -> str:
        return "".join(b.text for b in self.content if isinstance(b, TextBlock))


Message = UserMessage | AssistantMessage | SystemMessage | ResultMessage
