"""JSON serialization contract for conversation history.

Every message and content block is encoded as ``{"type": <tag>, "data": {...}}``.
Tool-use input is stored as the raw JSON text the model produced, so that
``import_history(export_history(h)) == h`` holds byte for byte.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from typing import Any

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


def block_to_dict(block: ContentBlock) -> dict[str, Any]:
    match block:
        case TextBlock(text=text):
            return {"type": "text", "data": {"text": text}}
        case ThinkingBlock(thinking=thinking):
            return {"type": "thinking", "data": {"thinking": thinking}}
        case ToolUseBlock(id=id_, name=name, input=raw):
            return {
                "type": "tool_use",
                "data": {"id": id_, "name": name, "input": raw.decode("utf-8")},
            }
        case ToolResultBlock(tool_use_id=tid, content=content, is_error=is_error):
            return {
                "type": "tool_result",
                "data": {
                    "tool_use_id": tid,
                    "content": [block_to_dict(b) for b in content],
                    "is_error": is_error,
                },
            }
    raise TypeError(f"Unsupported content block: {type(block).__name__}")


def block_from_dict(entry: dict[str, Any]) -> ContentBlock:
    kind = entry.get("type")
    data = entry.get("data", {})
    match kind:
        case "text":
            return TextBlock(text=data["text"])
        case "thinking":
            return ThinkingBlock(thinking=data["thinking"])
        case "tool_use":
            return ToolUseBlock(
                id=data["id"], name=data["name"], input=data.get("input", "{}").encode("utf-8"),
            )
        case "tool_result":
            return ToolResultBlock(
                tool_use_id=data["tool_use_id"],
                content=tuple(block_from_dict(b) for b in data.get("content", [])),
                is_error=bool(data.get("is_error", False)),
            )
    raise ValueError(f"Unknown content block type: {kind!r}")


def message_to_dict(msg: Message) -> dict[str, Any]:
    match msg:
        case UserMessage(content=content):
            return {"type": "user", "data": {"content": content}}
        case SystemMessage(content=content):
            return {"type": "system", "data": {"content": content}}
        case AssistantMessage(content=content, model=model):
            return {
                "type": "assistant",
                "data": {"content": [block_to_dict(b) for b in content], "model": model},
            }
        case ResultMessage(tool_use_id=tid, content=content, is_error=is_error):
            return {
                "type": "result",
                "data": {
                    "tool_use_id": tid,
                    "content": [block_to_dict(b) for b in content],
                    "is_error": is_error,
                },
            }
    raise TypeError(f"Unsupported message: {type(msg).__name__}")


def message_from_dict(entry: dict[str, Any]) -> Message:
    kind = entry.get("type")
    data = entry.get("data", {})
    match kind:
        case "user":
            return UserMessage(content=data["content"])
        case "system":
            return SystemMessage(content=data["content"])
        case "assistant":
            return AssistantMessage(
                content=tuple(block_from_dict(b) for b in data.get("content", [])),
                model=data.get("model", ""),
            )
        case "result":
            return ResultMessage(
                tool_use_id=data["tool_use_id"],
                content=tuple(block_from_dict(b) for b in data.get("content", [])),
                is_error=bool(data.get("is_error", False)),
            )
    raise ValueError(f"Unknown message type: {kind!r}")


def export_history(messages: Iterable[Message]) -> str:
    """Encode a history as a JSON array."""
    return json.dumps(
        [message_to_dict(m) for m in messages], indent=2, sort_keys=True, ensure_ascii=False,
    )


def import_history(data: str | bytes) -> list[Message]:
    """Decode a history produced by :func:`export_history`.

    Raises ValueError for malformed input.
    """
    try:
        entries = json.loads(data)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid session data: {exc}") from exc
    if not isinstance(entries, list):
        raise ValueError("Session data must be a JSON array of messages")
    try:
        return [message_from_dict(e) for e in entries]
    except (KeyError, TypeError, AttributeError) as exc:
        raise ValueError(f"Malformed message entry: {exc}") from exc
