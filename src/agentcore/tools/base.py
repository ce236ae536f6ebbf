"""Base tool class with shared logic."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from typing import Any

from agentcore.errors import ToolInputError
from agentcore.types.tools import ToolDef, ToolResult


def decode_input(input_data: bytes) -> dict[str, Any]:
    """Decode raw tool input into a JSON object. Empty input means ``{}``."""
    if not input_data:
        return {}
    try:
        value = json.loads(input_data)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ToolInputError(f"Invalid JSON input: {exc}") from exc
    if not isinstance(value, dict):
        raise ToolInputError(f"Tool input must be a JSON object, got {type(value).__name__}")
    return value


class BaseTool(ABC):
    """Base class for tools that take a decoded JSON object."""

    @property
    @abstractmethod
    def definition(self) -> ToolDef:
        ...

    @abstractmethod
    async def run(self, args: dict[str, Any]) -> ToolResult:
        ...

    async def execute(self, input_data: bytes) -> ToolResult:
        return await self.run(decode_input(input_data))

    def _error(self, msg: str) -> ToolResult:
        return ToolResult(content=msg, is_error=True)

    def _ok(self, content: str, structured: bytes | None = None) -> ToolResult:
        return ToolResult(content=content, structured=structured)
