"""Model backend protocol."""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from typing import Protocol, runtime_checkable

from agentcore.types.messages import Message
from agentcore.types.tools import ToolDef


@runtime_checkable
class ModelBackend(Protocol):
    """Protocol that model backends must implement.

    One call per agent loop iteration. The returned iterator is finite and
    not restartable; it ends normally or by raising.
    """

    def stream_complete(
        self,
        messages: Sequence[Message],
        *,
        model: str,
        system_prompt: str | None,
        max_tokens: int,
        temperature: float | None,
        tools: Sequence[ToolDef],
    ) -> AsyncIterator[Message]:
        """Stream response messages for the given history."""
        ...
