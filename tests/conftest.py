"""Test fixtures including MockBackend for deterministic testing."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from typing import Any

import pytest

from agentcore.tools.base import BaseTool
from agentcore.types.messages import AssistantMessage, Message, TextBlock, ToolUseBlock, UserMessage
from agentcore.types.tools import ToolDef, ToolParam, ToolPermission, ToolResult


@dataclass
class MockTurn:
    """A scripted turn for MockBackend.

    Specify either text or tool_uses (or both) for what the model should "respond" with.
    """

    text: str = ""
    tool_uses: list[dict[str, Any]] = field(default_factory=list)
    # Each tool_use: {"id": "tu1", "name": "Echo", "args": {"text": "hi"}}

    def to_message(self, model: str) -> AssistantMessage:
        blocks: list[Any] = []
        if self.text:
            blocks.append(TextBlock(text=self.text))
        for tu in self.tool_uses:
            blocks.append(ToolUseBlock(
                id=tu["id"], name=tu["name"], input=json.dumps(tu.get("args", {})).encode(),
            ))
        return AssistantMessage(content=tuple(blocks), model=model)


# A turn is a MockTurn, a list of messages streamed one by one, or an
# exception raised when the turn is reached.
Turn = MockTurn | list[Message] | BaseException


class MockBackend:
    """A deterministic mock backend for testing.

    Usage:
        backend = MockBackend(turns=[
            MockTurn(tool_uses=[{"id": "tu1", "name": "Echo", "args": {"text": "x"}}]),
            MockTurn(text="Done."),
        ])

    With ``respond`` the turn is computed from the request messages instead,
    which keeps concurrent callers (sub-agents) deterministic.
    """

    def __init__(
        self,
        turns: list[Turn] | None = None,
        *,
        respond: Callable[[list[Message]], Turn] | None = None,
        model: str = "mock-model",
        delay: float = 0.0,
    ):
        self._turns = list(turns or [])
        self._turn_index = 0
        self._respond = respond
        self._model = model
        self._delay = delay
        self.calls: list[dict[str, Any]] = []
        self.active = 0
        self.max_active = 0

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def _next_turn(self, messages: list[Message]) -> Turn | None:
        if self._respond is not None:
            return self._respond(messages)
        if self._turn_index >= len(self._turns):
            return None
        turn = self._turns[self._turn_index]
        self._turn_index += 1
        return turn

    async def stream_complete(
        self,
        messages: list[Message],
        *,
        model: str,
        system_prompt: str | None,
        max_tokens: int,
        temperature: float | None,
        tools: Any,
    ) -> AsyncIterator[Message]:
        self.calls.append({
            "messages": list(messages),
            "model": model,
            "system_prompt": system_prompt,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "tools": [t.name for t in tools],
        })
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            turn = self._next_turn(list(messages))
            if self._delay:
                await asyncio.sleep(self._delay)
            if turn is None:
                # No more turns: answer with an empty assistant message
                yield AssistantMessage(content=(), model=self._model)
                return
            if isinstance(turn, BaseException):
                raise turn
            if isinstance(turn, MockTurn):
                yield turn.to_message(self._model)
                return
            for msg in turn:
                yield msg
                if self._delay:
                    await asyncio.sleep(self._delay)
        finally:
            self.active -= 1


class FailingMockBackend(MockBackend):
    """A mock backend that raises ConnectionError on the first N calls."""

    def __init__(self, turns: list[Turn] | None = None, fail_count: int = 1, **kwargs: Any):
        super().__init__(turns, **kwargs)
        self._fail_count = fail_count
        self._failures = 0

    async def stream_complete(self, messages: list[Message], **kwargs: Any) -> AsyncIterator[Message]:
        if self._failures < self._fail_count:
            self._failures += 1
            raise ConnectionError(f"Simulated failure #{self._failures}")
        async for msg in super().stream_complete(messages, **kwargs):
            yield msg


def last_user_text(messages: list[Message]) -> str:
    for msg in reversed(messages):
        if isinstance(msg, UserMessage):
            return msg.content
    return ""


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


class EchoTool(BaseTool):
    """Returns its ``text`` argument. Tagged READ."""

    def __init__(self, name: str = "Echo", permissions: ToolPermission = ToolPermission.READ):
        self._name = name
        self._permissions = permissions
        self.calls: list[dict[str, Any]] = []

    @property
    def definition(self) -> ToolDef:
        return ToolDef(
            name=self._name,
            description="Echo the text back.",
            parameters=(ToolParam(name="text", type="string", description="Text to echo"),),
            permissions=self._permissions,
        )

    async def run(self, args: dict[str, Any]) -> ToolResult:
        self.calls.append(args)
        return self._ok(f"echo: {args.get('text', '')}")


class WriteTool(EchoTool):
    """Like EchoTool but tagged READ | WRITE."""

    def __init__(self, name: str = "Write"):
        super().__init__(name, ToolPermission.READ | ToolPermission.WRITE)


class RaisingTool(BaseTool):
    """Always raises RuntimeError."""

    @property
    def definition(self) -> ToolDef:
        return ToolDef(name="Boom", description="Always fails.", permissions=ToolPermission.READ)

    async def run(self, args: dict[str, Any]) -> ToolResult:
        raise RuntimeError("kaboom")


class SlowTool(BaseTool):
    """Sleeps for ``seconds`` before returning; records start order."""

    def __init__(self, seconds: float = 0.05):
        self._seconds = seconds
        self.started: list[str] = []

    @property
    def definition(self) -> ToolDef:
        return ToolDef(name="Slow", description="Sleeps.", permissions=ToolPermission.READ)

    async def run(self, args: dict[str, Any]) -> ToolResult:
        self.started.append(args.get("label", ""))
        await asyncio.sleep(self._seconds)
        return self._ok(f"slept {args.get('label', '')}")


@pytest.fixture
def mock_backend() -> MockBackend:
    """A simple mock backend that responds with text."""
    return MockBackend(turns=[
        MockTurn(text="I can help with that."),
    ])


@pytest.fixture
def echo_tool() -> EchoTool:
    return EchoTool()
