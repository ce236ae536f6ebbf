"""Tool execution gate: lookup, permission check, dispatch."""

from __future__ import annotations

import logging

from agentcore.errors import (
    PermissionDeniedError,
    ToolError,
    ToolExecutionError,
    ToolInputError,
    ToolNotFoundError,
)
from agentcore.hooks.events import build_hook_context
from agentcore.hooks.manager import HookManager
from agentcore.observability.tracing import mark_error, span
from agentcore.permissions.manager import PermissionManager
from agentcore.permissions.rules import PermissionDecision
from agentcore.tools.manager import ToolSet
from agentcore.types.hooks import HookEvent
from agentcore.types.tools import Tool, ToolResult

logger = logging.getLogger(__name__)


class ToolExecutor:
    """Runs tool calls on behalf of an agent loop.

    ``execute`` never raises for tool problems: unknown tools, denied
    permissions, malformed input and provider exceptions all come back as
    error ToolResults the model can react to.
    """

    def __init__(
        self,
        tools: ToolSet,
        permissions: PermissionManager,
        hooks: HookManager | None = None,
    ) -> None:
        self._tools = tools
        self._permissions = permissions
        self._hooks = hooks or HookManager()

    @property
    def tools(self) -> ToolSet:
        return self._tools

    async def execute(self, name: str, tool_use_id: str, input_data: bytes) -> ToolResult:
        """Execute one tool call and return its result."""
        await self._hooks.fire(
            HookEvent.BEFORE_TOOL_EXECUTION,
            build_hook_context(
                HookEvent.BEFORE_TOOL_EXECUTION,
                tool_name=name, tool_use_id=tool_use_id, input=input_data,
            ),
        )

        with span("agentcore.tool", {"tool.name": name, "tool.use_id": tool_use_id}) as s:
            try:
                result = await self._dispatch(name, input_data)
            except ToolError as exc:
                logger.info("Tool %s (%s) failed: %s", name, tool_use_id, exc)
                await self._hooks.fire(
                    HookEvent.ON_ERROR,
                    build_hook_context(HookEvent.ON_ERROR, error=exc, phase="tool_execution"),
                )
                result = ToolResult.error(str(exc))
            if result.is_error:
                mark_error(s, result.content[:200])

        await self._hooks.fire(
            HookEvent.AFTER_TOOL_EXECUTION,
            build_hook_context(
                HookEvent.AFTER_TOOL_EXECUTION,
                tool_name=name, tool_use_id=tool_use_id, result=result,
            ),
        )
        return result

    async def _dispatch(self, name: str, input_data: bytes) -> ToolResult:
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFoundError(f"Tool '{name}' not found")

        try:
            decision = self._permissions.check(tool.definition)
        except Exception as exc:
            raise PermissionDeniedError(
                f"Permission check for tool '{name}' failed: {exc}",
            ) from exc
        if decision is PermissionDecision.DENY:
            raise PermissionDeniedError(
                f"Permission denied: tool '{name}' is not allowed in "
                f"{self._permissions.mode.value} mode",
            )

        return await self._invoke(tool, name, input_data)

    async def _invoke(self, tool: Tool, name: str, input_data: bytes) -> ToolResult:
        try:
            result = await tool.execute(input_data)
        except ToolInputError as exc:
            raise ToolInputError(f"Invalid input for tool '{name}': {exc}") from exc
        except ToolError:
            raise
        except Exception as exc:
            raise ToolExecutionError(
                f"Tool execution failed: {type(exc).__name__}: {exc}",
            ) from exc
        if not isinstance(result, ToolResult):
            raise ToolExecutionError(
                f"Tool '{name}' returned {type(result).__name__}, expected ToolResult",
            )
        return result
