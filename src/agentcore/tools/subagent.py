"""SubAgent tool: delegates one or more tasks to isolated sub-agents."""

from __future__ import annotations

from typing import Any

from agentcore.agents.coordinator import (
    SUBAGENT_TOOL_NAME,
    ProgressObserver,
    SubAgentCoordinator,
)
from agentcore.errors import ConfigurationError
from agentcore.permissions.manager import PermissionManager
from agentcore.tools.base import BaseTool
from agentcore.tools.manager import ToolSet
from agentcore.types.agents import (
    DEFAULT_SUBAGENT_MAX_TURNS,
    MAX_TASK_TIMEOUT,
    MAX_TASKS_PER_BATCH,
    SubAgentBatchResult,
    SubAgentResult,
    SubAgentTask,
)
from agentcore.types.config import EngineOptions
from agentcore.types.providers import ModelBackend
from agentcore.types.tools import ToolDef, ToolPermission, ToolResult

DESCRIPTION = (
    "Spawn sub-agent(s) to handle complex tasks independently. Each sub-agent runs "
    "with its own context and tools, executes the task, and returns a summarized "
    "result.\n\n"
    "When to use:\n"
    "- Long-running research or analysis that needs focused context\n"
    "- Parallel independent tasks (e.g., search multiple topics, analyze multiple files)\n"
    "- Tasks requiring many tool calls that would clutter the main conversation\n\n"
    f"Provide 1 task for focused work, or 2-{MAX_TASKS_PER_BATCH} tasks for parallel execution."
)

INPUT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "tasks": {
            "type": "array",
            "description": (
                "Array of tasks. Use 1 task for focused work, "
                f"2-{MAX_TASKS_PER_BATCH} tasks for parallel execution."
            ),
            "items": {
                "type": "object",
                "description": "A sub-agent task definition",
                "properties": {
                    "description": {
                        "type": "string",
                        "description": "Short description of the task (3-5 words)",
                    },
                    "prompt": {
                        "type": "string",
                        "description": "The prompt/task for the sub-agent",
                    },
                    "system_prompt": {
                        "type": "string",
                        "description": "Optional system prompt to specialize behavior",
                    },
                    "timeout": {
                        "type": "integer",
                        "description": f"Timeout in seconds (max: {MAX_TASK_TIMEOUT:g})",
                    },
                    "max_turns": {
                        "type": "integer",
                        "description": f"Maximum API turns (default: {DEFAULT_SUBAGENT_MAX_TURNS})",
                    },
                },
                "required": ["description", "prompt"],
            },
        },
        "max_concurrency": {
            "type": "integer",
            "description": "Max parallel sub-agents (default: all tasks run in parallel)",
        },
    },
    "required": ["tasks"],
}


def format_duration(seconds: float) -> str:
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    if seconds < 60:
        return f"{seconds:.1f}s"
    return f"{int(seconds // 60)}m {int(seconds) % 60}s"


def format_single_result(result: SubAgentResult) -> str:
    out = f"## Sub-Agent: {result.description}\n\n"
    if result.success:
        out += (
            f"**Completed** in {format_duration(result.duration)}"
            f" ({result.turn_count} turns, {result.tool_call_count} tool calls)\n\n"
        )
        out += result.summary
    else:
        out += f"**Failed**: {result.error or 'Unknown error'}\n"
    return out


def format_batch_results(batch: SubAgentBatchResult) -> str:
    parts = [
        "## Sub-Agent Results\n\n",
        f"**Total:** {format_duration(batch.total_duration)} | ",
        f"**Success:** {batch.success_count}/{len(batch.results)}\n\n",
    ]
    for result in batch.results:
        parts.append("---\n\n")
        parts.append(f"### {result.description}\n\n")
        if result.success:
            parts.append(
                f"✓ {format_duration(result.duration)} "
                f"({result.turn_count} turns, {result.tool_call_count} tools)\n\n"
            )
            parts.append(result.summary + "\n")
        else:
            parts.append(f"✗ Failed: {result.error or 'Unknown error'}\n")
        parts.append("\n")
    return "".join(parts)


def format_report(batch: SubAgentBatchResult) -> str:
    """Markdown report returned to the parent model."""
    if len(batch.results) == 1:
        return format_single_result(batch.results[0])
    return format_batch_results(batch)


def _optional_number(entry: dict[str, Any], key: str) -> Any:
    value = entry.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(f"'{key}' must be a number")
    return value


def parse_tasks(args: dict[str, Any]) -> tuple[list[SubAgentTask], int | None]:
    """Turn the tool's JSON input into tasks. Raises ConfigurationError."""
    raw_tasks = args.get("tasks")
    if not isinstance(raw_tasks, list) or not raw_tasks:
        raise ConfigurationError("'tasks' must be a non-empty array")

    tasks: list[SubAgentTask] = []
    for index, entry in enumerate(raw_tasks):
        if not isinstance(entry, dict):
            raise ConfigurationError(f"Task {index} must be an object")
        description = entry.get("description")
        prompt = entry.get("prompt")
        if not isinstance(description, str) or not description:
            raise ConfigurationError(f"Task {index}: 'description' is required")
        if not isinstance(prompt, str) or not prompt:
            raise ConfigurationError(f"Task {index}: 'prompt' is required")
        system_prompt = entry.get("system_prompt")
        if system_prompt is not None and not isinstance(system_prompt, str):
            raise ConfigurationError(f"Task {index}: 'system_prompt' must be a string")
        timeout = _optional_number(entry, "timeout")
        max_turns = _optional_number(entry, "max_turns")
        tasks.append(SubAgentTask(
            id=f"task-{index}",
            description=description,
            prompt=prompt,
            system_prompt=system_prompt,
            timeout=float(timeout) if timeout is not None else None,
            max_turns=int(max_turns) if max_turns is not None else DEFAULT_SUBAGENT_MAX_TURNS,
            summarize_result=True,
        ))

    max_concurrency = _optional_number(args, "max_concurrency")
    return tasks, int(max_concurrency) if max_concurrency is not None else None


class SubAgentTool(BaseTool):
    """Spawn sub-agents to handle tasks autonomously.

    Each sub-agent gets its own context and the parent's tools minus this one.
    """

    def __init__(
        self,
        backend: ModelBackend,
        tools: ToolSet,
        options: EngineOptions | None = None,
        *,
        permissions: PermissionManager | None = None,
        observer: ProgressObserver | None = None,
    ) -> None:
        self._coordinator = SubAgentCoordinator(
            backend, tools, options, permissions=permissions,
        )
        self._observer = observer

    @property
    def coordinator(self) -> SubAgentCoordinator:
        return self._coordinator

    @property
    def definition(self) -> ToolDef:
        return ToolDef(
            name=SUBAGENT_TOOL_NAME,
            description=DESCRIPTION,
            permissions=ToolPermission.EXECUTE,
            schema=INPUT_SCHEMA,
        )

    async def run(self, args: dict[str, Any]) -> ToolResult:
        try:
            tasks, max_concurrency = parse_tasks(args)
            batch = await self._coordinator.run(
                tasks, max_concurrency=max_concurrency, observer=self._observer,
            )
        except ConfigurationError as e:
            return self._error(str(e))
        return ToolResult(content=format_report(batch), is_error=not batch.all_succeeded)


def with_subagents(
    tools: ToolSet,
    backend: ModelBackend,
    options: EngineOptions | None = None,
    *,
    permissions: PermissionManager | None = None,
    observer: ProgressObserver | None = None,
) -> ToolSet:
    """Return *tools* plus a SubAgent tool whose children get *tools* without it."""
    base = tools.without(SUBAGENT_TOOL_NAME)
    return base.with_tool(
        SubAgentTool(backend, base, options, permissions=permissions, observer=observer),
    )
