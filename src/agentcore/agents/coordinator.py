"""Sub-agent coordinator: runs delegated tasks in isolated agent loops."""

from __future__ import annotations

import asyncio
import dataclasses
import inspect
import logging
import time
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from agentcore.core.completion import complete_text
from agentcore.core.loop import AgentLoop
from agentcore.errors import (
    ConfigurationError,
    SubAgentCancelledError,
    SubAgentError,
    SubAgentTimeoutError,
)
from agentcore.observability.tracing import span
from agentcore.permissions.manager import PermissionManager
from agentcore.tools.manager import ToolSet
from agentcore.types.agents import (
    MAX_TASK_TIMEOUT,
    MAX_TASKS_PER_BATCH,
    SubAgentBatchResult,
    SubAgentProgress,
    SubAgentResult,
    SubAgentTask,
    SubAgentToolCall,
)
from agentcore.types.config import EngineOptions
from agentcore.types.messages import AssistantMessage
from agentcore.types.providers import ModelBackend

logger = logging.getLogger(__name__)

SUBAGENT_TOOL_NAME = "SubAgent"

# Outputs longer than this are summarized when the task asks for it
SUMMARIZE_THRESHOLD = 500
SUMMARY_INPUT_LIMIT = 10_000
SUMMARY_MAX_TOKENS = 1024

SUMMARY_SYSTEM_PROMPT = "You are a concise summarizer. Provide brief, actionable summaries."

SUMMARY_PROMPT = """\
Summarize the following output from a sub-agent task concisely.
Task: {description}

Focus on:
- Key findings or results
- Important decisions made
- Any errors or issues encountered
- Actionable conclusions

Keep the summary to 2-4 sentences.

Output to summarize:
{output}
"""

CANCELLED = "cancelled"

# Large payload fields are left out of progress events
_HIDDEN_PARAMS = frozenset({"content", "new_content", "replacements"})

ProgressObserver = Callable[[SubAgentProgress], Awaitable[None] | None]


def tool_call_parameters(args: dict[str, Any]) -> dict[str, str]:
    """Scalar tool arguments rendered as strings, for display."""
    params: dict[str, str] = {}
    for key, value in args.items():
        if key in _HIDDEN_PARAMS:
            continue
        if isinstance(value, bool):
            params[key] = "true" if value else "false"
        elif isinstance(value, (str, int, float)):
            params[key] = str(value)
    return params


def validate_tasks(tasks: list[SubAgentTask], max_concurrency: int | None = None) -> None:
    """Raise ConfigurationError unless the batch can be started as a whole."""
    if not tasks:
        raise ConfigurationError("At least one task is required")
    if len(tasks) > MAX_TASKS_PER_BATCH:
        raise ConfigurationError(
            f"Maximum {MAX_TASKS_PER_BATCH} tasks allowed (got {len(tasks)})",
        )
    seen: set[str] = set()
    for task in tasks:
        if task.id in seen:
            raise ConfigurationError(f"Duplicate task id: {task.id!r}")
        seen.add(task.id)
        if task.timeout is not None and not 0 < task.timeout <= MAX_TASK_TIMEOUT:
            raise ConfigurationError(
                f"Task '{task.description}': timeout must be within "
                f"(0, {MAX_TASK_TIMEOUT:g}] seconds, got {task.timeout:g}",
            )
        if task.max_turns < 1:
            raise ConfigurationError(
                f"Task '{task.description}': max_turns must be >= 1, got {task.max_turns}",
            )
    if max_concurrency is not None and max_concurrency < 1:
        raise ConfigurationError(f"max_concurrency must be >= 1, got {max_concurrency}")


@dataclasses.dataclass(slots=True)
class _Progress:
    """Mutable counters for one running task."""

    output: list[str] = dataclasses.field(default_factory=list)
    turn_count: int = 0
    tool_calls: list[SubAgentToolCall] = dataclasses.field(default_factory=list)


@dataclasses.dataclass(slots=True, eq=False)
class _Batch:
    """Cancellation state of one ``run`` call."""

    inflight: dict[str, asyncio.Task] = dataclasses.field(default_factory=dict)
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True
        for child in list(self.inflight.values()):
            child.cancel()


class SubAgentCoordinator:
    """Runs a batch of sub-agent tasks with bounded concurrency.

    Every task gets a fresh AgentLoop (and so a fresh Session) sharing the
    parent's backend, model, permissions and compaction settings. The
    ``SubAgent`` tool itself is never handed to a child.

    A task that fails, times out or is cancelled only affects its own entry
    in the batch result; siblings keep running.
    """

    def __init__(
        self,
        backend: ModelBackend,
        tools: ToolSet | None = None,
        options: EngineOptions | None = None,
        *,
        permissions: PermissionManager | None = None,
        summary_model: str | None = None,
    ) -> None:
        self._backend = backend
        self._tools = (tools if tools is not None else ToolSet()).without(SUBAGENT_TOOL_NAME)
        self._options = options or EngineOptions()
        self._options.validate()
        self._permissions = permissions
        self._summary_model = summary_model or self._options.model

        self._batches: list[_Batch] = []

    @property
    def tools(self) -> ToolSet:
        """Tools handed to every child loop."""
        return self._tools

    @property
    def active_count(self) -> int:
        return sum(len(b.inflight) for b in self._batches)

    def cancel(self) -> None:
        """Cancel the in-flight children of every running batch.

        Queued tasks are not started. Both end up in the batch result as
        failed with ``"cancelled"``.
        """
        for batch in list(self._batches):
            batch.cancel()

    async def run(
        self,
        tasks: Iterable[SubAgentTask],
        max_concurrency: int | None = None,
        observer: ProgressObserver | None = None,
    ) -> SubAgentBatchResult:
        """Run *tasks* and return their results in input order.

        Args:
            tasks: One to five tasks with unique ids.
            max_concurrency: Worker pool size. Defaults to the number of tasks,
                capped by ``options.max_subagent_concurrency`` when set.
            observer: Optional sync or async callable receiving progress
                events. Its failures are logged and ignored.
        """
        batch = list(tasks)
        validate_tasks(batch, max_concurrency)

        limit = max_concurrency or len(batch)
        ceiling = self._options.max_subagent_concurrency
        if ceiling is not None:
            limit = min(limit, ceiling)
        limit = min(limit, len(batch))

        state = _Batch()
        queue: asyncio.Queue[SubAgentTask] = asyncio.Queue()
        for task in batch:
            queue.put_nowait(task)
        results: dict[str, SubAgentResult] = {}

        logger.info("Running %d sub-agent task(s), concurrency %d", len(batch), limit)
        started = time.monotonic()
        self._batches.append(state)
        try:
            with span("agentcore.subagent", {"tasks": len(batch), "max_concurrency": limit}):
                async with asyncio.TaskGroup() as group:
                    for n in range(limit):
                        group.create_task(
                            self._worker(state, queue, results, observer),
                            name=f"subagent-worker-{n}",
                        )
        finally:
            self._batches.remove(state)

        # Tasks never picked up because the batch was cancelled
        while not queue.empty():
            task = queue.get_nowait()
            result = SubAgentResult.failure(task.id, task.description, CANCELLED, 0.0)
            results[task.id] = result
            await self._notify(observer, SubAgentProgress(
                kind="failed", task_id=task.id, description=task.description,
                result=result, error=CANCELLED,
            ))

        batch_result = SubAgentBatchResult(
            results=tuple(results[t.id] for t in batch),
            total_duration=time.monotonic() - started,
        )
        logger.info(
            "Sub-agent batch finished: %d/%d succeeded in %.2fs",
            batch_result.success_count, len(batch), batch_result.total_duration,
        )
        return batch_result

    # ------------------------------------------------------------------
    # Workers
    # ------------------------------------------------------------------

    async def _worker(
        self,
        state: _Batch,
        queue: asyncio.Queue[SubAgentTask],
        results: dict[str, SubAgentResult],
        observer: ProgressObserver | None,
    ) -> None:
        while not state.cancelled:
            try:
                task = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            results[task.id] = await self._run_task(state, task, observer)

    async def _run_task(
        self, state: _Batch, task: SubAgentTask, observer: ProgressObserver | None,
    ) -> SubAgentResult:
        started = time.monotonic()
        progress = _Progress()
        await self._notify(observer, SubAgentProgress(
            kind="started", task_id=task.id, description=task.description,
        ))

        error: str | None = None
        if state.cancelled:
            # Cancelled while the observer handled "started"
            error = CANCELLED
        else:
            child = asyncio.create_task(
                self._execute(task, progress, observer), name=f"subagent-{task.id}",
            )
            state.inflight[task.id] = child
            try:
                summary, output = await child
            except asyncio.CancelledError:
                current = asyncio.current_task()
                if current is not None and current.cancelling():
                    # The whole batch is being torn down from outside
                    raise
                error = CANCELLED
            except SubAgentCancelledError:
                error = CANCELLED
            except Exception as exc:
                error = str(exc) or type(exc).__name__
            finally:
                state.inflight.pop(task.id, None)

        duration = time.monotonic() - started
        if error is not None:
            logger.info("Sub-agent task %s failed: %s", task.id, error)
            result = SubAgentResult.failure(
                task.id, task.description, error, duration,
                turn_count=progress.turn_count,
                tool_call_count=len(progress.tool_calls),
            )
            await self._notify(observer, SubAgentProgress(
                kind="failed", task_id=task.id, description=task.description,
                turn_count=progress.turn_count,
                tool_call_count=len(progress.tool_calls),
                result=result, error=error,
            ))
            return result

        result = SubAgentResult(
            id=task.id,
            description=task.description,
            success=True,
            duration=duration,
            summary=summary,
            full_output=output,
            turn_count=progress.turn_count,
            tool_call_count=len(progress.tool_calls),
            tool_calls=tuple(progress.tool_calls),
        )
        logger.info(
            "Sub-agent task %s completed in %.2fs (%d turns, %d tool calls)",
            task.id, duration, result.turn_count, result.tool_call_count,
        )
        await self._notify(observer, SubAgentProgress(
            kind="completed", task_id=task.id, description=task.description,
            turn_count=result.turn_count, tool_call_count=result.tool_call_count,
            result=result,
        ))
        return result

    async def _execute(
        self, task: SubAgentTask, progress: _Progress, observer: ProgressObserver | None,
    ) -> tuple[str, str]:
        """Drive one child loop, then summarize. Returns (summary, full output)."""
        loop = self._child_loop(task)
        try:
            async with asyncio.timeout(task.timeout):
                async for message in loop.query(task.prompt):
                    if isinstance(message, AssistantMessage):
                        await self._record(task, message, progress, observer)
        except TimeoutError as exc:
            raise SubAgentTimeoutError(task.id, task.timeout or 0.0) from exc

        if loop.was_cancelled:
            raise SubAgentCancelledError(task.id)
        if loop.stop_reason == "error":
            raise SubAgentError(str(loop.last_error))

        output = "".join(progress.output)
        summary = output
        if task.summarize_result and len(output) > SUMMARIZE_THRESHOLD:
            summary = await self._summarize(task, output)
        return summary, output

    def _child_loop(self, task: SubAgentTask) -> AgentLoop:
        options = dataclasses.replace(
            self._options,
            system_prompt=task.system_prompt,
            max_turns=None,
            max_iterations=task.max_turns,
        )
        return AgentLoop(
            self._backend,
            self._tools,
            options,
            permissions=self._permissions,
        )

    async def _record(
        self,
        task: SubAgentTask,
        message: AssistantMessage,
        progress: _Progress,
        observer: ProgressObserver | None,
    ) -> None:
        progress.turn_count += 1
        progress.output.append(message.text)
        for tu in message.tool_uses:
            call = SubAgentToolCall(
                id=tu.id,
                tool_name=tu.name,
                parameters=tool_call_parameters(tu.args),
            )
            progress.tool_calls.append(call)
            await self._notify(observer, SubAgentProgress(
                kind="tool_call", task_id=task.id, description=task.description,
                tool_name=call.tool_name, parameters=call.parameters,
                turn_count=progress.turn_count,
                tool_call_count=len(progress.tool_calls),
            ))
        await self._notify(observer, SubAgentProgress(
            kind="message_received", task_id=task.id, description=task.description,
            turn_count=progress.turn_count,
            tool_call_count=len(progress.tool_calls),
        ))

    async def _summarize(self, task: SubAgentTask, output: str) -> str:
        prompt = SUMMARY_PROMPT.format(
            description=task.description, output=output[:SUMMARY_INPUT_LIMIT],
        )
        try:
            summary = await complete_text(
                self._backend,
                prompt,
                model=self._summary_model,
                system_prompt=SUMMARY_SYSTEM_PROMPT,
                max_tokens=SUMMARY_MAX_TOKENS,
            )
        except Exception:
            logger.warning(
                "Summarizing output of task %s failed; using truncated output",
                task.id, exc_info=True,
            )
            return output[:SUMMARIZE_THRESHOLD]
        return summary or output[:SUMMARIZE_THRESHOLD]

    async def _notify(
        self, observer: ProgressObserver | None, event: SubAgentProgress,
    ) -> None:
        if observer is None:
            return
        try:
            outcome = observer(event)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception:
            logger.warning(
                "Progress observer failed on %s for task %s",
                event.kind, event.task_id, exc_info=True,
            )

    def __repr__(self) -> str:
        return f"SubAgentCoordinator(tools={self._tools.names}, active={self.active_count})"

