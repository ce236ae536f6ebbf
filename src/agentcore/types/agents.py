"""Sub-agent task and result types."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field

MAX_TASKS_PER_BATCH = 5
MAX_TASK_TIMEOUT = 600.0  # seconds
DEFAULT_SUBAGENT_MAX_TURNS = 20


@dataclass(frozen=True, slots=True)
class SubAgentTask:
    """A task delegated to a sub-agent with its own, isolated history."""

    description: str
    prompt: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    system_prompt: str | None = None
    timeout: float | None = None  # seconds
    max_turns: int = DEFAULT_SUBAGENT_MAX_TURNS
    summarize_result: bool = True


@dataclass(frozen=True, slots=True)
class SubAgentToolCall:
    """A tool call observed in a sub-agent's stream."""

    id: str
    tool_name: str
    parameters: dict[str, str] = field(default_factory=dict, compare=False)


@dataclass(frozen=True, slots=True)
class SubAgentResult:
    """Outcome of one sub-agent task."""

    id: str
    description: str
    success: bool
    duration: float  # seconds
    summary: str = ""
    full_output: str = ""
    error: str | None = None
    turn_count: int = 0
    tool_call_count: int = 0
    tool_calls: tuple[SubAgentToolCall, ...] = ()

    @classmethod
    def failure(
        cls, task_id: str, description: str, error: str, duration: float,
        *, turn_count: int = 0, tool_call_count: int = 0,
    ) -> SubAgentResult:
        return cls(
            id=task_id,
            description=description,
            success=False,
            duration=duration,
            summary=f"Task failed: {error}",
            error=error,
            turn_count=turn_count,
            tool_call_count=tool_call_count,
        )


@dataclass(frozen=True, slots=True)
class SubAgentBatchResult:
    """Results of a batch, in the order the tasks were submitted."""

    results: tuple[SubAgentResult, ...]
    total_duration: float  # wall clock, seconds

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failure_count(self) -> int:
        return len(self.results) - self.success_count

    @property
    def all_succeeded(self) -> bool:
        return all(r.success for r in self.results)

    def result_for(self, task_id: str) -> SubAgentResult | None:
        for r in self.results:
            if r.id == task_id:
                return r
        return None

    @property
    def combined_summary(self) -> str:
        return "\n\n".join(f"[{r.description}]: {r.summary}" for r in self.results)


@dataclass(frozen=True, slots=True)
class SubAgentProgress:
    """Display-only progress event from the coordinator.

    ``kind`` is one of "started", "tool_call", "message_received",
    "completed" or "failed".
    """

    kind: str
    task_id: str
    description: str = ""
    tool_name: str | None = None
    parameters: dict[str, str] = field(default_factory=dict)
    turn_count: int = 0
    tool_call_count: int = 0
    result: SubAgentResult | None = None
    error: str | None = None
