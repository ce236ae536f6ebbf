"""Exception hierarchy for agentcore.

Only configuration problems, the turn limit and a second concurrent query are
raised to callers of the agent loop. Tool and sub-agent errors are raised
internally and converted into in-band results; backend errors are reported
through the ``onError`` hook.
"""

from __future__ import annotations


class AgentError(Exception):
    """Base class for all agentcore errors."""


class ConfigurationError(AgentError):
    """Invalid options, tool sets or sub-agent input detected at setup."""


class TurnLimitExceeded(AgentError):
    """The configured maximum number of queries was already reached."""

    def __init__(self, max_turns: int) -> None:
        super().__init__(f"Maximum number of turns reached ({max_turns})")
        self.max_turns = max_turns


class SessionCancelledError(AgentError):
    """A query was started on a session that has been cancelled."""


class QueryInProgressError(AgentError):
    """A second query was started while another one is still streaming."""


class BackendCommunicationError(AgentError):
    """The model backend failed while a request was in flight."""

    def __init__(self, message: str, *, phase: str = "request") -> None:
        super().__init__(message)
        self.phase = phase


# ---------------------------------------------------------------------------
# Tool errors (never leave the tool execution gate)
# ---------------------------------------------------------------------------


class ToolError(AgentError):
    """Base class for tool failures."""


class ToolNotFoundError(ToolError):
    pass


class PermissionDeniedError(ToolError):
    pass


class ToolInputError(ToolError):
    """Tool input could not be decoded."""


class ToolExecutionError(ToolError):
    """A tool provider raised while executing."""


# ---------------------------------------------------------------------------
# Sub-agent errors (surface only inside a batch entry)
# ---------------------------------------------------------------------------


class SubAgentError(AgentError):
    pass


class SubAgentTimeoutError(SubAgentError):
    def __init__(self, task_id: str, timeout: float) -> None:
        super().__init__(f"Task '{task_id}' timed out after {timeout:g}s")
        self.task_id = task_id
        self.timeout = timeout


class SubAgentCancelledError(SubAgentError):
    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task '{task_id}' was cancelled")
        self.task_id = task_id


class MCPError(AgentError):
    """Connection or protocol failure talking to an MCP server."""
