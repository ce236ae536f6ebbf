"""Configuration types for agentcore."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from agentcore.errors import ConfigurationError

DEFAULT_MODEL = "claude-sonnet-4-5-20250929"


class PermissionMode(Enum):
    """Permission modes controlling which tool categories run unattended."""

    MANUAL = "manual"  # Deny everything
    ACCEPT_READ_ONLY = "accept_read_only"  # Only READ tools
    ACCEPT_EDITS = "accept_edits"  # READ and WRITE tools
    ACCEPT_ALL = "accept_all"  # Everything
    CUSTOM = "custom"  # Caller-supplied predicate over categories


@dataclass(frozen=True, slots=True)
class MCPServerConfig:
    """Configuration for an MCP server."""

    command: str | None = None
    args: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)
    transport: str = "stdio"  # "stdio" or "http"
    url: str | None = None  # For HTTP transport
    description: str = ""
    permissions: tuple[str, ...] = ("execute", "network")


@dataclass(frozen=True, slots=True)
class CompactionConfig:
    """Auto-compaction settings."""

    enabled: bool = False
    threshold: int = 120_000
    keep_recent_tokens: int = 50_000
    summary_max_tokens: int = 2048


@dataclass(slots=True)
class EngineOptions:
    """Options for one agent loop instance."""

    model: str = DEFAULT_MODEL
    system_prompt: str | None = None
    max_turns: int | None = None  # Max queries per session
    max_iterations: int | None = None  # Max backend round trips per query
    max_tokens: int = 4096
    temperature: float | None = None
    permission_mode: PermissionMode = PermissionMode.MANUAL
    compaction: CompactionConfig = field(default_factory=CompactionConfig)
    max_subagent_concurrency: int | None = None  # Ceiling for sub-agent fan-out

    def validate(self) -> None:
        """Raise ConfigurationError for inconsistent options."""
        if not self.model:
            raise ConfigurationError("model must not be empty")
        if self.max_turns is not None and self.max_turns < 1:
            raise ConfigurationError(f"max_turns must be >= 1, got {self.max_turns}")
        if self.max_iterations is not None and self.max_iterations < 1:
            raise ConfigurationError(
                f"max_iterations must be >= 1, got {self.max_iterations}",
            )
        if self.max_tokens < 1:
            raise ConfigurationError(f"max_tokens must be >= 1, got {self.max_tokens}")
        if self.temperature is not None and not 0.0 <= self.temperature <= 1.0:
            raise ConfigurationError(
                f"temperature must be within [0, 1], got {self.temperature}",
            )
        if self.max_subagent_concurrency is not None and self.max_subagent_concurrency < 1:
            raise ConfigurationError(
                f"max_subagent_concurrency must be >= 1, got {self.max_subagent_concurrency}",
            )
        c = self.compaction
        if c.enabled:
            if c.threshold < 1 or c.keep_recent_tokens < 0:
                raise ConfigurationError("compaction budgets must be positive")
            if c.keep_recent_tokens >= c.threshold:
                raise ConfigurationError(
                    "compaction keep_recent_tokens must be below the threshold",
                )
