"""Permission evaluation engine.

Evaluation order: Deny rules > Allow rules > Mode-based default.

Modes:
- MANUAL: deny every tool
- ACCEPT_READ_ONLY: allow tools whose categories are a subset of {READ}
- ACCEPT_EDITS: allow tools whose categories are a subset of {READ, WRITE}
- ACCEPT_ALL: allow every tool
- CUSTOM: defer to a predicate over the tool's categories
"""

from __future__ import annotations

from collections.abc import Callable

from agentcore.errors import ConfigurationError
from agentcore.permissions.rules import PermissionConfig, PermissionDecision
from agentcore.types.config import PermissionMode
from agentcore.types.tools import ToolDef, ToolPermission

READ_ONLY = ToolPermission.READ
EDITS = ToolPermission.READ | ToolPermission.WRITE

PermissionPredicate = Callable[[ToolPermission], bool]


def _subset(categories: ToolPermission, allowed: ToolPermission) -> bool:
    return (categories & ~allowed) == ToolPermission.NONE


class PermissionManager:
    """Decides whether a tool call may run.

    Stateless after construction; safe to share between a parent loop and
    its sub-agents.
    """

    def __init__(
        self,
        mode: PermissionMode = PermissionMode.MANUAL,
        config: PermissionConfig | None = None,
        predicate: PermissionPredicate | None = None,
    ):
        if mode is PermissionMode.CUSTOM and predicate is None:
            raise ConfigurationError("PermissionMode.CUSTOM requires a predicate")
        if predicate is not None and mode is not PermissionMode.CUSTOM:
            raise ConfigurationError("A permission predicate is only used with PermissionMode.CUSTOM")
        self._mode = mode
        self._config = config if config is not None else PermissionConfig()
        self._predicate = predicate

    @classmethod
    def custom(
        cls, predicate: PermissionPredicate, config: PermissionConfig | None = None,
    ) -> PermissionManager:
        return cls(PermissionMode.CUSTOM, config=config, predicate=predicate)

    @property
    def mode(self) -> PermissionMode:
        return self._mode

    @property
    def rules(self) -> PermissionConfig:
        return self._config

    def check(self, definition: ToolDef) -> PermissionDecision:
        """Check permission for a tool: rules first, then the mode default."""
        decision = self._config.decide(definition.name)
        if decision is not None:
            return decision
        return self._mode_default(definition.permissions)

    def _mode_default(self, categories: ToolPermission) -> PermissionDecision:
        """Apply mode-based default permission."""
        match self._mode:
            case PermissionMode.ACCEPT_ALL:
                allowed = True
            case PermissionMode.ACCEPT_EDITS:
                allowed = _subset(categories, EDITS)
            case PermissionMode.ACCEPT_READ_ONLY:
                allowed = _subset(categories, READ_ONLY)
            case PermissionMode.CUSTOM:
                allowed = bool(self._predicate(categories))
            case _:
                allowed = False
        return PermissionDecision.ALLOW if allowed else PermissionDecision.DENY

    def __repr__(self) -> str:
        return f"PermissionManager(mode={self._mode.value})"
