"""Explicit allow/deny rules over tool names."""

from __future__ import annotations

import fnmatch
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum


class PermissionDecision(Enum):
    """Result of a permission check."""

    ALLOW = "allow"
    DENY = "deny"


@dataclass(frozen=True, slots=True)
class PermissionRule:
    """A tool name or glob pattern (``"Shell"``, ``"mcp__docs__*"``, ``"*"``).

    Matching is case-sensitive.
    """

    pattern: str
    decision: PermissionDecision

    def matches(self, tool_name: str) -> bool:
        return fnmatch.fnmatchcase(tool_name, self.pattern)


@dataclass(slots=True)
class PermissionConfig:
    """Rules layered over the permission mode: deny rules win, then allow rules."""

    deny_rules: list[PermissionRule] = field(default_factory=list)
    allow_rules: list[PermissionRule] = field(default_factory=list)

    @classmethod
    def from_patterns(
        cls, allow: Iterable[str] = (), deny: Iterable[str] = (),
    ) -> PermissionConfig:
        config = cls()
        for pattern in allow:
            config.add_allow(pattern)
        for pattern in deny:
            config.add_deny(pattern)
        return config

    def add_deny(self, pattern: str) -> None:
        self.deny_rules.append(PermissionRule(pattern, PermissionDecision.DENY))

    def add_allow(self, pattern: str) -> None:
        self.allow_rules.append(PermissionRule(pattern, PermissionDecision.ALLOW))

    def decide(self, tool_name: str) -> PermissionDecision | None:
        """The rule-based decision, or None when no rule matches."""
        if any(rule.matches(tool_name) for rule in self.deny_rules):
            return PermissionDecision.DENY
        if any(rule.matches(tool_name) for rule in self.allow_rules):
            return PermissionDecision.ALLOW
        return None

    def __bool__(self) -> bool:
        return bool(self.deny_rules or self.allow_rules)
