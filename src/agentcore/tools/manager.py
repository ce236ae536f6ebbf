"""ToolSet: an immutable, name-keyed tool catalog."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from agentcore.errors import ConfigurationError
from agentcore.types.tools import Tool, ToolDef


class ToolSet:
    """An ordered, immutable collection of tools keyed by definition name.

    Usage::

        tools = build_tool_set([ReadTool(), search_tool])
        if allow_shell:
            tools = tools.with_tool(ShellTool())
        child_tools = tools.without("SubAgent")
    """

    __slots__ = ("_registry",)

    def __init__(self, tools: Iterable[Tool] = ()) -> None:
        registry: dict[str, Tool] = {}
        for tool in tools:
            if not isinstance(tool, Tool):
                raise ConfigurationError(
                    f"{type(tool).__name__} does not implement the Tool protocol",
                )
            name = tool.definition.name
            if not name:
                raise ConfigurationError("Tool definitions need a non-empty name")
            if name in registry:
                raise ConfigurationError(f"Duplicate tool name: {name!r}")
            registry[name] = tool
        self._registry = registry

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, name: str) -> Tool | None:
        """Return the tool with the given name, or None."""
        return self._registry.get(name)

    def definitions(self) -> list[ToolDef]:
        """Return all tool definitions (for the backend schema)."""
        return [tool.definition for tool in self._registry.values()]

    @property
    def names(self) -> list[str]:
        return list(self._registry)

    # ------------------------------------------------------------------
    # Derivation
    # ------------------------------------------------------------------

    def without(self, *names: str) -> ToolSet:
        """Return a new set without the named tools. Unknown names are ignored."""
        excluded = set(names)
        return ToolSet(t for n, t in self._registry.items() if n not in excluded)

    def with_tool(self, tool: Tool) -> ToolSet:
        """Return a new set with *tool* appended."""
        return ToolSet([*self._registry.values(), tool])

    def filter(self, names: Iterable[str]) -> ToolSet:
        """Return a new set containing only the named tools, in the given order."""
        return ToolSet(self._registry[n] for n in names if n in self._registry)

    # ------------------------------------------------------------------
    # Dunder helpers
    # ------------------------------------------------------------------

    def __iter__(self) -> Iterator[Tool]:
        return iter(list(self._registry.values()))

    def __len__(self) -> int:
        return len(self._registry)

    def __contains__(self, name: object) -> bool:
        return name in self._registry

    def __repr__(self) -> str:
        return f"ToolSet(tools={list(self._registry)})"


def build_tool_set(tools: Iterable[Tool] = ()) -> ToolSet:
    """Build a tool set from an ordered list assembled by the caller."""
    return ToolSet(tools)
