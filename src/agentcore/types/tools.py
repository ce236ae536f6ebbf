"""Tool definition types and protocols."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Flag, auto
from typing import Any, Protocol, runtime_checkable


class ToolPermission(Flag):
    """Capability categories a tool is tagged with."""

    NONE = 0
    READ = auto()
    WRITE = auto()
    EXECUTE = auto()
    NETWORK = auto()


@dataclass(frozen=True, slots=True)
class ToolParam:
    """A parameter for a tool."""

    name: str
    type: str  # "string", "integer", "boolean", "array", "object"
    description: str
    required: bool = True
    enum: tuple[str, ...] | None = None
    default: Any = None
    items: dict[str, Any] | None = None  # For array types: JSON Schema for items


@dataclass(frozen=True, slots=True)
class ToolDef:
    """Definition of a tool exposed to the model.

    The input schema is either built from ``parameters`` or given verbatim
    through ``schema`` (MCP servers hand us raw JSON Schema).
    """

    name: str
    description: str
    parameters: tuple[ToolParam, ...] = ()
    permissions: ToolPermission = ToolPermission.EXECUTE
    schema: dict[str, Any] | None = field(default=None, compare=False)

    def input_schema(self) -> dict[str, Any]:
        if self.schema is not None:
            return dict(self.schema)
        properties: dict[str, Any] = {}
        required: list[str] = []
        for p in self.parameters:
            prop: dict[str, Any] = {"type": p.type, "description": p.description}
            if p.enum:
                prop["enum"] = list(p.enum)
            if p.items:
                prop["items"] = p.items
            if p.default is not None:
                prop["default"] = p.default
            properties[p.name] = prop
            if p.required:
                required.append(p.name)
        schema: dict[str, Any] = {"type": "object", "properties": properties}
        if required:
            schema["required"] = required
        return schema

    def to_payload(self) -> dict[str, Any]:
        """Tool definition in the shape backends expect."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema(),
        }


@dataclass(frozen=True, slots=True)
class ToolResult:
    """Data returned from tool execution. Never mutated after creation."""

    content: str
    is_error: bool = False
    structured: bytes | None = None

    @classmethod
    def error(cls, message: str) -> ToolResult:
        return cls(content=message, is_error=True)


@runtime_checkable
class Tool(Protocol):
    """Protocol that all tool providers must implement."""

    @property
    def definition(self) -> ToolDef:
        """Return the tool definition for the model."""
        ...

    async def execute(self, input_data: bytes) -> ToolResult:
        """Execute the tool with raw JSON input. May raise."""
        ...
