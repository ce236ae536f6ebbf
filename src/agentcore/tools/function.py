"""Adapters that turn typed Python callables into tools.

Each adapter captures ``decode -> execute -> encode`` for one concrete input
type, so the rest of the engine only ever sees ``Tool.execute(bytes)``.
"""

from __future__ import annotations

import dataclasses
import inspect
import json
import types
import typing
from collections.abc import Awaitable, Callable
from typing import Any

from agentcore.errors import ToolInputError
from agentcore.tools.base import decode_input
from agentcore.types.tools import ToolDef, ToolParam, ToolPermission, ToolResult

_JSON_TYPES: dict[type, str] = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
    list: "array",
    tuple: "array",
    dict: "object",
}


def _json_type(annotation: Any) -> tuple[str, bool]:
    """Map an annotation to a JSON Schema type; second item is "optional"."""
    origin = typing.get_origin(annotation)
    if origin in (typing.Union, types.UnionType):
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        optional = len(args) < len(typing.get_args(annotation))
        json_type, _ = _json_type(args[0]) if len(args) == 1 else ("string", False)
        return json_type, optional
    base = origin or annotation
    return _JSON_TYPES.get(base, "string"), False


def params_from_dataclass(cls: type) -> tuple[ToolParam, ...]:
    """Derive tool parameters from a dataclass' fields."""
    hints = typing.get_type_hints(cls)
    params: list[ToolParam] = []
    for f in dataclasses.fields(cls):
        json_type, optional = _json_type(hints.get(f.name, str))
        has_default = (
            f.default is not dataclasses.MISSING
            or f.default_factory is not dataclasses.MISSING
        )
        description = str(f.metadata.get("description", f.name))
        params.append(ToolParam(
            name=f.name,
            type=json_type,
            description=description,
            required=not (has_default or optional),
            default=f.default if f.default is not dataclasses.MISSING else None,
        ))
    return tuple(params)


def _json_default(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    return str(value)


def _encode(value: Any) -> ToolResult:
    if isinstance(value, ToolResult):
        return value
    if value is None:
        return ToolResult(content="")
    if isinstance(value, str):
        return ToolResult(content=value)
    text = json.dumps(value, default=_json_default)
    return ToolResult(content=text, structured=text.encode())


class FunctionTool:
    """A tool backed by a callable taking one dataclass argument.

    The dataclass is the tool's input type: raw JSON is decoded into it
    before the call, and the return value (``str``, ``ToolResult``, a
    dataclass or any JSON-serializable value) is encoded into a ToolResult.
    """

    def __init__(
        self,
        func: Callable[[Any], Any | Awaitable[Any]],
        input_type: type,
        *,
        name: str | None = None,
        description: str | None = None,
        permissions: ToolPermission = ToolPermission.EXECUTE,
    ) -> None:
        if not dataclasses.is_dataclass(input_type):
            raise TypeError(f"input_type must be a dataclass, got {input_type!r}")
        self._func = func
        self._input_type = input_type
        self._definition = ToolDef(
            name=name or func.__name__,
            description=description or inspect.getdoc(func) or "",
            parameters=params_from_dataclass(input_type),
            permissions=permissions,
        )

    @property
    def definition(self) -> ToolDef:
        return self._definition

    def decode(self, input_data: bytes) -> Any:
        args = decode_input(input_data)
        known = {f.name for f in dataclasses.fields(self._input_type)}
        unknown = sorted(set(args) - known)
        if unknown:
            raise ToolInputError(f"Unexpected arguments: {', '.join(unknown)}")
        try:
            return self._input_type(**args)
        except TypeError as exc:
            raise ToolInputError(str(exc)) from exc

    async def execute(self, input_data: bytes) -> ToolResult:
        value = self._func(self.decode(input_data))
        if inspect.isawaitable(value):
            value = await value
        return _encode(value)

    def __repr__(self) -> str:
        return f"FunctionTool(name={self._definition.name!r})"


def function_tool(
    input_type: type,
    *,
    name: str | None = None,
    description: str | None = None,
    permissions: ToolPermission = ToolPermission.EXECUTE,
) -> Callable[[Callable[[Any], Any]], FunctionTool]:
    """Decorator form of :class:`FunctionTool`.

    Usage::

        @dataclass
        class SearchInput:
            query: str
            limit: int = 10

        @function_tool(SearchInput, permissions=ToolPermission.READ)
        async def search(args: SearchInput) -> str:
            ...
    """

    def wrap(func: Callable[[Any], Any]) -> FunctionTool:
        return FunctionTool(
            func, input_type, name=name, description=description, permissions=permissions,
        )

    return wrap
