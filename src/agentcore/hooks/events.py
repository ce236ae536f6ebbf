"""Hook context builder for event data."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from agentcore.types.hooks import (
    AfterResponseContext,
    AfterToolExecutionContext,
    BeforeRequestContext,
    BeforeToolExecutionContext,
    CompactionContext,
    ErrorContext,
    HookEvent,
    MessageContext,
)
from agentcore.types.messages import Message

_CONTEXT_TYPES: dict[HookEvent, type] = {
    HookEvent.BEFORE_REQUEST: BeforeRequestContext,
    HookEvent.AFTER_RESPONSE: AfterResponseContext,
    HookEvent.ON_ERROR: ErrorContext,
    HookEvent.BEFORE_TOOL_EXECUTION: BeforeToolExecutionContext,
    HookEvent.AFTER_TOOL_EXECUTION: AfterToolExecutionContext,
    HookEvent.ON_MESSAGE: MessageContext,
    HookEvent.ON_COMPACTION: CompactionContext,
}


def event_key(event: HookEvent | str) -> str:
    """Normalize an event to its string name ("beforeRequest", ...)."""
    return event.value if isinstance(event, HookEvent) else str(event)


def snapshot(messages: Iterable[Message]) -> tuple[Message, ...]:
    """Freeze a message list so handlers cannot mutate loop state."""
    return tuple(messages)


def build_hook_context(event: HookEvent, **fields: Any) -> Any:
    """Build the immutable context object for a built-in event.

    Sequence fields named ``messages`` or ``tools`` are frozen to tuples.
    """
    try:
        ctx_type = _CONTEXT_TYPES[event]
    except KeyError:
        raise ValueError(f"No context type for event {event_key(event)!r}") from None
    for name in ("messages", "tools"):
        if name in fields and fields[name] is not None:
            fields[name] = tuple(fields[name])
    return ctx_type(**fields)
