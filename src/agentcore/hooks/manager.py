"""Hook registry and dispatcher."""

from __future__ import annotations

import inspect
import logging
from typing import Any

from agentcore.hooks.events import event_key
from agentcore.types.hooks import HookEvent, HookHandler

logger = logging.getLogger(__name__)


class HookManager:
    """Registers lifecycle handlers and broadcasts events to them.

    Handlers run one after another in registration order. A handler that
    raises is logged and skipped; it can neither stop the remaining handlers
    nor change the caller's control flow.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[HookHandler]] = {}

    def register(self, event: HookEvent | str, handler: HookHandler) -> None:
        """Append a handler (sync or async) for an event."""
        if not callable(handler):
            raise TypeError(f"Hook handler must be callable, got {type(handler).__name__}")
        self._handlers.setdefault(event_key(event), []).append(handler)

    def clear(self, event: HookEvent | str) -> None:
        """Remove all handlers for one event."""
        self._handlers.pop(event_key(event), None)

    def clear_all(self) -> None:
        self._handlers.clear()

    def handlers(self, event: HookEvent | str) -> list[HookHandler]:
        return list(self._handlers.get(event_key(event), ()))

    def has_handlers(self, event: HookEvent | str) -> bool:
        return bool(self._handlers.get(event_key(event)))

    async def fire(self, event: HookEvent | str, ctx: Any) -> int:
        """Call every handler for *event* with *ctx*.

        Returns the number of handlers that failed.
        """
        key = event_key(event)
        failures = 0
        # Copy so a handler registering another handler doesn't affect this round
        for handler in list(self._handlers.get(key, ())):
            try:
                outcome = handler(ctx)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception:
                failures += 1
                logger.warning("Hook handler for %s failed", key, exc_info=True)
        return failures

    def __len__(self) -> int:
        return sum(len(h) for h in self._handlers.values())

    def __repr__(self) -> str:
        counts = {k: len(v) for k, v in self._handlers.items()}
        return f"HookManager(handlers={counts})"
