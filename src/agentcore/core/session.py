"""Conversation state owned by a single agent loop."""

from __future__ import annotations

import asyncio
import logging
import uuid
from enum import Enum

from agentcore.core.serialization import export_history, import_history
from agentcore.errors import QueryInProgressError, SessionCancelledError
from agentcore.types.messages import Message, UserMessage

logger = logging.getLogger(__name__)


def new_session_id() -> str:
    """Generate a new session ID."""
    return uuid.uuid4().hex[:12]


class SessionState(Enum):
    IDLE = "idle"
    ACTIVE = "active"
    CANCELLED = "cancelled"


class Session:
    """Ordered history, turn counter and cancellation state.

    The state only moves forward: IDLE -> ACTIVE -> IDLE on completion, or
    to CANCELLED, which is terminal.
    """

    def __init__(self, session_id: str | None = None) -> None:
        self.session_id = session_id or new_session_id()
        self._messages: list[Message] = []
        self._turns = 0
        self._state = SessionState.IDLE
        self._handle: asyncio.Task | None = None

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    def add_message(self, msg: Message) -> None:
        self._messages.append(msg)

    def set_messages(self, messages: list[Message]) -> None:
        """Replace messages (used after compaction)."""
        self._messages = list(messages)

    def clear(self) -> None:
        """Drop history and reset the turn counter."""
        self._messages.clear()
        self._turns = 0

    @property
    def turns(self) -> int:
        return self._turns

    def record_turn(self) -> None:
        self._turns += 1

    # ------------------------------------------------------------------
    # Cancellation state
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def handle(self) -> asyncio.Task | None:
        return self._handle

    @property
    def is_cancelled(self) -> bool:
        return self._state is SessionState.CANCELLED

    def activate(self, handle: asyncio.Task | None) -> None:
        if self._state is SessionState.CANCELLED:
            raise SessionCancelledError(
                f"Session {self.session_id} was cancelled; create a new one",
            )
        if self._state is SessionState.ACTIVE:
            raise QueryInProgressError(
                f"Session {self.session_id} already has an active query",
            )
        self._state = SessionState.ACTIVE
        self._handle = handle

    def deactivate(self) -> None:
        if self._state is SessionState.ACTIVE:
            self._state = SessionState.IDLE
        self._handle = None

    def cancel(self) -> asyncio.Task | None:
        """Move to CANCELLED and return the active handle, if any."""
        handle = self._handle if self._state is SessionState.ACTIVE else None
        self._state = SessionState.CANCELLED
        self._handle = None
        return handle

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def export(self) -> str:
        return export_history(self._messages)

    def import_(self, data: str | bytes) -> None:
        """Replace history; the turn count becomes the number of user messages."""
        if self._state is SessionState.ACTIVE:
            raise QueryInProgressError("Cannot import history while a query is active")
        messages = import_history(data)
        self._messages = messages
        self._turns = sum(1 for m in messages if isinstance(m, UserMessage))
        logger.debug(
            "Imported %d messages into session %s (%d turns)",
            len(messages), self.session_id, self._turns,
        )
