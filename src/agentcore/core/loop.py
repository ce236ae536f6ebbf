"""The core agent loop: orchestrates backend + tools."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator
from typing import Any

from agentcore.core.context import compact_messages, is_summary, needs_compaction
from agentcore.core.session import Session, SessionState
from agentcore.errors import BackendCommunicationError, QueryInProgressError, TurnLimitExceeded
from agentcore.hooks.events import build_hook_context, snapshot
from agentcore.hooks.manager import HookManager
from agentcore.observability.tracing import span, start_span
from agentcore.permissions.manager import PermissionManager
from agentcore.tools.executor import ToolExecutor
from agentcore.tools.manager import ToolSet
from agentcore.types.config import EngineOptions
from agentcore.types.hooks import HookEvent, HookHandler
from agentcore.types.messages import (
    AssistantMessage,
    Message,
    ResultMessage,
    SystemMessage,
    TextBlock,
    ToolUseBlock,
    UserMessage,
)
from agentcore.types.providers import ModelBackend

logger = logging.getLogger(__name__)


def _current_task() -> asyncio.Task | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


async def _close_stream(stream: Any) -> None:
    aclose = getattr(stream, "aclose", None)
    if aclose is not None:
        await aclose()


class AgentLoop:
    """The core agent loop.

    Orchestrates: user prompt -> model -> tool calls -> model -> ... -> final response.

    One loop owns one Session. ``query`` is an async generator yielding every
    message appended to history, in order. Tool calls from one assistant
    message run sequentially in the order the model emitted them.
    """

    def __init__(
        self,
        backend: ModelBackend,
        tools: ToolSet | None = None,
        options: EngineOptions | None = None,
        *,
        session: Session | None = None,
        hooks: HookManager | None = None,
        permissions: PermissionManager | None = None,
    ):
        self._options = options or EngineOptions()
        self._options.validate()
        self._backend = backend
        self._tools = tools if tools is not None else ToolSet()
        self._session = session or Session()
        self._hooks = hooks or HookManager()
        self._permissions = permissions or PermissionManager(self._options.permission_mode)
        self._executor = ToolExecutor(self._tools, self._permissions, self._hooks)

        self._stream: AsyncGenerator[Message, None] | None = None
        self._at_yield = False
        self._interrupted = False
        self._stop_reason: str | None = None
        self._last_error: BaseException | None = None

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def options(self) -> EngineOptions:
        return self._options

    @property
    def session(self) -> Session:
        return self._session

    @property
    def tools(self) -> ToolSet:
        return self._tools

    @property
    def hooks(self) -> HookManager:
        return self._hooks

    @property
    def permissions(self) -> PermissionManager:
        return self._permissions

    @property
    def history(self) -> list[Message]:
        return self._session.messages

    @property
    def turn_count(self) -> int:
        return self._session.turns

    @property
    def state(self) -> SessionState:
        return self._session.state

    @property
    def was_cancelled(self) -> bool:
        return self._session.is_cancelled

    @property
    def stop_reason(self) -> str | None:
        """How the last query ended: "end_turn", "max_iterations", "error" or "cancelled"."""
        return self._stop_reason

    @property
    def last_error(self) -> BaseException | None:
        return self._last_error

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    def add_hook(self, event: HookEvent | str, handler: HookHandler) -> None:
        self._hooks.register(event, handler)

    def clear_hooks(self, event: HookEvent | str) -> None:
        self._hooks.clear(event)

    def clear_all_hooks(self) -> None:
        self._hooks.clear_all()

    # ------------------------------------------------------------------
    # Session management
    # ------------------------------------------------------------------

    def export_session(self) -> str:
        return self._session.export()

    def import_session(self, data: str | bytes) -> None:
        self._session.import_(data)

    def clear_history(self) -> None:
        if self._session.state is SessionState.ACTIVE:
            raise QueryInProgressError("Cannot clear history while a query is active")
        self._session.clear()

    def cancel(self) -> None:
        """Stop the active query after its current suspension point.

        The stream ends without a further message and without an error. The
        session becomes CANCELLED for good; start a new loop to continue.
        """
        handle = self._session.cancel()
        if handle is None or handle.done():
            return
        # Suspended at a yield or cancelling ourselves: the flag is enough
        if self._at_yield or handle is _current_task():
            return
        self._interrupted = True
        handle.cancel()

    async def compact(self) -> bool:
        """Compact history now, regardless of the threshold.

        Returns True if the history was rewritten. Backend failures raise
        BackendCommunicationError.
        """
        if self._session.state is SessionState.ACTIVE:
            raise QueryInProgressError("Cannot compact while a query is active")
        try:
            return await self._compact()
        except Exception as exc:
            raise BackendCommunicationError(
                f"Compaction request failed: {type(exc).__name__}: {exc}", phase="compaction",
            ) from exc

    # ------------------------------------------------------------------
    # The loop
    # ------------------------------------------------------------------

    def query(self, prompt: str) -> AsyncGenerator[Message, None]:
        """Run the agent loop for a user prompt. Yields Messages as they are appended.

        A previous stream left suspended at a yield (the caller broke out of
        its ``async for``) is closed when the new stream starts. A previous
        stream that is still running makes the new one raise
        QueryInProgressError.
        """
        stream = self._run(prompt, self._stream)
        self._stream = stream
        return stream

    async def _run(
        self, prompt: str, previous: AsyncGenerator[Message, None] | None,
    ) -> AsyncGenerator[Message, None]:
        if (
            previous is not None
            and self._at_yield
            and self._session.state is SessionState.ACTIVE
        ):
            logger.debug("Closing abandoned stream in session %s", self._session.session_id)
            await previous.aclose()
        self._session.activate(_current_task())
        self._at_yield = False
        self._interrupted = False
        self._stop_reason = None
        self._last_error = None
        try:
            max_turns = self._options.max_turns
            if max_turns is not None and self._session.turns >= max_turns:
                error = TurnLimitExceeded(max_turns)
                self._stop_reason = "error"
                self._last_error = error
                await self._report_failure(error, "turn_limit")
                raise error

            self._session.record_turn()
            self._session.add_message(UserMessage(content=prompt))

            iterations = 0
            while True:
                if self._session.is_cancelled:
                    self._stop_reason = "cancelled"
                    return
                iterations += 1

                if self._options.compaction.enabled:
                    try:
                        await self._maybe_compact()
                    except Exception as exc:
                        await self._backend_failed(exc, "compaction")
                        return
                    if self._session.is_cancelled:
                        self._stop_reason = "cancelled"
                        return

                request = self._effective_messages()
                await self._hooks.fire(
                    HookEvent.BEFORE_REQUEST,
                    build_hook_context(
                        HookEvent.BEFORE_REQUEST,
                        messages=request,
                        model=self._options.model,
                        system_prompt=self._options.system_prompt,
                        tools=self._tools.definitions(),
                    ),
                )
                logger.debug(
                    "Iteration %d: sending %d messages to %s",
                    iterations, len(request), self._options.model,
                )

                tool_uses: list[ToolUseBlock] = []
                request_span = start_span(
                    "agentcore.request",
                    {"model": self._options.model, "iteration": iterations},
                )
                stream: Any = None
                try:
                    try:
                        stream = aiter(self._backend.stream_complete(
                            request,
                            model=self._options.model,
                            system_prompt=self._options.system_prompt,
                            max_tokens=self._options.max_tokens,
                            temperature=self._options.temperature,
                            tools=self._tools.definitions(),
                        ))
                    except Exception as exc:
                        await self._backend_failed(exc, "request")
                        return

                    while True:
                        try:
                            message = await anext(stream)
                        except StopAsyncIteration:
                            break
                        except Exception as exc:
                            await self._backend_failed(exc, "request")
                            return

                        if self._session.is_cancelled:
                            self._stop_reason = "cancelled"
                            return

                        self._session.add_message(message)
                        await self._hooks.fire(
                            HookEvent.ON_MESSAGE,
                            build_hook_context(HookEvent.ON_MESSAGE, message=message),
                        )
                        self._at_yield = True
                        yield message
                        self._at_yield = False

                        if self._session.is_cancelled:
                            self._stop_reason = "cancelled"
                            return
                        if isinstance(message, AssistantMessage):
                            tool_uses.extend(message.tool_uses)
                finally:
                    request_span.end()
                    if stream is not None:
                        await _close_stream(stream)

                if self._session.is_cancelled:
                    self._stop_reason = "cancelled"
                    return

                if not tool_uses:
                    self._stop_reason = "end_turn"
                    await self._hooks.fire(
                        HookEvent.AFTER_RESPONSE,
                        build_hook_context(
                            HookEvent.AFTER_RESPONSE,
                            messages=self._session.messages, success=True,
                        ),
                    )
                    return

                for tu in tool_uses:
                    if self._session.is_cancelled:
                        self._stop_reason = "cancelled"
                        return
                    result = await self._executor.execute(tu.name, tu.id, tu.input)
                    if self._session.is_cancelled:
                        self._stop_reason = "cancelled"
                        return
                    result_msg = ResultMessage(
                        tool_use_id=tu.id,
                        content=(TextBlock(text=result.content),),
                        is_error=result.is_error,
                    )
                    self._session.add_message(result_msg)
                    self._at_yield = True
                    yield result_msg
                    self._at_yield = False

                if self._session.is_cancelled:
                    self._stop_reason = "cancelled"
                    return

                max_iterations = self._options.max_iterations
                if max_iterations is not None and iterations >= max_iterations:
                    logger.info("Stopping after %d iterations (max_iterations)", iterations)
                    self._stop_reason = "max_iterations"
                    await self._hooks.fire(
                        HookEvent.AFTER_RESPONSE,
                        build_hook_context(
                            HookEvent.AFTER_RESPONSE,
                            messages=self._session.messages, success=True,
                        ),
                    )
                    return

        except asyncio.CancelledError:
            if not self._interrupted:
                # Cancelled from outside (timeout, task group): the session is done too
                self._session.cancel()
                raise
            task = _current_task()
            if task is not None:
                task.uncancel()
            self._stop_reason = "cancelled"
            logger.debug("Query cancelled in session %s", self._session.session_id)
        finally:
            self._at_yield = False
            self._interrupted = False
            self._session.deactivate()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _effective_messages(self) -> list[Message]:
        """History with the system prompt in front, unless one is already there."""
        history = self._session.messages
        prompt = self._options.system_prompt
        if not prompt:
            return history
        has_system = any(
            isinstance(m, SystemMessage) and not is_summary(m) for m in history
        )
        if has_system:
            return history
        return [SystemMessage(content=prompt), *history]

    async def _maybe_compact(self) -> None:
        c = self._options.compaction
        if needs_compaction(self._session.messages, c.threshold):
            await self._compact()

    async def _compact(self) -> bool:
        c = self._options.compaction
        before = self._session.messages
        with span("agentcore.compaction", {"messages": len(before)}):
            result = await compact_messages(
                before,
                self._backend,
                model=self._options.model,
                keep_recent_tokens=c.keep_recent_tokens,
                max_tokens=c.summary_max_tokens,
            )
        if result is None:
            return False
        self._session.set_messages(result.messages)
        await self._hooks.fire(
            HookEvent.ON_COMPACTION,
            build_hook_context(
                HookEvent.ON_COMPACTION,
                tokens_before=result.tokens_before,
                tokens_after=result.tokens_after,
                messages_before=len(before),
                messages_after=len(result.messages),
                summary=result.summary,
            ),
        )
        return True

    async def _backend_failed(self, exc: Exception, phase: str) -> None:
        if isinstance(exc, BackendCommunicationError):
            error = exc
        else:
            error = BackendCommunicationError(f"{type(exc).__name__}: {exc}", phase=phase)
            error.__cause__ = exc
        logger.error("Backend failure during %s: %s", phase, error)
        self._stop_reason = "error"
        self._last_error = error
        await self._report_failure(error, phase)

    async def _report_failure(self, error: BaseException, phase: str) -> None:
        await self._hooks.fire(
            HookEvent.ON_ERROR,
            build_hook_context(HookEvent.ON_ERROR, error=error, phase=phase),
        )
        await self._hooks.fire(
            HookEvent.AFTER_RESPONSE,
            build_hook_context(
                HookEvent.AFTER_RESPONSE,
                messages=snapshot(self._session.messages), success=False, error=error,
            ),
        )

    def __repr__(self) -> str:
        return (
            f"AgentLoop(session={self._session.session_id}, "
            f"state={self._session.state.value}, tools={self._tools.names})"
        )
