"""One-shot text requests against a streaming model backend."""

from __future__ import annotations

from agentcore.types.messages import AssistantMessage, UserMessage
from agentcore.types.providers import ModelBackend


async def complete_text(
    backend: ModelBackend,
    prompt: str,
    *,
    model: str,
    system_prompt: str | None = None,
    max_tokens: int = 2048,
) -> str:
    """Send a single user prompt without tools and return the concatenated text.

    Backend exceptions propagate to the caller.
    """
    parts: list[str] = []
    stream = backend.stream_complete(
        [UserMessage(content=prompt)],
        model=model,
        system_prompt=system_prompt,
        max_tokens=max_tokens,
        temperature=None,
        tools=(),
    )
    async for message in stream:
        if isinstance(message, AssistantMessage):
            parts.append(message.text)
    return "".join(parts).strip()
