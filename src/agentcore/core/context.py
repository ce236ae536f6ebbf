"""Context management: token estimation and history compaction.

Compaction keeps a recent suffix of the history within a token budget and
replaces the older plain-text messages by a single summary produced by the
model. Assistant messages that requested tools and all tool results are
kept verbatim and in their original order, so every tool-use block keeps its
matching result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from agentcore.core.completion import complete_text
from agentcore.types.messages import (
    AssistantMessage,
    ContentBlock,
    Message,
    ResultMessage,
    SystemMessage,
    TextBlock,
    ThinkingBlock,
    ToolResultBlock,
    ToolUseBlock,
    UserMessage,
)
from agentcore.types.providers import ModelBackend

logger = logging.getLogger(__name__)

# Fixed heuristic: one token per four characters of text
CHARS_PER_TOKEN = 4

SUMMARY_LABEL = "[Conversation Summary]"

SUMMARY_SYSTEM_PROMPT = (
    "You compress conversation transcripts into dense summaries that another "
    "assistant will rely on to continue the conversation."
)

SUMMARY_INSTRUCTION = """\
Summarize the conversation transcript below so the conversation can continue \
without it.

Preserve:
- Decisions that were made and their rationale
- Context the user provided about their goals, constraints and environment
- Stated preferences
- Technical details: names, paths, identifiers, values, commands and errors

Omit pleasantries, small talk and issues that were fully resolved.

Transcript:

{transcript}
"""


def _block_text(block: ContentBlock) -> str:
    match block:
        case TextBlock(text=text):
            return text
        case ThinkingBlock(thinking=thinking):
            return thinking
        case ToolUseBlock(name=name, input=raw):
            return name + raw.decode("utf-8", errors="replace")
        case ToolResultBlock(content=content):
            return "".join(_block_text(b) for b in content)
    return ""


def message_text(msg: Message) -> str:
    """All textual content of a message."""
    if isinstance(msg, (UserMessage, SystemMessage)):
        return msg.content
    return "".join(_block_text(b) for b in msg.content)


def estimate_tokens(text: str) -> int:
    return len(text) // CHARS_PER_TOKEN


def estimate_message_tokens(msg: Message) -> int:
    """Estimate tokens for a single message."""
    return estimate_tokens(message_text(msg))


def estimate_total_tokens(messages: list[Message]) -> int:
    """Estimate total token count for a message history."""
    return sum(len(message_text(m)) for m in messages) // CHARS_PER_TOKEN


def needs_compaction(messages: list[Message], threshold: int) -> bool:
    """Check if the message history needs compaction."""
    return estimate_total_tokens(messages) > threshold


def is_summary(msg: Message) -> bool:
    return isinstance(msg, SystemMessage) and msg.content.startswith(SUMMARY_LABEL)


def is_tool_bearing(msg: Message) -> bool:
    if isinstance(msg, ResultMessage):
        return True
    return isinstance(msg, AssistantMessage) and bool(msg.tool_uses)


def split_recent(
    messages: list[Message], keep_recent_tokens: int,
) -> tuple[list[Message], list[Message]]:
    """Split into (old, recent) where recent is the longest suffix within budget."""
    chars = 0
    start = len(messages)
    for idx in range(len(messages) - 1, -1, -1):
        candidate = chars + len(message_text(messages[idx]))
        if candidate // CHARS_PER_TOKEN > keep_recent_tokens:
            break
        chars = candidate
        start = idx
    return messages[:start], messages[start:]


def render_transcript(messages: list[Message]) -> str:
    lines: list[str] = []
    for msg in messages:
        match msg:
            case UserMessage(content=content):
                lines.append(f"User: {content}")
            case SystemMessage(content=content):
                if is_summary(msg):
                    lines.append(f"Earlier summary: {content[len(SUMMARY_LABEL):].strip()}")
                else:
                    lines.append(f"System: {content}")
            case AssistantMessage():
                lines.append(f"Assistant: {message_text(msg)}")
    return "\n\n".join(lines)


@dataclass(frozen=True, slots=True)
class CompactionResult:
    messages: list[Message]
    summary: str
    tokens_before: int
    tokens_after: int
    summarized_count: int


async def compact_messages(
    messages: list[Message],
    backend: ModelBackend,
    *,
    model: str,
    keep_recent_tokens: int,
    max_tokens: int = 2048,
) -> CompactionResult | None:
    """Compact messages by summarizing older prose.

    Strategy:
    1. Keep the newest messages that fit in ``keep_recent_tokens``
    2. Of the older messages, keep tool-bearing ones verbatim
    3. Summarize the older plain-text ones (plus earlier summaries) in one request
    4. Return ``[summary] + tool-bearing + recent``

    Returns None when there is nothing to summarize. Backend exceptions
    propagate.
    """
    old, recent = split_recent(messages, keep_recent_tokens)
    preserved = [m for m in old if is_tool_bearing(m)]
    previous = [m for m in old if is_summary(m)]
    prose = [m for m in old if not is_tool_bearing(m) and not is_summary(m)]

    if not prose:
        logger.debug("Compaction skipped: no plain-text messages outside the recent window")
        return None

    tokens_before = estimate_total_tokens(messages)
    # Earlier summaries come first so the new one supersedes them
    transcript = render_transcript(previous + prose)
    summary = await complete_text(
        backend,
        SUMMARY_INSTRUCTION.format(transcript=transcript),
        model=model,
        system_prompt=SUMMARY_SYSTEM_PROMPT,
        max_tokens=max_tokens,
    )
    if not summary:
        logger.warning("Compaction skipped: backend returned an empty summary")
        return None

    summary_msg = SystemMessage(content=f"{SUMMARY_LABEL}\n{summary}")
    compacted: list[Message] = [summary_msg, *preserved, *recent]
    tokens_after = estimate_total_tokens(compacted)
    logger.info(
        "Compacted history: %d -> %d messages, ~%d -> ~%d tokens",
        len(messages), len(compacted), tokens_before, tokens_after,
    )
    return CompactionResult(
        messages=compacted,
        summary=summary,
        tokens_before=tokens_before,
        tokens_after=tokens_after,
        summarized_count=len(prose) + len(previous),
    )
