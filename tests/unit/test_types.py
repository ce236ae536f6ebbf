"""Tests for agentcore.types: messages, tool definitions, options, sub-agent results."""

from __future__ import annotations

import pytest

from agentcore.errors import ConfigurationError
from agentcore.types.agents import (
    SubAgentBatchResult,
    SubAgentResult,
    SubAgentTask,
)
from agentcore.types.config import CompactionConfig, EngineOptions
from agentcore.types.messages import (
    AssistantMessage,
    ResultMessage,
    TextBlock,
    ThinkingBlock,
    ToolUseBlock,
)
from agentcore.types.tools import ToolDef, ToolParam, ToolPermission, ToolResult


class TestMessages:
    def test_assistant_text_and_tool_uses(self):
        msg = AssistantMessage(content=(
            ThinkingBlock(thinking="hmm"),
            TextBlock(text="Let me "),
            ToolUseBlock.from_args("tu1", "Echo", {"text": "a"}),
            TextBlock(text="check."),
        ))
        assert msg.text == "Let me check."
        assert [tu.id for tu in msg.tool_uses] == ["tu1"]

    def test_tool_use_args_decoding(self):
        tu = ToolUseBlock.from_args("tu1", "Echo", {"text": "hi", "n": 2})
        assert tu.args == {"text": "hi", "n": 2}

    def test_tool_use_args_tolerates_garbage(self):
        assert ToolUseBlock(id="x", name="Echo", input=b"not json").args == {}
        assert ToolUseBlock(id="x", name="Echo", input=b"[1, 2]").args == {}
        assert ToolUseBlock(id="x", name="Echo", input=b"").args == {}

    def test_result_message_text(self):
        msg = ResultMessage(tool_use_id="tu1", content=(TextBlock(text="ok"),))
        assert msg.text == "ok"
        assert msg.is_error is False

    def test_messages_are_frozen(self):
        msg = AssistantMessage()
        with pytest.raises(AttributeError):
            msg.model = "other"  # type: ignore[misc]


class TestToolDef:
    def test_schema_from_params(self):
        d = ToolDef(
            name="Search",
            description="Search things",
            parameters=(
                ToolParam(name="query", type="string", description="What"),
                ToolParam(name="limit", type="integer", description="Max", required=False, default=10),
            ),
        )
        schema = d.input_schema()
        assert schema["type"] == "object"
        assert schema["required"] == ["query"]
        assert schema["properties"]["limit"]["default"] == 10

    def test_raw_schema_wins(self):
        raw = {"type": "object", "properties": {"x": {"type": "number"}}}
        d = ToolDef(name="Raw", description="", schema=raw)
        assert d.input_schema() == raw

    def test_untagged_tool_defaults_to_execute(self):
        assert ToolDef(name="T", description="").permissions == ToolPermission.EXECUTE

    def test_payload_shape(self):
        payload = ToolDef(name="T", description="desc").to_payload()
        assert set(payload) == {"name", "description", "input_schema"}

    def test_tool_result_error_factory(self):
        r = ToolResult.error("nope")
        assert r.is_error is True
        assert r.content == "nope"
        assert r.structured is None


class TestEngineOptions:
    def test_defaults_validate(self):
        opts = EngineOptions()
        opts.validate()
        assert opts.max_tokens == 4096
        assert opts.compaction.enabled is False
        assert opts.compaction.threshold == 120_000
        assert opts.compaction.keep_recent_tokens == 50_000

    @pytest.mark.parametrize("kwargs", [
        {"max_turns": 0},
        {"max_iterations": 0},
        {"max_tokens": 0},
        {"temperature": 1.5},
        {"model": ""},
        {"max_subagent_concurrency": 0},
    ])
    def test_invalid_values(self, kwargs):
        with pytest.raises(ConfigurationError):
            EngineOptions(**kwargs).validate()

    def test_compaction_budget_must_be_below_threshold(self):
        opts = EngineOptions(compaction=CompactionConfig(
            enabled=True, threshold=1000, keep_recent_tokens=1000,
        ))
        with pytest.raises(ConfigurationError, match="below the threshold"):
            opts.validate()

    def test_disabled_compaction_is_not_checked(self):
        EngineOptions(compaction=CompactionConfig(threshold=10, keep_recent_tokens=100)).validate()


class TestSubAgentTypes:
    def test_task_defaults(self):
        task = SubAgentTask(description="d", prompt="p")
        assert task.max_turns == 20
        assert task.summarize_result is True
        assert task.timeout is None
        assert len(task.id) == 12

    def test_task_ids_are_unique(self):
        assert SubAgentTask("a", "b").id != SubAgentTask("a", "b").id

    def test_failure_factory(self):
        r = SubAgentResult.failure("t1", "desc", "boom", 1.5)
        assert r.success is False
        assert r.summary == "Task failed: boom"
        assert r.error == "boom"

    def test_batch_aggregates(self):
        ok = SubAgentResult(id="a", description="A", success=True, duration=1.0, summary="fine")
        bad = SubAgentResult.failure("b", "B", "boom", 0.5)
        batch = SubAgentBatchResult(results=(ok, bad), total_duration=1.2)
        assert batch.success_count == 1
        assert batch.failure_count == 1
        assert batch.all_succeeded is False
        assert batch.result_for("b") is bad
        assert batch.result_for("zzz") is None
        assert batch.combined_summary == "[A]: fine\n\n[B]: Task failed: boom"
