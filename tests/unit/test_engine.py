"""Tests for agentcore.core.engine: create_agent and the run() entry point."""

from __future__ import annotations

from contextlib import aclosing

import pytest

import agentcore
from agentcore.core.engine import build_hook_manager, create_agent, run
from agentcore.core.session import Session
from agentcore.errors import ConfigurationError
from agentcore.permissions.rules import PermissionConfig, PermissionDecision
from agentcore.types.config import EngineOptions, MCPServerConfig, PermissionMode
from agentcore.types.hooks import HookEvent
from agentcore.types.messages import AssistantMessage, ResultMessage, UserMessage
from agentcore.types.tools import ToolPermission
from tests.conftest import EchoTool, MockBackend, MockTurn, WriteTool


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    path = tmp_path / "config.toml"
    path.write_text('[agent]\nmodel = "configured-model"\n')
    return path


def _echo_turns():
    return [
        MockTurn(tool_uses=[{"id": "tu1", "name": "Echo", "args": {"text": "hi"}}]),
        MockTurn(text="Done."),
    ]


class TestBuildHookManager:
    @pytest.mark.asyncio
    async def test_single_and_multiple_handlers(self):
        seen = []
        manager = build_hook_manager({
            HookEvent.ON_MESSAGE: lambda ctx: seen.append("one"),
            "onError": [lambda ctx: seen.append("two"), lambda ctx: seen.append("three")],
        })
        await manager.fire(HookEvent.ON_MESSAGE, object())
        await manager.fire(HookEvent.ON_ERROR, object())
        assert seen == ["one", "two", "three"]

    def test_empty(self):
        assert build_hook_manager(None) is not None


class TestCreateAgent:
    @pytest.mark.asyncio
    async def test_defaults_deny_tools(self):
        backend = MockBackend(turns=_echo_turns())
        agent = create_agent(backend, [EchoTool()])
        assert agent.options.permission_mode is PermissionMode.MANUAL
        messages = [m async for m in agent.query("go")]
        assert messages[1].is_error

    @pytest.mark.asyncio
    async def test_wires_hooks_and_rules(self):
        backend = MockBackend(turns=_echo_turns())
        rules = PermissionConfig()
        rules.add_allow("Echo")
        seen = []
        agent = create_agent(
            backend, [EchoTool(), WriteTool()],
            hooks={HookEvent.AFTER_TOOL_EXECUTION: lambda ctx: seen.append(ctx.tool_name)},
            permission_rules=rules,
        )
        messages = [m async for m in agent.query("go")]
        assert messages[1].text == "echo: hi"
        assert seen == ["Echo"]

    def test_subagents_flag(self):
        agent = create_agent(MockBackend(), [EchoTool()], subagents=True)
        assert agent.tools.names == ["Echo", "SubAgent"]
        assert agent.tools.get("SubAgent").coordinator.tools.names == ["Echo"]

    def test_custom_predicate(self):
        agent = create_agent(
            MockBackend(), [EchoTool()],
            options=EngineOptions(permission_mode=PermissionMode.CUSTOM),
            permission_predicate=lambda categories: categories == ToolPermission.READ,
        )
        assert agent.permissions.check(EchoTool().definition) is PermissionDecision.ALLOW
        assert agent.permissions.check(WriteTool().definition) is PermissionDecision.DENY

    def test_predicate_ignored_outside_custom_mode(self, caplog):
        agent = create_agent(
            MockBackend(),
            options=EngineOptions(permission_mode=PermissionMode.ACCEPT_ALL),
            permission_predicate=lambda categories: False,
        )
        assert agent.permissions.check(WriteTool().definition) is PermissionDecision.ALLOW
        assert "permission_predicate ignored" in caplog.text

    def test_invalid_options(self):
        with pytest.raises(ConfigurationError):
            create_agent(MockBackend(), options=EngineOptions(max_turns=0))

    def test_resumes_session(self):
        session = Session()
        agent = create_agent(MockBackend(), session=session)
        assert agent.session is session


class TestRun:
    @pytest.mark.asyncio
    async def test_single_query(self, config_file):
        backend = MockBackend(turns=_echo_turns())
        messages = [
            m async for m in run(
                "go",
                backend=backend,
                tools=[EchoTool()],
                config_path=config_file,
                permission_mode="accept_all",
            )
        ]
        assert [type(m) for m in messages] == [AssistantMessage, ResultMessage, AssistantMessage]
        assert messages[1].text == "echo: hi"
        assert backend.calls[0]["model"] == "configured-model"

    @pytest.mark.asyncio
    async def test_permission_rules_from_config_file(self, config_file):
        config_file.write_text('[permissions]\nallow = ["Echo"]\n')
        backend = MockBackend(turns=_echo_turns())
        messages = [
            m async for m in run("go", backend=backend, tools=[EchoTool()], config_path=config_file)
        ]
        assert messages[1].text == "echo: hi"
        assert not messages[1].is_error

    @pytest.mark.asyncio
    async def test_overrides_beat_config_file(self, config_file):
        backend = MockBackend(turns=[MockTurn(text="ok")])
        async for _ in run("go", backend=backend, config_path=config_file, model="override"):
            pass
        assert backend.calls[0]["model"] == "override"

    @pytest.mark.asyncio
    async def test_continues_exported_session(self, config_file):
        first = create_agent(MockBackend(turns=[MockTurn(text="first answer")]))
        async for _ in first.query("first question"):
            pass

        backend = MockBackend(turns=[MockTurn(text="second answer")])
        async for _ in run(
            "second question", backend=backend, config_path=config_file,
            session_data=first.export_session(),
        ):
            pass
        sent = backend.calls[0]["messages"]
        assert sent[0] == UserMessage(content="first question")
        assert sent[-1] == UserMessage(content="second question")
        assert len(sent) == 3

    @pytest.mark.asyncio
    async def test_closing_the_stream_early_releases_the_backend(self, config_file):
        backend = MockBackend(turns=_echo_turns())
        stream = run(
            "go", backend=backend, tools=[EchoTool()],
            config_path=config_file, permission_mode="accept_all",
        )
        async with aclosing(stream):
            async for _ in stream:
                assert backend.active == 1
                break
        assert backend.active == 0
        assert backend.call_count == 1

    @pytest.mark.asyncio
    async def test_unknown_option(self, config_file):
        with pytest.raises(ConfigurationError, match="Unknown option"):
            async for _ in run("go", backend=MockBackend(), config_path=config_file, colour="red"):
                pass

    @pytest.mark.asyncio
    async def test_bad_mcp_server_config(self, config_file):
        backend = MockBackend()
        with pytest.raises(ConfigurationError):
            async for _ in run(
                "go", backend=backend, config_path=config_file,
                mcp_servers={"broken": MCPServerConfig(transport="http")},
            ):
                pass
        assert backend.call_count == 0


def test_public_api():
    assert agentcore.run is run
    assert agentcore.create_agent is create_agent
    assert agentcore.__version__ == "0.1.0"
    for name in agentcore.__all__:
        assert hasattr(agentcore, name)
