"""Engine: wires backend + tools + hooks + config into a running agent."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Iterable, Mapping
from contextlib import aclosing
from pathlib import Path
from typing import Any

from agentcore.core.config import (
    build_options,
    load_mcp_servers,
    load_permission_rules,
    load_toml_config,
)
from agentcore.core.loop import AgentLoop
from agentcore.core.session import Session
from agentcore.hooks.manager import HookManager
from agentcore.mcp.manager import MCPManager
from agentcore.permissions.manager import PermissionManager, PermissionPredicate
from agentcore.permissions.rules import PermissionConfig
from agentcore.tools.manager import ToolSet, build_tool_set
from agentcore.tools.subagent import ProgressObserver, with_subagents
from agentcore.types.config import EngineOptions, MCPServerConfig, PermissionMode
from agentcore.types.hooks import HookEvent, HookHandler
from agentcore.types.messages import Message
from agentcore.types.providers import ModelBackend
from agentcore.types.tools import Tool

logger = logging.getLogger(__name__)

HookMap = Mapping[HookEvent | str, HookHandler | Iterable[HookHandler]]


def build_hook_manager(hooks: HookMap | None) -> HookManager:
    """Register ``{event: handler or [handlers]}`` on a new HookManager."""
    manager = HookManager()
    for event, handlers in (hooks or {}).items():
        if callable(handlers):
            handlers = [handlers]
        for handler in handlers:
            manager.register(event, handler)
    return manager


def create_agent(
    backend: ModelBackend,
    tools: ToolSet | Iterable[Tool] = (),
    *,
    options: EngineOptions | None = None,
    hooks: HookMap | None = None,
    permission_rules: PermissionConfig | None = None,
    permission_predicate: PermissionPredicate | None = None,
    subagents: bool = False,
    subagent_observer: ProgressObserver | None = None,
    session: Session | None = None,
) -> AgentLoop:
    """Assemble an AgentLoop from its parts.

    Args:
        backend: The model backend to stream completions from.
        tools: Tool providers, in the order the model should see them.
        options: Engine options. Defaults to ``EngineOptions()``.
        hooks: Lifecycle handlers keyed by event.
        permission_rules: Explicit allow/deny rules over tool names.
        permission_predicate: Decision function for ``PermissionMode.CUSTOM``.
        subagents: Add the ``SubAgent`` tool backed by the same backend.
        subagent_observer: Progress observer for that tool.
        session: Resume an existing session instead of starting a new one.
    """
    options = options or EngineOptions()
    options.validate()
    tool_set = tools if isinstance(tools, ToolSet) else build_tool_set(tools)

    predicate = permission_predicate if options.permission_mode is PermissionMode.CUSTOM else None
    if permission_predicate is not None and predicate is None:
        logger.warning(
            "permission_predicate ignored: permission mode is %s", options.permission_mode.value,
        )
    permissions = PermissionManager(options.permission_mode, permission_rules, predicate)

    if subagents:
        tool_set = with_subagents(
            tool_set, backend, options,
            permissions=permissions, observer=subagent_observer,
        )

    return AgentLoop(
        backend,
        tool_set,
        options,
        session=session,
        hooks=build_hook_manager(hooks),
        permissions=permissions,
    )


async def run(
    prompt: str,
    *,
    backend: ModelBackend,
    tools: Iterable[Tool] = (),
    mcp_servers: Mapping[str, MCPServerConfig] | None = None,
    hooks: HookMap | None = None,
    permission_rules: PermissionConfig | None = None,
    permission_predicate: PermissionPredicate | None = None,
    subagents: bool = False,
    session_data: str | bytes | None = None,
    cwd: str | Path | None = None,
    config_path: str | Path | None = None,
    **option_overrides: Any,
) -> AsyncIterator[Message]:
    """Run one query through a freshly configured agent.

    This is the primary SDK entry point. Options come from
    ``option_overrides`` > ``AGENTCORE_*`` env vars > ``.agentcore/config.toml``
    > defaults. MCP servers from the TOML file are connected too, with
    ``mcp_servers`` taking precedence on name clashes, and are disconnected
    when the stream ends. To stop early, iterate inside
    ``contextlib.aclosing(run(...))`` so the disconnect happens on exit.

    Args:
        prompt: The user's instruction.
        backend: The model backend.
        tools: Local tool providers.
        mcp_servers: Extra MCP server configurations (name -> config).
        hooks: Lifecycle handlers keyed by event.
        permission_rules: Explicit permission rules (allow/deny). Defaults to
            the ``[permissions]`` table of the config file.
        permission_predicate: Decision function for ``permission_mode="custom"``.
        subagents: Whether to expose the ``SubAgent`` tool.
        session_data: A previously exported session to continue.
        cwd: Where to look for ``.agentcore/config.toml``.
        config_path: Explicit config file, bypassing the search.
    """
    toml_config = load_toml_config(cwd, config_path)
    options = build_options(cwd=cwd, config_path=config_path, **option_overrides)

    servers = load_mcp_servers(toml_config)
    servers.update(mcp_servers or {})
    if permission_rules is None:
        permission_rules = load_permission_rules(toml_config)

    session = None
    if session_data is not None:
        session = Session()
        session.import_(session_data)

    async with MCPManager() as mcp:
        if servers:
            await mcp.add_servers(servers)
        loop = create_agent(
            backend,
            [*tools, *mcp.tools()],
            options=options,
            hooks=hooks,
            permission_rules=permission_rules,
            permission_predicate=permission_predicate,
            subagents=subagents,
            session=session,
        )
        logger.debug("Running query with %d tools on %s", len(loop.tools), options.model)
        async with aclosing(loop.query(prompt)) as stream:
            async for msg in stream:
                yield msg
