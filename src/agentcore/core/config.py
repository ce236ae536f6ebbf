"""Configuration loading (.env, AGENTCORE_* env vars, .agentcore/config.toml).

Precedence when building options: explicit arguments, then environment
variables, then the TOML file, then the dataclass defaults.

Example ``.agentcore/config.toml``::

    [agent]
    model = "claude-sonnet-4-5-20250929"
    max_turns = 50
    permission_mode = "accept_read_only"

    [compaction]
    enabled = true
    threshold = 100000

    [permissions]
    allow = ["mcp__docs__*"]
    deny = ["Shell"]

    [mcp_servers.docs]
    command = "docs-server"
    args = ["--stdio"]
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from agentcore.errors import ConfigurationError
from agentcore.permissions.rules import PermissionConfig
from agentcore.types.config import (
    CompactionConfig,
    EngineOptions,
    MCPServerConfig,
    PermissionMode,
)

logger = logging.getLogger(__name__)

# Load .env from current directory (and parents), won't override existing env vars
load_dotenv()

ENV_PREFIX = "AGENTCORE_"
CONFIG_DIR = ".agentcore"
CONFIG_FILE = "config.toml"

# Flat option key -> value type
_INT_KEYS = {
    "max_turns",
    "max_iterations",
    "max_tokens",
    "max_subagent_concurrency",
    "compaction_threshold",
    "keep_recent_tokens",
    "summary_max_tokens",
}
_FLOAT_KEYS = {"temperature"}
_BOOL_KEYS = {"compaction_enabled"}
_STR_KEYS = {"model", "system_prompt", "permission_mode"}
OPTION_KEYS = _INT_KEYS | _FLOAT_KEYS | _BOOL_KEYS | _STR_KEYS

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}

# [compaction] table key -> flat option key
_COMPACTION_KEYS = {
    "enabled": "compaction_enabled",
    "threshold": "compaction_threshold",
    "keep_recent_tokens": "keep_recent_tokens",
    "summary_max_tokens": "summary_max_tokens",
}


def _coerce(key: str, value: Any, source: str) -> Any:
    """Convert a raw config value (string from env, native from TOML)."""
    try:
        if key in _BOOL_KEYS:
            if isinstance(value, bool):
                return value
            text = str(value).strip().lower()
            if text in _TRUE:
                return True
            if text in _FALSE:
                return False
            raise ValueError(value)
        if key in _INT_KEYS:
            if isinstance(value, bool):
                raise ValueError(value)
            return int(value)
        if key in _FLOAT_KEYS:
            if isinstance(value, bool):
                raise ValueError(value)
            return float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"Invalid value for {key} in {source}: {value!r}") from None
    if not isinstance(value, str):
        raise ConfigurationError(f"Invalid value for {key} in {source}: {value!r}")
    return value


def load_env_config(environ: dict[str, str] | None = None) -> dict[str, Any]:
    """Load option overrides from ``AGENTCORE_*`` environment variables."""
    env = os.environ if environ is None else environ
    config: dict[str, Any] = {}
    for key in sorted(OPTION_KEYS):
        raw = env.get(ENV_PREFIX + key.upper())
        if raw is None or raw == "":
            continue
        config[key] = _coerce(key, raw, ENV_PREFIX + key.upper())
    return config


def find_config_file(cwd: str | Path | None = None) -> Path | None:
    """Return the first existing config file: project dirs first, then home."""
    search_dirs: list[Path] = []
    if cwd:
        search_dirs.append(Path(cwd))
    search_dirs.append(Path.cwd())
    search_dirs.append(Path.home())

    for d in search_dirs:
        path = d / CONFIG_DIR / CONFIG_FILE
        if path.is_file():
            return path
    return None


def load_toml_config(cwd: str | Path | None = None, path: str | Path | None = None) -> dict[str, Any]:
    """Load the raw TOML document, or ``{}`` when there is none."""
    toml_path = Path(path) if path else find_config_file(cwd)
    if toml_path is None:
        return {}
    try:
        with open(toml_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigurationError(f"Invalid TOML in {toml_path}: {exc}") from exc
    except OSError as exc:
        raise ConfigurationError(f"Cannot read {toml_path}: {exc}") from exc
    logger.debug("Loaded configuration from %s", toml_path)
    return data


def options_from_toml(data: dict[str, Any]) -> dict[str, Any]:
    """Flatten the ``[agent]`` and ``[compaction]`` tables into option keys."""
    config: dict[str, Any] = {}
    agent = data.get("agent", {})
    if not isinstance(agent, dict):
        raise ConfigurationError("[agent] must be a table")
    for key, value in agent.items():
        if key not in OPTION_KEYS:
            logger.warning("Ignoring unknown [agent] key: %s", key)
            continue
        config[key] = _coerce(key, value, "[agent]")

    compaction = data.get("compaction", {})
    if not isinstance(compaction, dict):
        raise ConfigurationError("[compaction] must be a table")
    for key, value in compaction.items():
        flat = _COMPACTION_KEYS.get(key)
        if flat is None:
            logger.warning("Ignoring unknown [compaction] key: %s", key)
            continue
        config[flat] = _coerce(flat, value, "[compaction]")
    return config


def load_mcp_servers(data: dict[str, Any]) -> dict[str, MCPServerConfig]:
    """Parse ``[mcp_servers.<name>]`` tables."""
    servers: dict[str, MCPServerConfig] = {}
    for name, raw in data.get("mcp_servers", {}).items():
        if not isinstance(raw, dict):
            raise ConfigurationError(f"[mcp_servers.{name}] must be a table")
        servers[name] = MCPServerConfig(
            command=raw.get("command"),
            args=list(raw.get("args", [])),
            env=dict(raw.get("env", {})),
            transport=raw.get("transport", "stdio"),
            url=raw.get("url"),
            description=raw.get("description", ""),
            permissions=tuple(raw.get("permissions", ("execute", "network"))),
        )
    return servers


def load_permission_rules(data: dict[str, Any]) -> PermissionConfig:
    """Parse the ``[permissions]`` table's ``allow`` and ``deny`` pattern lists."""
    table = data.get("permissions", {})
    if not isinstance(table, dict):
        raise ConfigurationError("[permissions] must be a table")
    lists: dict[str, list[str]] = {}
    for key in ("allow", "deny"):
        patterns = table.get(key, [])
        if not isinstance(patterns, list) or not all(isinstance(p, str) for p in patterns):
            raise ConfigurationError(f"[permissions] {key} must be a list of strings")
        lists[key] = patterns
    return PermissionConfig.from_patterns(allow=lists["allow"], deny=lists["deny"])


def _parse_permission_mode(value: str | PermissionMode) -> PermissionMode:
    if isinstance(value, PermissionMode):
        return value
    try:
        return PermissionMode(value)
    except ValueError:
        valid = ", ".join(m.value for m in PermissionMode)
        raise ConfigurationError(
            f"Unknown permission mode {value!r} (expected one of: {valid})",
        ) from None


def options_from_dict(config: dict[str, Any]) -> EngineOptions:
    """Build validated EngineOptions from flat option keys."""
    defaults = CompactionConfig()
    compaction = CompactionConfig(
        enabled=config.get("compaction_enabled", defaults.enabled),
        threshold=config.get("compaction_threshold", defaults.threshold),
        keep_recent_tokens=config.get("keep_recent_tokens", defaults.keep_recent_tokens),
        summary_max_tokens=config.get("summary_max_tokens", defaults.summary_max_tokens),
    )
    kwargs: dict[str, Any] = {"compaction": compaction}
    for key in (
        "model",
        "system_prompt",
        "max_turns",
        "max_iterations",
        "max_tokens",
        "temperature",
        "max_subagent_concurrency",
    ):
        if key in config:
            kwargs[key] = config[key]
    if "permission_mode" in config:
        kwargs["permission_mode"] = _parse_permission_mode(config["permission_mode"])

    options = EngineOptions(**kwargs)
    options.validate()
    return options


def build_options(
    *,
    cwd: str | Path | None = None,
    config_path: str | Path | None = None,
    environ: dict[str, str] | None = None,
    **overrides: Any,
) -> EngineOptions:
    """Merge explicit overrides > env > TOML > defaults into EngineOptions.

    ``overrides`` use the flat option keys (``model``, ``max_turns``,
    ``compaction_enabled``, ``keep_recent_tokens``...). ``None`` values are
    treated as "not given".
    """
    unknown = set(overrides) - OPTION_KEYS
    if unknown:
        raise ConfigurationError(f"Unknown option(s): {', '.join(sorted(unknown))}")

    merged: dict[str, Any] = {}
    merged.update(options_from_toml(load_toml_config(cwd, config_path)))
    merged.update(load_env_config(environ))
    merged.update({k: v for k, v in overrides.items() if v is not None})
    return options_from_dict(merged)
