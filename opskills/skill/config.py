"""Skill and external server configuration.

Loads the YAML configuration that decides, per skill, whether it runs
directly or through an external MCP server, and how those servers are
launched. Environment variables are expanded with ${VAR} and ${VAR:-default};
.env files next to the configuration are merged over os.environ first.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from opskills.constants import DEFAULT_CALL_TIMEOUT, ExecutionMode, ServerType
from opskills.errors import ConfigurationError

logger = logging.getLogger(__name__)

_ENV_PATTERN = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")


@dataclass
class SkillConfig:
    """Execution settings for one skill."""

    name: str
    execution_mode: ExecutionMode = ExecutionMode.AUTO
    mcp_server: Optional[str] = None


@dataclass
class ServerConfig:
    """Launch specification for one external MCP server."""

    name: str
    type: str = ServerType.STDIO
    command: Optional[str] = None
    args: List[str] = field(default_factory=list)
    env: Dict[str, str] = field(default_factory=dict)
    url: Optional[str] = None
    # handshake and discovery requests
    timeout: float = DEFAULT_CALL_TIMEOUT
    # forwarded tools/call; None waits as long as the remote script runs
    call_timeout: Optional[float] = None


@dataclass
class BridgeConfig:
    """Skills configuration, read-only after load."""

    skills: Dict[str, SkillConfig] = field(default_factory=dict)
    mcp_servers: Dict[str, ServerConfig] = field(default_factory=dict)

    def get_skill_config(self, skill_name: str) -> Optional[SkillConfig]:
        return self.skills.get(skill_name)

    def get_server_config(self, server_name: str) -> Optional[ServerConfig]:
        return self.mcp_servers.get(server_name)


def default_config() -> BridgeConfig:
    """Empty configuration: every skill runs in auto mode."""
    return BridgeConfig()


def load_dotenv_files(config_dir: Optional[Path] = None) -> Dict[str, str]:
    """Load .env files from the configuration directory."""
    env_vars: Dict[str, str] = {}
    if config_dir is None:
        return env_vars

    from dotenv import dotenv_values

    for env_path in (config_dir / ".env", config_dir / ".env.local"):
        if env_path.is_file():
            loaded = dotenv_values(env_path)
            env_vars.update({k: v for k, v in loaded.items() if v is not None})
    return env_vars


def expand_env_vars(value: str, env: Dict[str, str]) -> str:
    """Expand ${VAR} and ${VAR:-default} in value."""

    def replacer(match: re.Match) -> str:
        var_name = match.group(1)
        default = match.group(2) or ""
        return env.get(var_name, default)

    return _ENV_PATTERN.sub(replacer, value)


def expand_config(config: Any, env: Dict[str, str]) -> Any:
    """Recursively expand environment variables in config."""
    if isinstance(config, str):
        return expand_env_vars(config, env)
    elif isinstance(config, dict):
        return {k: expand_config(v, env) for k, v in config.items()}
    elif isinstance(config, list):
        return [expand_config(item, env) for item in config]
    return config


def _require_mapping(value: Any, field_name: str) -> Dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigurationError(
            f"{field_name} must be a mapping, got {type(value).__name__}", field=field_name
        )
    return value


def _parse_seconds(value: Any, field_name: str) -> float:
    """Positive number of seconds."""
    if isinstance(value, bool):
        raise ConfigurationError(f"{field_name} must be a number of seconds", field=field_name)
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(
            f"{field_name} must be a number of seconds, got {value!r}", field=field_name
        ) from None
    if seconds <= 0:
        raise ConfigurationError(f"{field_name} must be positive, got {value!r}", field=field_name)
    return seconds


def parse_config(data: Any) -> BridgeConfig:
    """Build a BridgeConfig from already-expanded YAML data.

    Raises:
        ConfigurationError: On unknown execution modes or malformed sections.
    """
    if data is None:
        return default_config()
    if not isinstance(data, dict):
        raise ConfigurationError("configuration must be a mapping")

    skills_section = data.get("skills") or {}
    servers_section = data.get("mcp_servers") or {}
    if not isinstance(skills_section, dict):
        raise ConfigurationError("skills must be a mapping", field="skills")
    if not isinstance(servers_section, dict):
        raise ConfigurationError("mcp_servers must be a mapping", field="mcp_servers")

    skills: Dict[str, SkillConfig] = {}
    for name, entry in skills_section.items():
        entry = _require_mapping(entry, f"skills.{name}")
        raw_mode = str(entry.get("execution_mode", ExecutionMode.AUTO.value)).lower()
        try:
            mode = ExecutionMode(raw_mode)
        except ValueError:
            raise ConfigurationError(
                f"unknown execution mode for skill {name}: {raw_mode}",
                field=f"skills.{name}.execution_mode",
            ) from None
        skills[name] = SkillConfig(
            name=entry.get("name", name),
            execution_mode=mode,
            mcp_server=entry.get("mcp_server") or None,
        )

    servers: Dict[str, ServerConfig] = {}
    for name, entry in servers_section.items():
        entry = _require_mapping(entry, f"mcp_servers.{name}")
        server_type = str(entry.get("type", ServerType.STDIO)).lower()
        if server_type not in ServerType.ALL:
            raise ConfigurationError(
                f"unknown server type for {name}: {server_type}",
                field=f"mcp_servers.{name}.type",
            )
        args = entry.get("args") or []
        if not isinstance(args, list):
            raise ConfigurationError(
                f"args for {name} must be a list", field=f"mcp_servers.{name}.args"
            )
        env = _require_mapping(entry.get("env"), f"mcp_servers.{name}.env")
        call_timeout = entry.get("call_timeout")
        servers[name] = ServerConfig(
            name=name,
            type=server_type,
            command=entry.get("command"),
            args=[str(arg) for arg in args],
            env={str(k): str(v) for k, v in env.items()},
            url=entry.get("url"),
            timeout=_parse_seconds(
                entry.get("timeout", DEFAULT_CALL_TIMEOUT), f"mcp_servers.{name}.timeout"
            ),
            call_timeout=(
                None
                if call_timeout is None
                else _parse_seconds(call_timeout, f"mcp_servers.{name}.call_timeout")
            ),
        )

    for skill in skills.values():
        if skill.mcp_server and skill.mcp_server not in servers:
            logger.warning(
                f"Skill {skill.name} references undefined MCP server: {skill.mcp_server}"
            )

    return BridgeConfig(skills=skills, mcp_servers=servers)


def load_config(config_path: Path) -> BridgeConfig:
    """Load and resolve a skills configuration file.

    Raises:
        ConfigurationError: If the file is missing, unreadable or invalid.
    """
    config_path = Path(config_path)
    if not config_path.is_file():
        raise ConfigurationError(f"config file not found: {config_path}")

    try:
        data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"failed to parse config file {config_path}: {e}") from e

    env = {**os.environ, **load_dotenv_files(config_path.parent)}
    return parse_config(expand_config(data, env))
