"""Skill descriptors, registry, configuration, MCP adapter and router."""

from opskills.skill.config import BridgeConfig, ServerConfig, SkillConfig, default_config, load_config
from opskills.skill.loader import SkillLoader, parse_skill_file
from opskills.skill.registry import SkillRegistry
from opskills.skill.types import ExecutionParams, ExecutionResult, Skill

__all__ = [
    "BridgeConfig",
    "ExecutionParams",
    "ExecutionResult",
    "ServerConfig",
    "Skill",
    "SkillConfig",
    "SkillLoader",
    "SkillRegistry",
    "default_config",
    "load_config",
    "parse_skill_file",
]
