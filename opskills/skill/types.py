"""Skill descriptor and execution result types."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from opskills.constants import SCRIPTS_DIR, SKILL_DESCRIPTOR

# Parameters passed to a skill invocation (JSON-compatible values)
ExecutionParams = Dict[str, Any]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Skill:
    """A loaded skill.

    Attributes:
        name: Unique skill name.
        description: Human-readable description.
        base_path: Skill directory (e.g. skills/kubekey).
        scripts_path: Script directory (defaults to <base_path>/scripts).
        descriptor_path: SKILL.md path (defaults to <base_path>/SKILL.md).
        license: License from the descriptor frontmatter.
        compatibility: Compatibility note from the descriptor frontmatter.
        instructions: Descriptor body after the frontmatter.
        loaded_at: When the descriptor was loaded.
    """

    name: str
    description: str
    base_path: Path
    scripts_path: Optional[Path] = None
    descriptor_path: Optional[Path] = None
    license: str = ""
    compatibility: str = ""
    instructions: str = ""
    loaded_at: datetime = field(default_factory=_utcnow, compare=False)

    def __post_init__(self):
        # frozen: normalise paths through object.__setattr__
        object.__setattr__(self, "base_path", Path(self.base_path))
        scripts = Path(self.scripts_path) if self.scripts_path else self.base_path / SCRIPTS_DIR
        object.__setattr__(self, "scripts_path", scripts)
        descriptor = (
            Path(self.descriptor_path) if self.descriptor_path else self.base_path / SKILL_DESCRIPTOR
        )
        object.__setattr__(self, "descriptor_path", descriptor)

    def list_scripts(self) -> List[str]:
        """Names of the *.sh files in the scripts directory, sorted."""
        if not self.scripts_path.is_dir():
            return []
        return sorted(
            entry.name
            for entry in self.scripts_path.iterdir()
            if entry.is_file() and entry.suffix == ".sh"
        )


@dataclass
class ExecutionResult:
    """Result of executing a skill, directly or through an MCP server."""

    success: bool
    output: str = ""
    error: str = ""
    exit_code: int = 0
    duration_ms: float = 0.0
    timestamp: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "output": self.output,
            "error": self.error,
            "exit_code": self.exit_code,
            "duration_ms": self.duration_ms,
            "timestamp": self.timestamp.isoformat(),
        }
