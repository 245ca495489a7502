"""SKILL.md loader.

A skill lives in its own directory:

    skills/kubekey/
        SKILL.md          # --- YAML frontmatter --- then instructions
        scripts/*.sh
        examples/*        # optional config examples, served as resources

Frontmatter keys: name, description, license, compatibility.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from opskills.constants import SKILL_DESCRIPTOR
from opskills.errors import SkillLoadError, SkillNotFoundError
from opskills.skill.registry import SkillRegistry
from opskills.skill.types import Skill

logger = logging.getLogger(__name__)


def extract_frontmatter(content: str) -> Tuple[str, str]:
    """Split a descriptor into (frontmatter, body).

    Raises:
        SkillLoadError: If the content does not open with a --- block or the
            block is never closed.
    """
    lines = content.split("\n")
    if not lines or lines[0].rstrip() != "---":
        raise SkillLoadError("SKILL.md must start with YAML frontmatter (---)")

    for index in range(1, len(lines)):
        if lines[index].rstrip() == "---":
            frontmatter = "\n".join(lines[1:index])
            body = "\n".join(lines[index + 1:])
            return frontmatter, body

    raise SkillLoadError("invalid frontmatter format: closing --- not found")


def parse_skill_file(path: Path) -> Skill:
    """Parse a SKILL.md file into a Skill.

    Raises:
        SkillLoadError: If the file cannot be read or its metadata is invalid.
    """
    path = Path(path)
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise SkillLoadError(f"failed to read {path}: {e}", str(path)) from e

    try:
        frontmatter, body = extract_frontmatter(content)
    except SkillLoadError as e:
        raise SkillLoadError(f"{path}: {e.message}", str(path)) from e

    try:
        metadata: Any = yaml.safe_load(frontmatter) or {}
    except yaml.YAMLError as e:
        raise SkillLoadError(f"failed to parse frontmatter YAML in {path}: {e}", str(path)) from e

    if not isinstance(metadata, dict):
        raise SkillLoadError(f"frontmatter in {path} must be a mapping", str(path))

    name = metadata.get("name")
    if not name:
        raise SkillLoadError(f"missing skill name in {path}", str(path))

    base_path = path.parent
    return Skill(
        name=str(name),
        description=str(metadata.get("description") or ""),
        base_path=base_path,
        descriptor_path=path,
        license=str(metadata.get("license") or ""),
        compatibility=str(metadata.get("compatibility") or ""),
        instructions=body.strip(),
    )


class SkillLoader:
    """Loads skills from a skills directory."""

    def __init__(self, skills_dir: Path):
        self.skills_dir = Path(skills_dir)

    def load_all(self) -> List[Skill]:
        """Load every SKILL.md under the skills directory.

        Descriptors that fail to parse are logged and skipped.

        Raises:
            SkillLoadError: If the skills directory does not exist.
        """
        if not self.skills_dir.is_dir():
            raise SkillLoadError(f"skills directory does not exist: {self.skills_dir}")

        skills: List[Skill] = []
        for path in sorted(self.skills_dir.rglob(SKILL_DESCRIPTOR)):
            try:
                skills.append(parse_skill_file(path))
            except SkillLoadError as e:
                logger.warning(f"Failed to load skill from {path}: {e.message}")
        return skills

    def load_skill(self, name: str) -> Skill:
        """Load one skill by directory name.

        Raises:
            SkillNotFoundError: If <skills_dir>/<name>/SKILL.md does not exist.
        """
        path = self.skills_dir / name / SKILL_DESCRIPTOR
        if not path.is_file():
            raise SkillNotFoundError(name)
        return parse_skill_file(path)

    def load_registry(self, names: Optional[List[str]] = None) -> SkillRegistry:
        """Build a registry from all skills, or only the named ones."""
        registry = SkillRegistry()
        skills = [self.load_skill(name) for name in names] if names else self.load_all()
        for skill in skills:
            registry.register(skill)
        logger.info(f"Loaded {registry.count()} skill(s) from {self.skills_dir}")
        return registry


def skill_summary(skill: Skill) -> Dict[str, Any]:
    """Plain-dict view of a skill for CLI output."""
    return {
        "name": skill.name,
        "description": skill.description,
        "base_path": str(skill.base_path),
        "scripts": skill.list_scripts(),
    }
