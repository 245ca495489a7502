"""Skill registry - concurrency-safe name to Skill mapping."""

import threading
from typing import Dict, List

from opskills.errors import SkillNotFoundError
from opskills.skill.types import Skill


class SkillRegistry:
    """Registered skills, filled at startup and read concurrently afterwards."""

    def __init__(self):
        self._skills: Dict[str, Skill] = {}
        self._lock = threading.Lock()

    def register(self, skill: Skill) -> None:
        """Register a skill, replacing any previous skill of the same name.

        Raises:
            ValueError: If skill is None or has an empty name.
        """
        if skill is None:
            raise ValueError("cannot register nil skill")
        if not skill.name:
            raise ValueError("skill name cannot be empty")

        with self._lock:
            self._skills[skill.name] = skill

    def get(self, name: str) -> Skill:
        """Get a skill by name.

        Raises:
            SkillNotFoundError: If no skill has that name.
        """
        with self._lock:
            skill = self._skills.get(name)
        if skill is None:
            raise SkillNotFoundError(name)
        return skill

    def list(self) -> List[Skill]:
        """All skills, ordered by name."""
        with self._lock:
            return [self._skills[name] for name in sorted(self._skills)]

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._skills)

    def exists(self, name: str) -> bool:
        with self._lock:
            return name in self._skills

    def count(self) -> int:
        with self._lock:
            return len(self._skills)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.exists(name)

    def __len__(self) -> int:
        return self.count()
