"""
Skill progression.

Skills advance on the standard experience rate: each level needs a fixed
cumulative amount of invested experience.
"""

from typing import Optional

from mechfoundry.data_models import CharacterSnapshot, Skill


# Cumulative experience needed for levels 0 through 10
SKILL_XP_COSTS: list[int] = [20, 30, 50, 80, 120, 170, 230, 300, 380, 470, 570]

UNTRAINED_LEVEL = -1
MAX_SKILL_LEVEL = len(SKILL_XP_COSTS) - 1


class SkillProgression:
    """Converts invested experience to skill levels."""

    @classmethod
    def level_for_experience(cls, experience: int) -> int:
        """
        Get the skill level bought by an amount of experience.

        Args:
            experience: Experience invested; negative values count as none

        Returns:
            Highest level whose cost is covered, or -1 (untrained)
        """
        xp = max(0, int(experience or 0))
        for level in range(MAX_SKILL_LEVEL, -1, -1):
            if xp >= SKILL_XP_COSTS[level]:
                return level
        return UNTRAINED_LEVEL

    @classmethod
    def experience_for_level(cls, level: int) -> int:
        """Experience needed to reach a level (0 for untrained)."""
        if level < 0:
            return 0
        return SKILL_XP_COSTS[min(level, MAX_SKILL_LEVEL)]

    @classmethod
    def experience_to_next_level(cls, experience: int) -> Optional[int]:
        """Experience still needed for the next level, or None at the cap."""
        level = cls.level_for_experience(experience)
        if level >= MAX_SKILL_LEVEL:
            return None
        return SKILL_XP_COSTS[level + 1] - max(0, experience)

    @classmethod
    def skill_level(cls, skill: Optional[Skill]) -> int:
        if skill is None:
            return UNTRAINED_LEVEL
        return cls.level_for_experience(skill.experience)

    @classmethod
    def movement_skill_level(cls, snapshot: CharacterSnapshot, fragment: str) -> int:
        """
        Level of the first skill whose name contains `fragment`.

        Movement skills are matched loosely ("Running", "Climbing (Rock)").
        A character without the skill gets 0.
        """
        fragment = fragment.lower()
        for skill in snapshot.skills:
            if fragment in skill.name.lower():
                return cls.level_for_experience(skill.experience)
        return 0
