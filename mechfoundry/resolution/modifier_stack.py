"""
Roll modifier stacking.

The modifier on an action roll is built in a fixed order:

    skill level + link modifiers + injury + fatigue + caller modifier
    + equipment effects (+ active skill effects for skill checks)

followed by any situational adjustments the combat resolvers add (cover,
range, recoil...). The order only matters for the displayed breakdown.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional
import logging

from mechfoundry.character.attribute_engine import AttributeDerivationEngine, DerivedStats
from mechfoundry.character.item_effects import EffectSource, ItemEffectsCalculator, StackedModifiers
from mechfoundry.character.progression import SkillProgression
from mechfoundry.config import EngineConfig
from mechfoundry.data_models import (
    ActionScope,
    CharacterSnapshot,
    InsufficientResourceError,
    Skill,
    round_half_up,
)


logger = logging.getLogger(__name__)


MAX_LINKED_ATTRIBUTES = 2


class EdgeTiming(str, Enum):
    """When edge is burned relative to the roll."""
    BEFORE_ROLL = "before_roll"  # +2 per point
    AFTER_ROLL = "after_roll"    # +1 per point


EDGE_MULTIPLIERS: dict[EdgeTiming, int] = {
    EdgeTiming.BEFORE_ROLL: 2,
    EdgeTiming.AFTER_ROLL: 1,
}


@dataclass
class ModifierComponent:
    """A labelled contribution to a roll modifier."""
    label: str
    value: int


@dataclass
class ModifierBreakdown:
    """Every component of a roll modifier, in stacking order."""
    skill_name: Optional[str]
    skill_level: int
    link_modifier: int
    injury_modifier: int
    fatigue_modifier: int
    caller_modifier: int
    equipment_modifier: int
    target_number: int
    effect_modifier: int = 0
    skill_found: bool = True
    situational: list[ModifierComponent] = field(default_factory=list)
    equipment_sources: list[EffectSource] = field(default_factory=list)

    def add_situational(self, label: str, value: int) -> None:
        """Append a situational adjustment; zero values are skipped."""
        if value:
            self.situational.append(ModifierComponent(label, value))

    def components(self) -> list[ModifierComponent]:
        """All components in stacking order, including zeros for the fixed ones."""
        fixed = [
            ModifierComponent("skill", self.skill_level),
            ModifierComponent("link", self.link_modifier),
            ModifierComponent("injury", self.injury_modifier),
            ModifierComponent("fatigue", self.fatigue_modifier),
            ModifierComponent("modifier", self.caller_modifier),
            ModifierComponent("equipment", self.equipment_modifier),
        ]
        if self.effect_modifier:
            fixed.append(ModifierComponent("active effects", self.effect_modifier))
        return fixed + list(self.situational)

    @property
    def total(self) -> int:
        return sum(c.value for c in self.components())


@dataclass
class EdgeBurn:
    """Roll modifier bought by burning edge."""
    points: int
    timing: EdgeTiming
    modifier: int
    edge_remaining: int


class ModifierStackEngine:
    """Builds roll modifiers from a snapshot and its derived stats."""

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        derivation_engine: Optional[AttributeDerivationEngine] = None,
    ):
        self.config = config or EngineConfig()
        self.derivation_engine = derivation_engine or AttributeDerivationEngine(self.config)

    # =========================================================================
    # SKILL LEVELS
    # =========================================================================

    @staticmethod
    def skill_level(experience: int) -> int:
        """Skill level for invested experience (-1 = untrained)."""
        return SkillProgression.level_for_experience(experience)

    @staticmethod
    def active_effect_skill_modifier(level: int, stacked: Optional[StackedModifiers]) -> int:
        """
        Modifier from persistent skill effects.

        Additive values add directly; multipliers scale the skill level and
        contribute the difference.
        """
        if stacked is None or stacked.is_empty:
            return 0
        modifier = stacked.additive
        if stacked.multiplicative:
            scaled = float(level)
            for factor in stacked.multiplicative:
                scaled *= factor
            modifier += round_half_up(scaled) - level
        return round_half_up(modifier)

    # =========================================================================
    # MODIFIER STACKS
    # =========================================================================

    def skill_check_modifiers(
        self,
        snapshot: CharacterSnapshot,
        skill_name: str,
        caller_modifier: int = 0,
        derived: Optional[DerivedStats] = None,
    ) -> ModifierBreakdown:
        """
        Modifier stack for a plain skill check.

        Args:
            snapshot: Character making the check
            skill_name: Skill rolled
            caller_modifier: Extra modifier supplied by the caller
            derived: Pre-computed derived stats for the same snapshot

        Returns:
            ModifierBreakdown including item skill bonuses and active effects
        """
        derived = derived or self.derivation_engine.derive(snapshot)
        skill = snapshot.get_skill(skill_name)
        breakdown = self._base_stack(snapshot, derived, skill, skill_name, caller_modifier)

        equipment = ItemEffectsCalculator.skill_modifier(snapshot, skill_name)
        breakdown.equipment_modifier = round_half_up(equipment.total)
        breakdown.equipment_sources = equipment.sources

        if skill is not None:
            stacked = derived.skill_effect_modifiers.get(skill.name.lower())
            breakdown.effect_modifier = self.active_effect_skill_modifier(breakdown.skill_level, stacked)
        return breakdown

    def combat_modifiers(
        self,
        snapshot: CharacterSnapshot,
        skill_name: Optional[str],
        scope: ActionScope,
        weapon_id: Optional[str] = None,
        caller_modifier: int = 0,
        derived: Optional[DerivedStats] = None,
    ) -> ModifierBreakdown:
        """
        Modifier stack for an attack roll.

        Equipment effects are the attack bonuses whose scope matches; an
        attached-item-only bonus counts only when its item is the weapon.
        """
        derived = derived or self.derivation_engine.derive(snapshot)
        skill = snapshot.get_skill(skill_name)
        breakdown = self._base_stack(snapshot, derived, skill, skill_name, caller_modifier)

        equipment = ItemEffectsCalculator.combat_modifier(snapshot, scope, weapon_id)
        breakdown.equipment_modifier = round_half_up(equipment.total)
        breakdown.equipment_sources = equipment.sources
        return breakdown

    def damage_bonus(
        self,
        snapshot: CharacterSnapshot,
        scope: ActionScope,
        weapon_id: Optional[str] = None,
    ) -> int:
        """Damage bonus from equipped items for an attack of this scope."""
        return round_half_up(ItemEffectsCalculator.damage_modifier(snapshot, scope, weapon_id).total)

    def _base_stack(
        self,
        snapshot: CharacterSnapshot,
        derived: DerivedStats,
        skill: Optional[Skill],
        skill_name: Optional[str],
        caller_modifier: int,
    ) -> ModifierBreakdown:
        if skill is None:
            # No matching skill: roll on the bare modifiers against the default TN
            if skill_name:
                logger.debug(f"{snapshot.name or snapshot.character_id} has no skill '{skill_name}'")
            skill_level = 0
            link = 0
            target_number = self.config.default_target_number
        else:
            skill_level = SkillProgression.skill_level(skill)
            link = sum(
                derived.link_mod(key)
                for key in skill.linked_attributes[:MAX_LINKED_ATTRIBUTES]
                if key in derived.attributes
            )
            target_number = skill.target_number or self.config.default_target_number

        return ModifierBreakdown(
            skill_name=skill.name if skill else skill_name,
            skill_level=skill_level,
            link_modifier=link,
            injury_modifier=derived.injury_modifier,
            fatigue_modifier=derived.fatigue_modifier,
            caller_modifier=caller_modifier,
            equipment_modifier=0,
            target_number=target_number,
            skill_found=skill is not None,
        )

    # =========================================================================
    # EDGE
    # =========================================================================

    def burn_edge(
        self,
        snapshot: CharacterSnapshot,
        points: int,
        timing: EdgeTiming,
        derived: Optional[DerivedStats] = None,
    ) -> EdgeBurn:
        """
        Work out the modifier for burning edge points on a roll.

        Args:
            snapshot: Character burning edge
            points: Edge points to burn
            timing: Before the roll (+2 each) or after it (+1 each)
            derived: Pre-computed derived stats for the same snapshot

        Returns:
            EdgeBurn describing the modifier; the caller records the burn

        Raises:
            InsufficientResourceError: More points than current edge
        """
        derived = derived or self.derivation_engine.derive(snapshot)
        points = max(0, points)
        available = max(0, derived.edge_current)
        if points > available:
            raise InsufficientResourceError("edge", points, available)

        modifier = points * EDGE_MULTIPLIERS[timing]
        logger.info(
            f"{snapshot.name or snapshot.character_id} burns {points} edge "
            f"{timing.value.replace('_', ' ')} for {modifier:+d}"
        )
        return EdgeBurn(
            points=points,
            timing=timing,
            modifier=modifier,
            edge_remaining=available - points,
        )
