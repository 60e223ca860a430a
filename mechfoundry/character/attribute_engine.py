"""
Attribute derivation.

Turns a character snapshot into attribute totals, link modifiers, damage
and fatigue capacities, movement rates, encumbrance and the injury and
fatigue roll penalties. Derivation is a pure function of the snapshot:
nothing is cached and the snapshot is never modified.
"""

from dataclasses import dataclass, field
from typing import Optional
import logging
import math

from mechfoundry.character.item_effects import ItemEffectsCalculator, StackedModifiers, VisionProfile
from mechfoundry.character.progression import SkillProgression
from mechfoundry.config import EngineConfig
from mechfoundry.data_models import (
    AttributeKey,
    CharacterSnapshot,
    EffectType,
    EncumbranceLevel,
    ModifierTargetType,
    MovementMode,
    WoundType,
    round_half_up,
)


logger = logging.getLogger(__name__)


# =============================================================================
# RULE TABLES
# =============================================================================


# Carried mass in kg at which each encumbrance level starts, by STR
# Format: STR: (encumbered, very encumbered, overloaded)
ENCUMBRANCE_THRESHOLDS: dict[int, tuple[float, float, float]] = {
    0: (0.1, 0.5, 1),
    1: (5, 10, 15),
    2: (10, 20, 25),
    3: (15, 30, 50),
    4: (20, 40, 75),
    5: (30, 60, 100),
    6: (40, 80, 125),
    7: (55, 110, 150),
    8: (70, 140, 200),
    9: (85, 170, 250),
    10: (100, 200, 300),
}

ENCUMBRANCE_EFFECTS: dict[EncumbranceLevel, str] = {
    EncumbranceLevel.UNENCUMBERED: "",
    EncumbranceLevel.ENCUMBERED: "Movement ÷2, +1 fatigue if sprint/melee",
    EncumbranceLevel.VERY_ENCUMBERED: "Movement ÷3, +1 fatigue/turn",
    EncumbranceLevel.OVERLOADED: "Movement = 1 (crawl only)",
}

ENCUMBRANCE_DIVISORS: dict[EncumbranceLevel, int] = {
    EncumbranceLevel.UNENCUMBERED: 1,
    EncumbranceLevel.ENCUMBERED: 2,
    EncumbranceLevel.VERY_ENCUMBERED: 3,
}


@dataclass
class WoundDefinition:
    capacity_penalty: int = 1
    attribute_penalties: dict[AttributeKey, int] = field(default_factory=dict)
    movement_multiplier: float = 1.0


WOUND_DEFINITIONS: dict[WoundType, WoundDefinition] = {
    WoundType.DAZED: WoundDefinition(),
    WoundType.CONCUSSION: WoundDefinition(
        attribute_penalties={AttributeKey.INT: -2, AttributeKey.WIL: -2},
    ),
    WoundType.HEMORRHAGE: WoundDefinition(),
    WoundType.TRAUMATIC_IMPACT: WoundDefinition(),
    WoundType.NERVE_DAMAGE: WoundDefinition(
        attribute_penalties={AttributeKey.DEX: -2, AttributeKey.RFL: -2},
    ),
    WoundType.SEVERE_STRAIN: WoundDefinition(movement_multiplier=0.5),
    WoundType.SEVERELY_WOUNDED: WoundDefinition(capacity_penalty=3),
}

CRITICAL_INJURY_FRACTION = 0.75


def link_modifier(total: int) -> int:
    """Link attribute modifier for an attribute total."""
    if total <= 1:
        return -2
    if total <= 3:
        return -1
    if total <= 6:
        return 0
    if total <= 9:
        return 1
    return 2


# =============================================================================
# RESULT TYPES
# =============================================================================


@dataclass
class AttributeTotals:
    """Derived values for one attribute."""
    base: int
    modifier: int
    total: int
    link_mod: int
    effect_mod: float = 0   # additive effect contribution
    wound_mod: int = 0      # already included in link_mod


@dataclass
class WoundEffects:
    """Combined effect of all current wounds."""
    locked_damage: int = 0
    locked_fatigue: int = 0
    attribute_modifiers: dict[AttributeKey, int] = field(default_factory=dict)
    movement_multiplier: float = 1.0
    wound_count: int = 0


@dataclass
class EncumbranceResult:
    """Encumbrance level for the carried mass."""
    level: EncumbranceLevel
    carried_mass: float
    thresholds: tuple[float, float, float]
    effects: str = ""

    @property
    def label(self) -> str:
        return self.level.value.replace("_", " ").title()

    def exertion_fatigue(self, sprinting_or_melee: bool = False) -> int:
        """Extra fatigue per turn caused by the load."""
        if self.level in (EncumbranceLevel.VERY_ENCUMBERED, EncumbranceLevel.OVERLOADED):
            return 1
        if self.level == EncumbranceLevel.ENCUMBERED and sprinting_or_melee:
            return 1
        return 0


@dataclass
class MovementRates:
    """Movement in meters per turn."""
    walk: int = 0
    run: int = 0
    sprint: int = 0
    climb: int = 0
    crawl: int = 0
    swim: int = 0

    def get(self, mode: MovementMode) -> int:
        return getattr(self, mode.value)

    def as_dict(self) -> dict[MovementMode, int]:
        return {mode: self.get(mode) for mode in MovementMode}


@dataclass
class DerivedStats:
    """Everything derived from a character snapshot."""
    attributes: dict[AttributeKey, AttributeTotals]
    base_damage_capacity: int
    base_fatigue_capacity: int
    damage_capacity: int
    fatigue_capacity: int
    movement: MovementRates
    encumbrance: EncumbranceResult
    injury_modifier: int
    fatigue_modifier: int
    critical_threshold: int
    wound_effects: WoundEffects
    edge_current: int
    is_dead: bool = False
    is_comatose: bool = False
    is_dying: bool = False
    skill_effect_modifiers: dict[str, StackedModifiers] = field(default_factory=dict)
    vision: VisionProfile = field(default_factory=VisionProfile)

    def total(self, key: AttributeKey) -> int:
        return self.attributes[key].total

    def link_mod(self, key: AttributeKey) -> int:
        return self.attributes[key].link_mod

    @property
    def encumbrance_level(self) -> EncumbranceLevel:
        return self.encumbrance.level


# =============================================================================
# CALCULATORS
# =============================================================================


class EncumbranceCalculator:
    """Carried mass and encumbrance level against STR."""

    @classmethod
    def carried_mass(cls, snapshot: CharacterSnapshot) -> float:
        """Mass of everything carried or equipped; stored items and vehicles excluded."""
        total = 0.0
        for item in snapshot.items:
            if not item.counts_toward_carried_mass:
                continue
            try:
                total += float(item.mass or 0)
            except (TypeError, ValueError):
                continue
        return total

    @classmethod
    def thresholds_for_strength(cls, strength: int) -> tuple[float, float, float]:
        """Encumbered, very encumbered and overloaded thresholds for a STR total."""
        strength = max(0, strength)
        if strength <= 10:
            return ENCUMBRANCE_THRESHOLDS[strength]
        return (strength * 15, strength * 30, strength * 45)

    @classmethod
    def calculate(cls, strength: int, carried_mass: float) -> EncumbranceResult:
        """
        Determine the encumbrance level for a carried mass.

        Args:
            strength: STR total
            carried_mass: Carried mass in kg

        Returns:
            EncumbranceResult with the level reached
        """
        encumbered, very_encumbered, overloaded = cls.thresholds_for_strength(strength)

        if carried_mass >= overloaded:
            level = EncumbranceLevel.OVERLOADED
        elif carried_mass >= very_encumbered:
            level = EncumbranceLevel.VERY_ENCUMBERED
        elif carried_mass >= encumbered:
            level = EncumbranceLevel.ENCUMBERED
        else:
            level = EncumbranceLevel.UNENCUMBERED

        return EncumbranceResult(
            level=level,
            carried_mass=carried_mass,
            thresholds=(encumbered, very_encumbered, overloaded),
            effects=ENCUMBRANCE_EFFECTS[level],
        )


class MovementCalculator:
    """Movement rates from STR, RFL, movement skills, load and wounds."""

    @classmethod
    def base_rates(cls, strength: int, reflexes: int, snapshot: CharacterSnapshot) -> MovementRates:
        walk = strength + reflexes
        run = 10 + strength + reflexes + SkillProgression.movement_skill_level(snapshot, "running")
        quarter = walk // 4
        return MovementRates(
            walk=walk,
            run=run,
            sprint=run * 2,
            climb=quarter + SkillProgression.movement_skill_level(snapshot, "climbing"),
            crawl=quarter,
            swim=quarter + SkillProgression.movement_skill_level(snapshot, "swimming"),
        )

    @classmethod
    def apply_encumbrance(cls, rates: MovementRates, level: EncumbranceLevel) -> MovementRates:
        if level == EncumbranceLevel.OVERLOADED:
            return MovementRates(walk=1, run=1, sprint=1, climb=1, crawl=1, swim=1)
        divisor = ENCUMBRANCE_DIVISORS[level]
        return MovementRates(**{mode.value: rates.get(mode) // divisor for mode in MovementMode})

    @classmethod
    def apply_wounds(cls, rates: MovementRates, multiplier: float) -> MovementRates:
        if multiplier >= 1:
            return rates
        adjusted = {mode.value: math.floor(rates.get(mode) * multiplier) for mode in MovementMode}
        adjusted["crawl"] = max(1, adjusted["crawl"])
        return MovementRates(**adjusted)

    @classmethod
    def apply_effects(cls, rates: MovementRates, modifiers: dict[str, StackedModifiers]) -> MovementRates:
        """Apply movement effects: additive then multiplicative, rounded, floored at 0."""
        adjusted = {}
        for mode in MovementMode:
            value = rates.get(mode)
            stacked = modifiers.get(mode.value)
            if stacked is not None and not stacked.is_empty:
                value = max(0, round_half_up(stacked.apply(value)))
            adjusted[mode.value] = value
        return MovementRates(**adjusted)


def calculate_wound_effects(snapshot: CharacterSnapshot) -> WoundEffects:
    """Combine every current wound; attribute penalties take the worst, not the sum."""
    effects = WoundEffects(wound_count=len(snapshot.wounds))
    for wound in snapshot.wounds:
        definition = WOUND_DEFINITIONS.get(wound.wound_type)
        if definition is None:
            continue
        effects.locked_damage += definition.capacity_penalty
        effects.locked_fatigue += definition.capacity_penalty
        for key, penalty in definition.attribute_penalties.items():
            current = effects.attribute_modifiers.get(key)
            if current is None or penalty < current:
                effects.attribute_modifiers[key] = penalty
        effects.movement_multiplier *= definition.movement_multiplier
    return effects


# =============================================================================
# ENGINE
# =============================================================================


class AttributeDerivationEngine:
    """
    Derives all computed character values from a snapshot.

    Order of derivation:
    1. Attribute totals (capped base + modifier, then effects)
    2. Link modifiers, with wound penalties folded in
    3. Capacities reduced by wound-locked points
    4. Encumbrance and movement (load, wounds, then movement effects)
    5. Injury and fatigue roll penalties
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()

    def derive(self, snapshot: CharacterSnapshot) -> DerivedStats:
        """
        Compute DerivedStats for a snapshot.

        Args:
            snapshot: Character to derive; not modified

        Returns:
            Fresh DerivedStats
        """
        wound_effects = calculate_wound_effects(snapshot)
        attributes = self.attribute_totals(snapshot, wound_effects)

        strength = attributes[AttributeKey.STR].total
        body = attributes[AttributeKey.BOD].total
        reflexes = attributes[AttributeKey.RFL].total
        willpower = attributes[AttributeKey.WIL].total

        base_damage_capacity = body * 2
        base_fatigue_capacity = willpower * 2
        damage_capacity = max(0, base_damage_capacity - wound_effects.locked_damage)
        fatigue_capacity = max(0, base_fatigue_capacity - wound_effects.locked_fatigue)

        encumbrance = EncumbranceCalculator.calculate(
            strength, EncumbranceCalculator.carried_mass(snapshot)
        )
        movement = self.movement_rates(snapshot, strength, reflexes, encumbrance, wound_effects)

        damage = snapshot.condition.damage
        fatigue = snapshot.condition.fatigue

        derived = DerivedStats(
            attributes=attributes,
            base_damage_capacity=base_damage_capacity,
            base_fatigue_capacity=base_fatigue_capacity,
            damage_capacity=damage_capacity,
            fatigue_capacity=fatigue_capacity,
            movement=movement,
            encumbrance=encumbrance,
            injury_modifier=self.injury_modifier(damage, damage_capacity),
            fatigue_modifier=self.fatigue_modifier(fatigue, willpower),
            critical_threshold=math.ceil(damage_capacity * CRITICAL_INJURY_FRACTION),
            wound_effects=wound_effects,
            edge_current=attributes[AttributeKey.EDG].total - snapshot.edge_burned,
            is_dead=damage_capacity <= 0,
            is_comatose=fatigue_capacity <= 0,
            is_dying=damage_capacity > 0 and damage > damage_capacity,
            skill_effect_modifiers=ItemEffectsCalculator.persistent_modifiers(
                snapshot, ModifierTargetType.SKILL
            ),
            vision=ItemEffectsCalculator.vision(snapshot),
        )
        logger.debug(
            f"Derived {snapshot.name or snapshot.character_id}: "
            f"capacity {damage_capacity}/{fatigue_capacity}, "
            f"injury {derived.injury_modifier}, fatigue {derived.fatigue_modifier}, "
            f"{encumbrance.level.value}"
        )
        return derived

    def attribute_totals(
        self,
        snapshot: CharacterSnapshot,
        wound_effects: Optional[WoundEffects] = None,
    ) -> dict[AttributeKey, AttributeTotals]:
        """Totals and link modifiers for every attribute."""
        if wound_effects is None:
            wound_effects = calculate_wound_effects(snapshot)

        persistent = ItemEffectsCalculator.persistent_modifiers(snapshot, ModifierTargetType.ATTRIBUTE)
        item_bonuses = ItemEffectsCalculator.targeted_bonuses(snapshot, EffectType.ATTRIBUTE_BONUS)

        totals = {}
        for key in AttributeKey:
            score = snapshot.get_attribute(key)
            capped = min(score.base + score.modifier, self.config.attribute_cap)

            stacked = StackedModifiers()
            if key.value in persistent:
                stacked.additive += persistent[key.value].additive
                stacked.multiplicative.extend(persistent[key.value].multiplicative)
            stacked.additive += item_bonuses.get(key.value, 0.0)

            total = capped
            if not stacked.is_empty:
                total = round_half_up(stacked.apply(capped))
            total = max(0, int(total))

            wound_mod = wound_effects.attribute_modifiers.get(key, 0)
            totals[key] = AttributeTotals(
                base=score.base,
                modifier=score.modifier,
                total=total,
                link_mod=link_modifier(total) + wound_mod,
                effect_mod=stacked.additive,
                wound_mod=wound_mod,
            )
        return totals

    def movement_rates(
        self,
        snapshot: CharacterSnapshot,
        strength: int,
        reflexes: int,
        encumbrance: EncumbranceResult,
        wound_effects: WoundEffects,
    ) -> MovementRates:
        rates = MovementCalculator.base_rates(strength, reflexes, snapshot)
        rates = MovementCalculator.apply_encumbrance(rates, encumbrance.level)
        rates = MovementCalculator.apply_wounds(rates, wound_effects.movement_multiplier)

        modifiers = ItemEffectsCalculator.persistent_modifiers(snapshot, ModifierTargetType.MOVEMENT)
        for mode, bonus in ItemEffectsCalculator.targeted_bonuses(snapshot, EffectType.MOVEMENT_BONUS).items():
            modifiers.setdefault(mode, StackedModifiers()).additive += bonus
        return MovementCalculator.apply_effects(rates, modifiers)

    @staticmethod
    def injury_modifier(damage: int, damage_capacity: int) -> int:
        """-1 per full quarter of damage capacity taken, never positive."""
        capacity = damage_capacity if damage_capacity > 0 else 1
        modifier = -math.floor((damage / capacity) * 4)
        return min(0, modifier)

    @staticmethod
    def fatigue_modifier(fatigue: int, willpower: int) -> int:
        """-1 per point of fatigue above WIL."""
        return -max(0, fatigue - willpower)
