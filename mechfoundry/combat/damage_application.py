"""
Planning the effect of damage on a character's condition.

Resolvers report damage after armor; this module works out what that
damage would do to the target's damage and fatigue tracks. It returns a
ConditionChange for the caller to persist and never touches the snapshot.
"""

from dataclasses import dataclass
from typing import Optional
import logging
import math

from mechfoundry.character.attribute_engine import AttributeDerivationEngine, DerivedStats
from mechfoundry.config import EngineConfig
from mechfoundry.data_models import AttributeKey, CharacterSnapshot, DiceRollService
from mechfoundry.resolution.dice_outcome import DiceOutcomeEvaluator, RollOutcome


logger = logging.getLogger(__name__)


BLEEDING_CHECK_TARGET_NUMBER = 12


@dataclass
class ConditionChange:
    """New condition values after damage; nothing has been applied yet."""
    character_id: str
    damage_taken: int
    fatigue_taken: int
    new_damage: int
    new_fatigue: int
    stunned: bool = False
    critically_injured: bool = False
    newly_critical: bool = False
    dying: bool = False
    unconscious: bool = False
    dead: bool = False
    excess_fatigue_damage: int = 0
    bleeding_check_required: bool = False
    absorbed: bool = False  # armor stopped everything

    @property
    def needs_consciousness_check(self) -> bool:
        return self.newly_critical and not self.dead


@dataclass
class BleedingCheck:
    roll: RollOutcome
    bleeding: bool


@dataclass
class FatigueRecovery:
    recovered: int
    new_fatigue: int


class DamageApplicationPlanner:
    """Works out condition changes from damage that got through armor."""

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        derivation_engine: Optional[AttributeDerivationEngine] = None,
        dice_evaluator: Optional[DiceOutcomeEvaluator] = None,
    ):
        self.config = config or EngineConfig()
        self.derivation_engine = derivation_engine or AttributeDerivationEngine(self.config)
        self.dice_evaluator = dice_evaluator or DiceOutcomeEvaluator(self.config)

    def plan_damage(
        self,
        snapshot: CharacterSnapshot,
        damage: int,
        subduing: bool = False,
        derived: Optional[DerivedStats] = None,
    ) -> ConditionChange:
        """
        Plan the condition change for damage after armor.

        Subduing damage goes to fatigue and stuns. Standard damage adds to
        the damage track plus 1 fatigue, stuns, and may cause critical
        injury, dying and a bleeding check. Fatigue at capacity knocks the
        character out, with the excess becoming standard damage; damage at
        capacity kills.

        Args:
            snapshot: Character taking the damage
            damage: Damage that got through armor
            subduing: Whether the damage is subduing
            derived: Pre-computed derived stats for the same snapshot

        Returns:
            ConditionChange
        """
        derived = derived or self.derivation_engine.derive(snapshot)
        condition = snapshot.condition
        damage = max(0, damage)

        change = ConditionChange(
            character_id=snapshot.character_id,
            damage_taken=0,
            fatigue_taken=0,
            new_damage=condition.damage,
            new_fatigue=condition.fatigue,
            stunned=condition.stunned,
            unconscious=condition.unconscious,
        )
        if damage == 0:
            change.absorbed = True
            return change

        if subduing:
            change.fatigue_taken = damage
            change.new_fatigue += damage
            change.stunned = True
        else:
            was_critical = condition.damage >= derived.critical_threshold
            change.damage_taken = damage
            change.fatigue_taken = 1
            change.new_damage += damage
            change.new_fatigue += 1
            change.stunned = True
            change.critically_injured = change.new_damage >= derived.critical_threshold
            change.newly_critical = change.critically_injured and not was_critical
            change.dying = change.new_damage > derived.damage_capacity
            bleed_threshold = math.ceil(derived.total(AttributeKey.BOD) / 2)
            change.bleeding_check_required = not condition.bleeding and damage >= bleed_threshold

        if change.new_damage >= derived.damage_capacity:
            change.dead = True
        elif change.new_fatigue >= derived.fatigue_capacity:
            change.unconscious = True
            excess = change.new_fatigue - derived.fatigue_capacity
            if excess > 0:
                change.excess_fatigue_damage = excess
                change.new_damage += excess
                change.new_fatigue = derived.fatigue_capacity
                change.dead = change.new_damage >= derived.damage_capacity

        logger.info(
            f"{snapshot.name or snapshot.character_id} takes {change.damage_taken} damage, "
            f"{change.fatigue_taken} fatigue -> {change.new_damage}/{derived.damage_capacity} damage, "
            f"{change.new_fatigue}/{derived.fatigue_capacity} fatigue"
            + (" (dead)" if change.dead else " (unconscious)" if change.unconscious else "")
        )
        return change

    def roll_bleeding_check(
        self,
        snapshot: CharacterSnapshot,
        roll_service: DiceRollService,
        derived: Optional[DerivedStats] = None,
    ) -> BleedingCheck:
        """BOD check against TN 12; failing (or fumbling) starts bleeding."""
        derived = derived or self.derivation_engine.derive(snapshot)
        modifier = derived.total(AttributeKey.BOD) + derived.injury_modifier + derived.fatigue_modifier
        roll = self.dice_evaluator.roll(modifier, BLEEDING_CHECK_TARGET_NUMBER, roll_service)
        bleeding = not roll.success
        if bleeding:
            logger.info(f"{snapshot.name or snapshot.character_id} starts bleeding")
        return BleedingCheck(roll=roll, bleeding=bleeding)

    def plan_fatigue_recovery(
        self,
        snapshot: CharacterSnapshot,
        derived: Optional[DerivedStats] = None,
    ) -> FatigueRecovery:
        """Fatigue recovered by resting: BOD points, not below zero."""
        derived = derived or self.derivation_engine.derive(snapshot)
        current = snapshot.condition.fatigue
        new_fatigue = max(0, current - derived.total(AttributeKey.BOD))
        return FatigueRecovery(recovered=current - new_fatigue, new_fatigue=new_fatigue)
