"""
Area effect attacks: grenades, mortars, rockets.

The attack roll gets a fixed bonus. A hit lands on the aim point; a miss
scatters in one of twelve clock directions by as many meters as the roll
missed by. Everyone within the blast radius (equal to the weapon's base
damage in meters) of the impact point takes damage that falls off by one
point per full meter from the center, and so does penetration.

Positions are in meters on a flat plane with +y pointing to 12 o'clock.
"""

from dataclasses import dataclass, field
from typing import Optional
import logging
import math

from mechfoundry.character.attribute_engine import DerivedStats
from mechfoundry.combat.armor_resolver import ArmorCalculation, ArmorDamageResolver, HitLocationResult
from mechfoundry.combat.combat_engine import AmmunitionUse, CombatActionResolver
from mechfoundry.config import EngineConfig
from mechfoundry.data_models import (
    ActionScope,
    CharacterSnapshot,
    DamageType,
    DiceRollService,
)
from mechfoundry.resolution.dice_outcome import DiceOutcomeEvaluator, RollOutcome
from mechfoundry.resolution.modifier_stack import ModifierBreakdown, ModifierStackEngine


logger = logging.getLogger(__name__)


CLOCK_POSITIONS = 12
DEGREES_PER_HOUR = 360 // CLOCK_POSITIONS
AREA_FATIGUE_DAMAGE = 1


@dataclass
class Position:
    """A point on the battlefield, in meters."""
    x: float = 0.0
    y: float = 0.0

    def distance_to(self, other: "Position") -> float:
        return math.hypot(self.x - other.x, self.y - other.y)


@dataclass
class AreaTarget:
    """A character that may be caught in the blast."""
    snapshot: CharacterSnapshot
    position: Position


@dataclass
class ScatterResult:
    """Where a missed area attack drifts."""
    clock_direction: int
    distance_meters: int
    heading_degrees: int

    @property
    def label(self) -> str:
        return f"{self.clock_direction} o'clock"

    def offset(self) -> tuple[float, float]:
        radians = math.radians(self.heading_degrees)
        return math.sin(radians) * self.distance_meters, math.cos(radians) * self.distance_meters


@dataclass
class AreaAttackRequest:
    weapon_id: Optional[str]
    aim_point: Position
    targets: list[AreaTarget] = field(default_factory=list)
    caller_modifier: int = 0
    indirect_fire: bool = False
    spotter: bool = False


@dataclass
class AreaTargetResult:
    """Damage to one character caught in the blast."""
    target_id: str
    name: str
    distance: float
    meter_distance: int
    effective_damage: int
    effective_penetration: int
    standard_damage: int
    fatigue_damage: int
    hit_location: HitLocationResult
    armor: ArmorCalculation

    @property
    def applied_damage(self) -> int:
        return self.armor.final_damage


@dataclass
class AreaEffectResult:
    """Full result of an area attack."""
    attacker_id: str
    weapon_id: Optional[str]
    weapon_name: str
    roll: RollOutcome
    modifiers: ModifierBreakdown
    blast_radius: int
    base_damage: int
    armor_penetration: int
    damage_type: DamageType
    aim_point: Position
    impact_point: Position
    scatter: Optional[ScatterResult] = None
    ammunition: Optional[AmmunitionUse] = None
    targets: list[AreaTargetResult] = field(default_factory=list)

    @property
    def scattered(self) -> bool:
        return self.scatter is not None


class AreaEffectResolver:
    """Resolves area attacks, scatter and blast falloff."""

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        dice_evaluator: Optional[DiceOutcomeEvaluator] = None,
        modifier_engine: Optional[ModifierStackEngine] = None,
        armor_resolver: Optional[ArmorDamageResolver] = None,
    ):
        self.config = config or EngineConfig()
        self.dice_evaluator = dice_evaluator or DiceOutcomeEvaluator(self.config)
        self.modifier_engine = modifier_engine or ModifierStackEngine(self.config)
        self.armor_resolver = armor_resolver or ArmorDamageResolver()
        # Shared weapon profile and ammunition rules
        self._weapons = CombatActionResolver(
            self.config, self.dice_evaluator, self.modifier_engine, self.armor_resolver
        )

    # =========================================================================
    # SCATTER AND FALLOFF
    # =========================================================================

    @staticmethod
    def scatter(margin_of_success: int, roll_service: DiceRollService) -> ScatterResult:
        """
        Roll scatter for a missed attack.

        A d12 picks the clock direction (12 o'clock is 0 degrees, each hour
        30 degrees clockwise); the distance is the margin of failure.
        """
        clock = roll_service.roll(1, CLOCK_POSITIONS)[0]
        return ScatterResult(
            clock_direction=clock,
            distance_meters=abs(margin_of_success),
            heading_degrees=(clock % CLOCK_POSITIONS) * DEGREES_PER_HOUR,
        )

    @staticmethod
    def apply_scatter(aim_point: Position, scatter: Optional[ScatterResult]) -> Position:
        if scatter is None:
            return Position(aim_point.x, aim_point.y)
        dx, dy = scatter.offset()
        return Position(aim_point.x + dx, aim_point.y + dy)

    @staticmethod
    def falloff(base_damage: int, penetration: int, distance: float) -> tuple[int, int, int]:
        """
        Damage and penetration at a distance from the center.

        Returns:
            (damage, penetration, whole meters from center)
        """
        meters = math.floor(distance)
        return max(0, base_damage - meters), max(0, penetration - meters), meters

    # =========================================================================
    # RESOLUTION
    # =========================================================================

    def resolve(
        self,
        attacker: CharacterSnapshot,
        request: AreaAttackRequest,
        roll_service: DiceRollService,
        derived: Optional[DerivedStats] = None,
    ) -> AreaEffectResult:
        """
        Resolve an area attack against every target near the impact point.

        Args:
            attacker: Attacking character
            request: Weapon, aim point, candidate targets and fire mode
            roll_service: Source of all dice
            derived: Pre-computed derived stats for the attacker

        Returns:
            AreaEffectResult with targets ordered by distance from impact

        Raises:
            InsufficientResourceError: Weapon has no round loaded
        """
        item = self._weapons.weapon_item(attacker, request.weapon_id)
        stats = self._weapons.effective_weapon_stats(attacker, item)
        ammunition = self._weapons.check_ammunition(attacker, item, 1)

        derived = derived or self.modifier_engine.derivation_engine.derive(attacker)
        weapon_id = item.item_id if item is not None else None
        breakdown = self.modifier_engine.combat_modifiers(
            attacker, stats.skill_name, ActionScope.RANGED, weapon_id, request.caller_modifier, derived
        )
        breakdown.add_situational("area attack", self.config.area_attack_bonus)
        if request.indirect_fire:
            penalty = (
                self.config.spotted_indirect_fire_penalty if request.spotter
                else self.config.indirect_fire_penalty
            )
            breakdown.add_situational("indirect fire", penalty)

        roll = self.dice_evaluator.roll(breakdown.total, breakdown.target_number, roll_service)

        scatter = None
        if not roll.success:
            scatter = self.scatter(roll.margin_of_success, roll_service)
            logger.info(f"Area attack scatters {scatter.distance_meters}m toward {scatter.label}")
        impact = self.apply_scatter(request.aim_point, scatter)

        blast_radius = max(0, stats.base_damage)
        damage_type = stats.damage_type
        result = AreaEffectResult(
            attacker_id=attacker.character_id,
            weapon_id=weapon_id,
            weapon_name=item.name if item is not None else "Unarmed",
            roll=roll,
            modifiers=breakdown,
            blast_radius=blast_radius,
            base_damage=stats.base_damage,
            armor_penetration=stats.armor_penetration,
            damage_type=damage_type,
            aim_point=request.aim_point,
            impact_point=impact,
            scatter=scatter,
            ammunition=ammunition,
        )

        in_blast = []
        for target in request.targets:
            distance = impact.distance_to(target.position)
            if distance <= blast_radius:
                in_blast.append((distance, target))
        in_blast.sort(key=lambda pair: pair[0])

        for distance, target in in_blast:
            damage, penetration, meters = self.falloff(stats.base_damage, stats.armor_penetration, distance)
            if damage <= 0:
                continue
            hit_location = self.armor_resolver.roll_hit_location(roll_service)
            armor = self.armor_resolver.resolve(
                damage,
                penetration,
                damage_type,
                target.snapshot,
                armor_location=hit_location.armor_location,
            )
            result.targets.append(AreaTargetResult(
                target_id=target.snapshot.character_id,
                name=target.snapshot.name,
                distance=distance,
                meter_distance=meters,
                effective_damage=damage,
                effective_penetration=penetration,
                standard_damage=damage,
                fatigue_damage=AREA_FATIGUE_DAMAGE,
                hit_location=hit_location,
                armor=armor,
            ))

        logger.info(
            f"{attacker.name or attacker.character_id} area attack with {result.weapon_name}: "
            f"{'hit' if roll.success else 'miss'}, {len(result.targets)} targets in {blast_radius}m blast"
        )
        return result
