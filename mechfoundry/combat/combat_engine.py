"""
Combat action resolution.

Resolves one attack end to end:
1. Work out the attack type from the weapon and firing mode
2. Check ammunition or power (before any dice are rolled)
3. Build the roll modifier (skill stack plus situational adjustments)
4. Roll 2d6 once per attack (suppression fire rolls once per target)
5. Compute damage with the attack type's formula
6. Roll hit location and apply the target's armor

The resolver reports what happened, including the ammunition spent. It
never changes the attacker or the target.
"""

from dataclasses import dataclass, field
from typing import Optional
import logging
import math

from mechfoundry.character.attribute_engine import DerivedStats
from mechfoundry.combat.armor_resolver import ArmorCalculation, ArmorDamageResolver, HitLocationResult
from mechfoundry.config import EngineConfig
from mechfoundry.data_models import (
    ActionScope,
    AmmoCategory,
    AttackType,
    AttributeKey,
    CharacterSnapshot,
    CoverLevel,
    DamageFactor,
    DamageType,
    DiceRollService,
    FiringMode,
    HitLocation,
    InsufficientResourceError,
    Item,
    RangeBand,
    RangeBrackets,
    TargetSize,
    WeaponCategory,
    WeaponStats,
)
from mechfoundry.resolution.dice_outcome import DiceOutcomeEvaluator, RollOutcome
from mechfoundry.resolution.modifier_stack import ModifierBreakdown, ModifierStackEngine


logger = logging.getLogger(__name__)


# =============================================================================
# RULE TABLES
# =============================================================================


COVER_MODIFIERS: dict[CoverLevel, int] = {
    CoverLevel.NONE: 0,
    CoverLevel.LIGHT: -1,
    CoverLevel.MODERATE: -2,
    CoverLevel.HEAVY: -3,
    CoverLevel.FULL: -4,
}

TARGET_SIZE_MODIFIERS: dict[TargetSize, int] = {
    TargetSize.MONSTROUS: 5,
    TargetSize.VERY_LARGE: 3,
    TargetSize.LARGE: 1,
    TargetSize.MEDIUM: 0,
    TargetSize.SMALL: -1,
    TargetSize.VERY_SMALL: -2,
    TargetSize.EXTREMELY_SMALL: -3,
    TargetSize.TINY: -4,
}

AIMED_SHOT_MODIFIERS: dict[HitLocation, int] = {
    HitLocation.CHEST: -2,
    HitLocation.ABDOMEN: -3,
    HitLocation.LEFT_ARM: -3,
    HitLocation.RIGHT_ARM: -3,
    HitLocation.LEGS: -3,
    HitLocation.HEAD: -5,
    HitLocation.LEFT_HAND: -5,
    HitLocation.RIGHT_HAND: -5,
    HitLocation.LEFT_FOOT: -5,
    HitLocation.RIGHT_FOOT: -5,
}

RANGE_MODIFIERS: dict[RangeBand, int] = {
    RangeBand.POINT_BLANK: 1,
    RangeBand.SHORT: 0,
    RangeBand.MEDIUM: -2,
    RangeBand.LONG: -4,
    RangeBand.EXTREME: -6,
    RangeBand.OUT_OF_RANGE: -6,
}

PRONE_MELEE_MODIFIER = 2
PRONE_RANGED_MODIFIER = -1
FRIENDLY_IN_LINE_OF_FIRE_MODIFIER = -1
SPLASH_ATTACK_BONUS = 2
CONTROLLED_BURST_PENALTY = -1
DEFAULT_CONTROLLED_SHOTS = 2

UNARMED_SKILL = "Martial Arts"
UNARMED = WeaponStats(category=WeaponCategory.MELEE, base_damage=0, skill_name=UNARMED_SKILL)


# =============================================================================
# DATA STRUCTURES
# =============================================================================


@dataclass
class EffectiveWeaponStats:
    """Weapon stats after loaded ammunition is taken into account."""
    category: WeaponCategory
    base_damage: int
    armor_penetration: int
    penetration_factor: str
    damage_factor: DamageFactor
    subduing: bool
    range: RangeBrackets
    skill_name: Optional[str] = None

    @property
    def is_melee(self) -> bool:
        return self.category == WeaponCategory.MELEE

    @property
    def is_subduing(self) -> bool:
        return self.subduing or self.damage_factor == DamageFactor.SUBDUING

    @property
    def damage_type(self) -> DamageType:
        default = DamageType.EXPLOSIVE if self.damage_factor == DamageFactor.AREA else DamageType.MELEE
        return DamageType.from_factor(self.penetration_factor, default)


@dataclass
class AttackRequest:
    """
    Everything the attacker declares for one attack.

    weapon_id None (or an id not in the inventory) attacks unarmed.
    """
    weapon_id: Optional[str] = None
    firing_mode: FiringMode = FiringMode.SINGLE
    caller_modifier: int = 0
    burst_shots: int = 1
    controlled_shots: int = DEFAULT_CONTROLLED_SHOTS
    suppression_area: int = 1
    rounds_per_sqm: int = 1
    target: Optional[CharacterSnapshot] = None
    suppression_targets: list[CharacterSnapshot] = field(default_factory=list)
    num_targets: int = 1
    distance_meters: Optional[float] = None
    aimed_location: Optional[HitLocation] = None
    ignore_cover: bool = False
    friendly_in_line_of_fire: bool = False
    attack_type: Optional[AttackType] = None


@dataclass
class AmmunitionUse:
    """Ammunition or power an attack spends; the caller deducts it."""
    resource: str          # "ammunition" or "power"
    shots: int
    required: int
    available: int
    source_item_id: Optional[str] = None

    @property
    def remaining(self) -> int:
        return self.available - self.required


@dataclass
class RangeModifier:
    band: RangeBand
    modifier: int
    distance: int


@dataclass
class CombatActionResult:
    """Damage package produced by one attack roll."""
    attack_type: AttackType
    standard_damage: int = 0
    fatigue_damage: int = 0
    armor_penetration: int = 0
    damage_type: DamageType = DamageType.MELEE
    is_subduing: bool = False
    base_damage: int = 0
    strength_damage: int = 0
    margin_damage: int = 0
    item_damage_bonus: int = 0

    @property
    def has_damage(self) -> bool:
        return self.standard_damage > 0 or self.fatigue_damage > 0


@dataclass
class AttackRoll:
    """One attack roll and its consequences."""
    outcome: RollOutcome
    damage: CombatActionResult
    target_id: Optional[str] = None
    hit_location: Optional[HitLocationResult] = None
    armor: Optional[ArmorCalculation] = None
    wound_effect_due: bool = False  # doubles on a damaging hit

    @property
    def hit(self) -> bool:
        return self.outcome.success and self.outcome.margin_of_success >= 0


@dataclass
class AttackResolution:
    """Result of resolving a declared attack."""
    attacker_id: str
    weapon_id: Optional[str]
    weapon_name: str
    attack_type: AttackType
    firing_mode: FiringMode
    modifiers: ModifierBreakdown
    ammunition: Optional[AmmunitionUse] = None
    range: Optional[RangeModifier] = None
    rolls: list[AttackRoll] = field(default_factory=list)

    @property
    def total_modifier(self) -> int:
        return self.modifiers.total

    @property
    def target_number(self) -> int:
        return self.modifiers.target_number

    @property
    def hits(self) -> list[AttackRoll]:
        return [roll for roll in self.rolls if roll.hit]


# =============================================================================
# RESOLVER
# =============================================================================


class CombatActionResolver:
    """Resolves single attacks using the 2d6 combat rules."""

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

    @property
    def derivation_engine(self):
        return self.modifier_engine.derivation_engine

    # =========================================================================
    # WEAPON PROFILE
    # =========================================================================

    def weapon_item(self, attacker: CharacterSnapshot, weapon_id: Optional[str]) -> Optional[Item]:
        """The attacker's weapon item, or None to fight unarmed."""
        item = attacker.get_item(weapon_id)
        if item is None or item.weapon is None:
            if weapon_id:
                logger.debug(f"{attacker.name or attacker.character_id} has no weapon '{weapon_id}', attacking unarmed")
            return None
        return item

    def effective_weapon_stats(self, attacker: CharacterSnapshot, item: Optional[Item]) -> EffectiveWeaponStats:
        """
        Weapon stats with loaded ammunition applied.

        Ballistic ammunition adjusts AP and damage, may override the factors
        and scales the range brackets. Ordnance replaces the damage profile.
        Power packs change nothing.
        """
        weapon = item.weapon if item is not None else UNARMED
        stats = EffectiveWeaponStats(
            category=weapon.category,
            base_damage=weapon.base_damage,
            armor_penetration=weapon.armor_penetration,
            penetration_factor=weapon.penetration_factor,
            damage_factor=weapon.damage_factor,
            subduing=weapon.subduing,
            range=RangeBrackets(
                point_blank=weapon.range.point_blank,
                short=weapon.range.short,
                medium=weapon.range.medium,
                long=weapon.range.long,
                extreme=weapon.range.extreme,
            ),
            skill_name=weapon.skill_name,
        )

        ammo_item = attacker.get_item(weapon.loaded_ammo_id)
        ammo = ammo_item.ammo if ammo_item is not None else None
        if ammo is None:
            return stats

        if ammo.category == AmmoCategory.BALLISTICS:
            stats.armor_penetration += ammo.ap_modifier
            stats.base_damage += ammo.bd_modifier
            if ammo.penetration_factor_override:
                stats.penetration_factor = ammo.penetration_factor_override
            if ammo.damage_factor_override is not None:
                stats.damage_factor = ammo.damage_factor_override
            if ammo.range_multiplier and ammo.range_multiplier != 1.0:
                for band in ("point_blank", "short", "medium", "long", "extreme"):
                    value = getattr(stats.range, band)
                    if value:
                        setattr(stats.range, band, math.floor(value * ammo.range_multiplier))
        elif ammo.category == AmmoCategory.ORDNANCE:
            stats.base_damage = ammo.base_damage
            stats.armor_penetration = ammo.armor_penetration
            stats.penetration_factor = ammo.damage_type or stats.penetration_factor
            stats.damage_factor = ammo.damage_factor_override or DamageFactor.NONE
        return stats

    @staticmethod
    def determine_attack_type(
        stats: EffectiveWeaponStats,
        firing_mode: FiringMode,
        override: Optional[AttackType] = None,
    ) -> AttackType:
        """Attack type from weapon category, damage factor and firing mode."""
        if override is not None:
            return override

        burst_capable = stats.damage_factor == DamageFactor.BURST
        if stats.is_melee:
            attack_type = AttackType.STANDARD_MELEE
        elif firing_mode == FiringMode.BURST and burst_capable:
            attack_type = AttackType.BURST_FIRE
        elif firing_mode == FiringMode.CONTROLLED and burst_capable:
            attack_type = AttackType.CONTROLLED_BURST
        elif firing_mode == FiringMode.SUPPRESSION and burst_capable:
            attack_type = AttackType.SUPPRESSION_FIRE
        else:
            attack_type = AttackType.STANDARD_RANGED

        if stats.damage_factor == DamageFactor.AREA:
            attack_type = AttackType.AREA_EFFECT
        elif stats.damage_factor == DamageFactor.SPLASH:
            attack_type = AttackType.SPLASH_FIRE
        elif stats.is_subduing:
            attack_type = AttackType.SUBDUING
        return attack_type

    # =========================================================================
    # AMMUNITION
    # =========================================================================

    @staticmethod
    def shots_fired(attack_type: AttackType, weapon: WeaponStats, request: AttackRequest) -> tuple[int, int]:
        """
        Shots spent and number of attack rolls for an attack.

        Returns:
            (shots, attack rolls)
        """
        if attack_type == AttackType.BURST_FIRE:
            return max(1, request.burst_shots), 1
        if attack_type == AttackType.CONTROLLED_BURST:
            return max(1, request.controlled_shots or DEFAULT_CONTROLLED_SHOTS), 1
        if attack_type == AttackType.SUPPRESSION_FIRE:
            rolls = len(request.suppression_targets) or max(1, request.num_targets)
            return weapon.burst_rating * 2, rolls
        return 1, 1

    def check_ammunition(
        self,
        attacker: CharacterSnapshot,
        item: Optional[Item],
        shots: int,
    ) -> Optional[AmmunitionUse]:
        """
        Verify the weapon can fire `shots` shots.

        Energy weapons draw power per shot from the loaded power pack; other
        weapons draw rounds from the magazine.

        Returns:
            AmmunitionUse, or None for weapons that use no ammunition

        Raises:
            InsufficientResourceError: Not enough rounds or power
        """
        if item is None or item.weapon is None or not item.weapon.needs_ammunition:
            return None

        weapon = item.weapon
        ammo_item = attacker.get_item(weapon.loaded_ammo_id)
        ammo = ammo_item.ammo if ammo_item is not None else None
        is_energy = weapon.power_per_shot > 0 or (ammo is not None and ammo.category == AmmoCategory.ENERGY)

        if is_energy:
            required = max(1, weapon.power_per_shot) * shots
            available = ammo.quantity if ammo is not None else 0
            resource = "power"
        else:
            required = shots
            available = weapon.magazine_rounds if ammo_item is not None else 0
            resource = "ammunition"

        if available < required:
            logger.info(f"{item.name}: not enough {resource}, need {required}, have {available}")
            raise InsufficientResourceError(resource, required, available)

        return AmmunitionUse(
            resource=resource,
            shots=shots,
            required=required,
            available=available,
            source_item_id=ammo_item.item_id if is_energy and ammo_item is not None else item.item_id,
        )

    # =========================================================================
    # MODIFIERS
    # =========================================================================

    @staticmethod
    def range_modifier(brackets: RangeBrackets, distance: Optional[float]) -> Optional[RangeModifier]:
        """Range band for a measured distance (rounded up to whole meters)."""
        if distance is None or not brackets.is_defined():
            return None
        meters = math.ceil(distance)
        bands = (
            (RangeBand.POINT_BLANK, brackets.point_blank),
            (RangeBand.SHORT, brackets.short),
            (RangeBand.MEDIUM, brackets.medium),
            (RangeBand.LONG, brackets.long),
            (RangeBand.EXTREME, brackets.extreme),
        )
        for band, limit in bands:
            if limit > 0 and meters <= limit:
                return RangeModifier(band, RANGE_MODIFIERS[band], meters)
        return RangeModifier(RangeBand.OUT_OF_RANGE, RANGE_MODIFIERS[RangeBand.OUT_OF_RANGE], meters)

    def _apply_situational_modifiers(
        self,
        breakdown: ModifierBreakdown,
        attack_type: AttackType,
        weapon: WeaponStats,
        stats: EffectiveWeaponStats,
        request: AttackRequest,
    ) -> Optional[RangeModifier]:
        is_melee = stats.is_melee

        # Firing mode
        if attack_type == AttackType.BURST_FIRE:
            breakdown.add_situational("recoil", -weapon.recoil)
        elif attack_type == AttackType.CONTROLLED_BURST:
            breakdown.add_situational("controlled burst", CONTROLLED_BURST_PENALTY)
        elif attack_type == AttackType.SUPPRESSION_FIRE:
            breakdown.add_situational("recoil", -weapon.recoil)
            breakdown.add_situational("suppression area", -(request.suppression_area - request.rounds_per_sqm))
        elif attack_type == AttackType.SPLASH_FIRE:
            breakdown.add_situational("splash", SPLASH_ATTACK_BONUS)
        elif attack_type == AttackType.AREA_EFFECT:
            breakdown.add_situational("area attack", self.config.area_attack_bonus)

        target = request.target
        if target is not None:
            if not is_melee and not request.ignore_cover:
                breakdown.add_situational("cover", COVER_MODIFIERS[target.cover])
            if target.prone:
                breakdown.add_situational("prone target", PRONE_MELEE_MODIFIER if is_melee else PRONE_RANGED_MODIFIER)
            breakdown.add_situational("target size", TARGET_SIZE_MODIFIERS[target.size])

        if not is_melee and request.friendly_in_line_of_fire:
            breakdown.add_situational("friendly in line of fire", FRIENDLY_IN_LINE_OF_FIRE_MODIFIER)

        if request.aimed_location is not None:
            breakdown.add_situational("aimed shot", AIMED_SHOT_MODIFIERS[request.aimed_location])

        range_result = None
        if not is_melee:
            range_result = self.range_modifier(stats.range, request.distance_meters)
            if range_result is not None:
                breakdown.add_situational(f"range ({range_result.band.value})", range_result.modifier)
        return range_result

    # =========================================================================
    # DAMAGE
    # =========================================================================

    @staticmethod
    def compute_damage(
        attack_type: AttackType,
        stats: EffectiveWeaponStats,
        strength: int,
        success: bool,
        margin_of_success: int,
        extra_shots: int = 0,
        item_damage_bonus: int = 0,
    ) -> CombatActionResult:
        """
        Damage for one attack roll.

        Args:
            attack_type: Resolved attack type
            stats: Effective weapon stats
            strength: Attacker's STR total (melee only)
            success: Whether the roll succeeded
            margin_of_success: Roll margin
            extra_shots: Shots beyond the first (burst caps)
            item_damage_bonus: Damage bonus from equipped items

        Returns:
            CombatActionResult; all zeros on a miss
        """
        result = CombatActionResult(
            attack_type=attack_type,
            armor_penetration=stats.armor_penetration,
            damage_type=stats.damage_type,
            is_subduing=stats.is_subduing or attack_type == AttackType.SUBDUING,
            base_damage=stats.base_damage,
        )
        if not success or margin_of_success < 0:
            return result

        unarmed = stats.is_melee and stats.base_damage == 0
        if stats.is_melee:
            result.strength_damage = math.ceil(strength / 4)
            result.margin_damage = math.ceil(margin_of_success * 0.25)
            total = stats.base_damage + result.strength_damage + result.margin_damage
            if unarmed or stats.is_subduing:
                result.is_subduing = True
                result.fatigue_damage = total
            else:
                result.standard_damage = total
                result.fatigue_damage = 1
        elif attack_type in (AttackType.BURST_FIRE, AttackType.CONTROLLED_BURST):
            result.margin_damage = min(margin_of_success, max(0, extra_shots))
            total = stats.base_damage + result.margin_damage
            if stats.is_subduing:
                result.fatigue_damage = total
            else:
                result.standard_damage = total
                result.fatigue_damage = 1
        elif result.is_subduing:
            result.margin_damage = math.floor(margin_of_success * 0.25)
            result.fatigue_damage = stats.base_damage + result.margin_damage
        else:
            result.margin_damage = math.floor(margin_of_success * 0.25)
            result.standard_damage = stats.base_damage + result.margin_damage
            result.fatigue_damage = 1

        if item_damage_bonus > 0:
            result.item_damage_bonus = item_damage_bonus
            if result.is_subduing or unarmed:
                result.fatigue_damage += item_damage_bonus
            else:
                result.standard_damage += item_damage_bonus
        return result

    def melee_damage(
        self,
        attacker: CharacterSnapshot,
        item: Optional[Item],
        margin_of_success: int,
        derived: Optional[DerivedStats] = None,
    ) -> CombatActionResult:
        """Damage a successful melee strike would deal with this margin."""
        derived = derived or self.derivation_engine.derive(attacker)
        stats = self.effective_weapon_stats(attacker, item)
        return self.compute_damage(
            AttackType.STANDARD_MELEE,
            stats,
            derived.total(AttributeKey.STR),
            success=True,
            margin_of_success=max(0, margin_of_success),
        )

    # =========================================================================
    # RESOLUTION
    # =========================================================================

    def melee_attack_roll(
        self,
        attacker: CharacterSnapshot,
        item: Optional[Item],
        roll_service: DiceRollService,
        caller_modifier: int = 0,
        derived: Optional[DerivedStats] = None,
        target: Optional[CharacterSnapshot] = None,
    ) -> tuple[RollOutcome, ModifierBreakdown]:
        """Make a melee attack roll without resolving damage."""
        derived = derived or self.derivation_engine.derive(attacker)
        stats = self.effective_weapon_stats(attacker, item)
        breakdown = self.modifier_engine.combat_modifiers(
            attacker,
            stats.skill_name,
            ActionScope.MELEE,
            item.item_id if item else None,
            caller_modifier,
            derived,
        )
        if target is not None:
            if target.prone:
                breakdown.add_situational("prone target", PRONE_MELEE_MODIFIER)
            breakdown.add_situational("target size", TARGET_SIZE_MODIFIERS[target.size])
        outcome = self.dice_evaluator.roll(breakdown.total, breakdown.target_number, roll_service)
        return outcome, breakdown

    def resolve_attack(
        self,
        attacker: CharacterSnapshot,
        request: AttackRequest,
        roll_service: DiceRollService,
        derived: Optional[DerivedStats] = None,
    ) -> AttackResolution:
        """
        Resolve a declared attack.

        Area weapons fired this way hit the declared target directly; use
        AreaEffectResolver for scatter and blast falloff.

        Args:
            attacker: Attacking character
            request: Weapon, firing mode, targets and circumstances
            roll_service: Source of all dice
            derived: Pre-computed derived stats for the attacker

        Returns:
            AttackResolution with one AttackRoll per roll made

        Raises:
            InsufficientResourceError: Not enough ammunition or power; no
                dice have been rolled
        """
        item = self.weapon_item(attacker, request.weapon_id)
        weapon = item.weapon if item is not None else UNARMED
        stats = self.effective_weapon_stats(attacker, item)
        attack_type = self.determine_attack_type(stats, request.firing_mode, request.attack_type)

        shots, attack_rolls = self.shots_fired(attack_type, weapon, request)
        ammunition = self.check_ammunition(attacker, item, shots)

        derived = derived or self.derivation_engine.derive(attacker)
        scope = ActionScope.MELEE if stats.is_melee else ActionScope.RANGED
        weapon_id = item.item_id if item is not None else None
        breakdown = self.modifier_engine.combat_modifiers(
            attacker, stats.skill_name, scope, weapon_id, request.caller_modifier, derived
        )
        range_result = self._apply_situational_modifiers(breakdown, attack_type, weapon, stats, request)
        item_damage_bonus = self.modifier_engine.damage_bonus(attacker, scope, weapon_id)

        if attack_type == AttackType.BURST_FIRE:
            extra_shots = shots - 1
        elif attack_type == AttackType.CONTROLLED_BURST:
            extra_shots = shots - 1
        else:
            extra_shots = 0

        resolution = AttackResolution(
            attacker_id=attacker.character_id,
            weapon_id=weapon_id,
            weapon_name=item.name if item is not None else "Unarmed",
            attack_type=attack_type,
            firing_mode=request.firing_mode,
            modifiers=breakdown,
            ammunition=ammunition,
            range=range_result,
        )

        strength = derived.total(AttributeKey.STR)
        for index in range(attack_rolls):
            target = self._target_for_roll(request, attack_type, index)
            outcome = self.dice_evaluator.roll(breakdown.total, breakdown.target_number, roll_service)
            damage = self.compute_damage(
                attack_type,
                stats,
                strength,
                outcome.success,
                outcome.margin_of_success,
                extra_shots,
                item_damage_bonus,
            )
            attack_roll = AttackRoll(
                outcome=outcome,
                damage=damage,
                target_id=target.character_id if target is not None else None,
            )
            if target is not None and outcome.success and damage.standard_damage > 0:
                self._resolve_hit(attack_roll, target, request.aimed_location, roll_service)
            resolution.rolls.append(attack_roll)

        logger.info(
            f"{attacker.name or attacker.character_id} {attack_type.value} with "
            f"{resolution.weapon_name}: {len(resolution.hits)}/{len(resolution.rolls)} hits "
            f"(modifier {breakdown.total:+d} vs TN {breakdown.target_number})"
        )
        return resolution

    @staticmethod
    def _target_for_roll(request: AttackRequest, attack_type: AttackType, index: int) -> Optional[CharacterSnapshot]:
        if attack_type == AttackType.SUPPRESSION_FIRE and index < len(request.suppression_targets):
            return request.suppression_targets[index]
        return request.target

    def _resolve_hit(
        self,
        attack_roll: AttackRoll,
        target: CharacterSnapshot,
        aimed_location: Optional[HitLocation],
        roll_service: DiceRollService,
    ) -> None:
        if aimed_location is not None:
            hit_location = self.armor_resolver.aimed_hit_location(aimed_location)
        else:
            hit_location = self.armor_resolver.roll_hit_location(roll_service)

        damage = attack_roll.damage
        armor = self.armor_resolver.resolve(
            damage.standard_damage,
            damage.armor_penetration,
            damage.damage_type,
            target,
            hit_location=hit_location.location,
        )
        attack_roll.hit_location = hit_location
        attack_roll.armor = armor
        attack_roll.wound_effect_due = attack_roll.outcome.is_doubles and armor.final_damage > 0
