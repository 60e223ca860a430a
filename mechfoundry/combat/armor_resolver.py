"""
Armor and hit location resolution.

Barrier armor ratings (BAR) do not stack: a location is protected by the
best rating among the equipped armor covering it. Penetration (AP) lowers
that rating before it absorbs damage.
"""

from dataclasses import dataclass, field
from typing import Optional
import logging
import math

from mechfoundry.data_models import (
    ArmorLocation,
    CharacterSnapshot,
    DamageType,
    DiceRollService,
    HitLocation,
)


logger = logging.getLogger(__name__)


# 2d6 hit location table; 6 and 8 hit the torso and need a d6 for chest/abdomen
HIT_LOCATION_TABLE: dict[int, Optional[HitLocation]] = {
    2: HitLocation.HEAD,
    3: HitLocation.LEFT_FOOT,
    4: HitLocation.LEFT_HAND,
    5: HitLocation.LEFT_ARM,
    6: None,
    7: HitLocation.LEGS,
    8: None,
    9: HitLocation.RIGHT_ARM,
    10: HitLocation.RIGHT_HAND,
    11: HitLocation.RIGHT_FOOT,
    12: HitLocation.HEAD,
}

CHEST_MAX_SUB_ROLL = 4  # 1-4 chest, 5-6 abdomen


@dataclass
class HitLocationResult:
    """Where an attack landed."""
    location: HitLocation
    roll: Optional[int] = None
    dice: list[int] = field(default_factory=list)
    sub_roll: Optional[int] = None
    aimed: bool = False

    @property
    def armor_location(self) -> ArmorLocation:
        return self.location.armor_location

    @property
    def damage_multiplier(self) -> float:
        return self.location.damage_multiplier


@dataclass
class ArmorCalculation:
    """
    Damage after armor.

    final_damage and absorbed describe the armor step only. When a specific
    hit location is resolved, located_damage is the post-armor damage scaled
    by the location multiplier (rounded up); otherwise it equals final_damage.
    """
    original_damage: int
    armor_value: int
    penetration: int
    effective_armor: int
    final_damage: int
    absorbed: int
    damage_type: DamageType = DamageType.MELEE
    armor_location: Optional[ArmorLocation] = None
    hit_location: Optional[HitLocation] = None
    location_multiplier: float = 1.0
    located_damage: int = 0

    @property
    def applied_damage(self) -> int:
        """Damage the target actually takes."""
        return self.located_damage


class ArmorDamageResolver:
    """Reduces damage by the target's armor and rolls hit locations."""

    @staticmethod
    def armor_rating(
        target: CharacterSnapshot,
        damage_type: DamageType,
        armor_location: Optional[ArmorLocation] = None,
    ) -> int:
        """
        Best rating among equipped armor covering a location.

        Args:
            target: Character wearing the armor
            damage_type: Damage type being resisted
            armor_location: Location hit, or None for any covered location

        Returns:
            Highest BAR for that damage type, 0 if nothing covers it
        """
        best = 0
        for item in target.equipped_armor():
            if armor_location is not None and armor_location not in item.armor.coverage:
                continue
            best = max(best, item.armor.rating_for(damage_type))
        return best

    @staticmethod
    def calculate(damage: int, armor_value: int, penetration: int) -> tuple[int, int, int]:
        """
        Apply armor to damage.

        Returns:
            (effective armor, final damage, absorbed)
        """
        effective_armor = max(0, armor_value - penetration)
        final_damage = max(0, damage - effective_armor)
        return effective_armor, final_damage, damage - final_damage

    def resolve(
        self,
        damage: int,
        penetration: int,
        damage_type: DamageType,
        target: CharacterSnapshot,
        armor_location: Optional[ArmorLocation] = None,
        hit_location: Optional[HitLocation] = None,
    ) -> ArmorCalculation:
        """
        Resolve damage against a target's armor.

        When a hit location is given its armor location is used and the
        location multiplier is applied to the post-armor damage.
        """
        if hit_location is not None:
            armor_location = hit_location.armor_location

        armor_value = self.armor_rating(target, damage_type, armor_location)
        effective_armor, final_damage, absorbed = self.calculate(damage, armor_value, penetration)

        multiplier = hit_location.damage_multiplier if hit_location is not None else 1.0
        located_damage = math.ceil(final_damage * multiplier)

        where = hit_location or armor_location
        logger.debug(
            f"Armor vs {damage} {damage_type.display_name} damage on "
            f"{where.value if where else 'body'}: BAR {armor_value} - AP {penetration} "
            f"= {effective_armor}, {final_damage} through, {located_damage} after location"
        )
        return ArmorCalculation(
            original_damage=damage,
            armor_value=armor_value,
            penetration=penetration,
            effective_armor=effective_armor,
            final_damage=final_damage,
            absorbed=absorbed,
            damage_type=damage_type,
            armor_location=armor_location,
            hit_location=hit_location,
            location_multiplier=multiplier,
            located_damage=located_damage,
        )

    @staticmethod
    def roll_hit_location(roll_service: DiceRollService) -> HitLocationResult:
        """Roll 2d6 on the hit location table (plus a d6 for torso hits)."""
        dice = list(roll_service.roll(2, 6))
        total = sum(dice)
        location = HIT_LOCATION_TABLE.get(total, HitLocation.HEAD if total <= 2 else None)

        sub_roll = None
        if location is None:
            sub_roll = roll_service.roll(1, 6)[0]
            location = HitLocation.CHEST if sub_roll <= CHEST_MAX_SUB_ROLL else HitLocation.ABDOMEN

        return HitLocationResult(location=location, roll=total, dice=dice, sub_roll=sub_roll)

    @staticmethod
    def aimed_hit_location(location: HitLocation) -> HitLocationResult:
        """Hit location for an aimed shot: the location aimed at."""
        return HitLocationResult(location=location, aimed=True)
