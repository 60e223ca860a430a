"""
Shared data structures for the Mech Foundry combat rules engine.

Character snapshots are read-only inputs: every resolver reads them and
returns fresh result values. Nothing in the engine writes back into a
snapshot; the caller persists ammunition, damage and burned edge.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Protocol
import logging
import math
import random


logger = logging.getLogger(__name__)


# =============================================================================
# ENUMS
# =============================================================================


class AttributeKey(str, Enum):
    """The eight character attributes."""
    STR = "str"
    BOD = "bod"
    RFL = "rfl"
    DEX = "dex"
    INT = "int"
    WIL = "wil"
    CHA = "cha"
    EDG = "edg"


class SpecialOutcome(str, Enum):
    """Special results of a 2d6 roll."""
    NONE = "none"
    FUMBLE = "fumble"                      # 1,1
    STUNNING_SUCCESS = "stunning_success"  # 6,6
    MIRACULOUS_FEAT = "miraculous_feat"    # 6,6 followed by three or more 6s


class DamageType(str, Enum):
    """Damage types keyed by their armor-penetration factor code."""
    MELEE = "m"
    BALLISTIC = "b"
    ENERGY = "e"
    EXPLOSIVE = "x"

    @classmethod
    def from_factor(cls, code: Optional[str], default: "DamageType" = None) -> "DamageType":
        """Map an AP factor letter (M/B/E/X) to a damage type."""
        fallback = default or cls.MELEE
        if not code:
            return fallback
        try:
            return cls(str(code).lower())
        except ValueError:
            return fallback

    @property
    def display_name(self) -> str:
        return self.name.capitalize()


class DamageFactor(str, Enum):
    """Base-damage factor letters that change how a weapon attacks."""
    NONE = ""
    BURST = "B"
    AREA = "A"
    SPLASH = "S"
    SUBDUING = "D"


class WeaponCategory(str, Enum):
    """Broad weapon category."""
    MELEE = "melee"
    RANGED = "ranged"


class FiringMode(str, Enum):
    """Firing modes a burst-capable weapon may select."""
    SINGLE = "single"
    BURST = "burst"
    CONTROLLED = "controlled"
    SUPPRESSION = "suppression"


class AttackType(str, Enum):
    """Resolved attack type; selects the damage formula."""
    STANDARD_RANGED = "standard_ranged"
    BURST_FIRE = "burst_fire"
    CONTROLLED_BURST = "controlled_burst"
    SUPPRESSION_FIRE = "suppression_fire"
    STANDARD_MELEE = "standard_melee"
    SUBDUING = "subduing"
    AREA_EFFECT = "area_effect"
    SPLASH_FIRE = "splash_fire"


class AmmoCategory(str, Enum):
    """How loaded ammunition interacts with weapon stats."""
    BALLISTICS = "ballistics"  # modifies weapon stats
    ORDNANCE = "ordnance"      # replaces weapon stats
    ENERGY = "energy"          # power pack, no stat change


class ItemType(str, Enum):
    """Equipment item types."""
    WEAPON = "weapon"
    ARMOR = "armor"
    AMMO = "ammo"
    ELECTRONICS = "electronics"
    HEALTHCARE = "healthcare"
    PROSTHETICS = "prosthetics"
    VEHICLE = "vehicle"
    GEAR = "gear"


# Item types whose effects apply while equipped
EFFECT_ITEM_TYPES = frozenset({
    ItemType.WEAPON,
    ItemType.ARMOR,
    ItemType.ELECTRONICS,
    ItemType.HEALTHCARE,
    ItemType.PROSTHETICS,
})


class CarryStatus(str, Enum):
    """Where an item is on the character."""
    EQUIPPED = "equipped"
    CARRIED = "carried"
    STORED = "stored"


class EffectType(str, Enum):
    """Effects an equipped item can grant."""
    RANGED_ATTACK_BONUS = "ranged_attack_bonus"
    MELEE_ATTACK_BONUS = "melee_attack_bonus"
    ALL_ATTACK_BONUS = "all_attack_bonus"
    DAMAGE_BONUS = "damage_bonus"
    RANGED_DAMAGE_BONUS = "ranged_damage_bonus"
    MELEE_DAMAGE_BONUS = "melee_damage_bonus"
    ATTRIBUTE_BONUS = "attribute_bonus"
    MOVEMENT_BONUS = "movement_bonus"
    SKILL_BONUS = "skill_bonus"
    DARKVISION = "darkvision"
    LOW_LIGHT_VISION = "low_light_vision"
    THERMAL_VISION = "thermal_vision"


class ModifierTargetType(str, Enum):
    """What a persistent effect modifier adjusts."""
    ATTRIBUTE = "attribute"
    MOVEMENT = "movement"
    SKILL = "skill"


class ModifierOperation(str, Enum):
    """How a persistent effect modifier combines."""
    ADD = "add"
    MULTIPLY = "multiply"


class ActionScope(str, Enum):
    """Scope of a combat action for equipment effect matching."""
    RANGED = "ranged"
    MELEE = "melee"


class EncumbranceLevel(str, Enum):
    """Carried-mass tiers relative to STR."""
    UNENCUMBERED = "unencumbered"
    ENCUMBERED = "encumbered"
    VERY_ENCUMBERED = "very_encumbered"
    OVERLOADED = "overloaded"


class MovementMode(str, Enum):
    """Movement rate modes."""
    WALK = "walk"
    RUN = "run"
    SPRINT = "sprint"
    CLIMB = "climb"
    CRAWL = "crawl"
    SWIM = "swim"


class WoundType(str, Enum):
    """Lasting wounds a character can suffer."""
    DAZED = "dazed"
    CONCUSSION = "concussion"
    HEMORRHAGE = "hemorrhage"
    TRAUMATIC_IMPACT = "traumatic_impact"
    NERVE_DAMAGE = "nerve_damage"
    SEVERE_STRAIN = "severe_strain"
    SEVERELY_WOUNDED = "severely_wounded"


class ArmorLocation(str, Enum):
    """Coarse locations armor coverage is declared for."""
    HEAD = "head"
    TORSO = "torso"
    ARMS = "arms"
    LEGS = "legs"


class HitLocation(str, Enum):
    """Specific body locations produced by the hit location roll."""
    HEAD = "head"
    CHEST = "chest"
    ABDOMEN = "abdomen"
    LEFT_ARM = "left_arm"
    RIGHT_ARM = "right_arm"
    LEFT_HAND = "left_hand"
    RIGHT_HAND = "right_hand"
    LEGS = "legs"
    LEFT_FOOT = "left_foot"
    RIGHT_FOOT = "right_foot"

    @property
    def armor_location(self) -> ArmorLocation:
        return HIT_LOCATION_ARMOR[self]

    @property
    def damage_multiplier(self) -> float:
        return HIT_LOCATION_MULTIPLIERS[self]


HIT_LOCATION_ARMOR: dict[HitLocation, ArmorLocation] = {
    HitLocation.HEAD: ArmorLocation.HEAD,
    HitLocation.CHEST: ArmorLocation.TORSO,
    HitLocation.ABDOMEN: ArmorLocation.TORSO,
    HitLocation.LEFT_ARM: ArmorLocation.ARMS,
    HitLocation.RIGHT_ARM: ArmorLocation.ARMS,
    HitLocation.LEFT_HAND: ArmorLocation.ARMS,
    HitLocation.RIGHT_HAND: ArmorLocation.ARMS,
    HitLocation.LEGS: ArmorLocation.LEGS,
    HitLocation.LEFT_FOOT: ArmorLocation.LEGS,
    HitLocation.RIGHT_FOOT: ArmorLocation.LEGS,
}

HIT_LOCATION_MULTIPLIERS: dict[HitLocation, float] = {
    HitLocation.HEAD: 2.0,
    HitLocation.CHEST: 1.0,
    HitLocation.ABDOMEN: 1.0,
    HitLocation.LEFT_ARM: 0.5,
    HitLocation.RIGHT_ARM: 0.5,
    HitLocation.LEFT_HAND: 0.25,
    HitLocation.RIGHT_HAND: 0.25,
    HitLocation.LEGS: 0.75,
    HitLocation.LEFT_FOOT: 0.25,
    HitLocation.RIGHT_FOOT: 0.25,
}


class CoverLevel(str, Enum):
    """Cover a ranged target is behind."""
    NONE = "none"
    LIGHT = "light"
    MODERATE = "moderate"
    HEAVY = "heavy"
    FULL = "full"


class TargetSize(str, Enum):
    """Size category of a target."""
    MONSTROUS = "monstrous"
    VERY_LARGE = "very_large"
    LARGE = "large"
    MEDIUM = "medium"
    SMALL = "small"
    VERY_SMALL = "very_small"
    EXTREMELY_SMALL = "extremely_small"
    TINY = "tiny"


class RangeBand(str, Enum):
    """Weapon range brackets."""
    POINT_BLANK = "point_blank"
    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"
    EXTREME = "extreme"
    OUT_OF_RANGE = "out_of_range"


class ContestOutcome(str, Enum):
    """Outcome of an opposed melee contest."""
    TIE = "tie"
    ATTACKER_HITS = "attacker_hits"
    DEFENDER_CHOICE = "defender_choice"
    COUNTERSTRIKE = "counterstrike"
    MUTUAL_MISS = "mutual_miss"


class DefenderChoice(str, Enum):
    """What a defender who out-rolled the attacker chooses to do."""
    BLOCK = "block"
    MUTUAL_DAMAGE = "mutual_damage"


class DefenseOptionType(str, Enum):
    """How a defender answers a melee attack."""
    SKILL = "skill"
    ATTRIBUTE = "attribute"
    DECLINE = "decline"


# =============================================================================
# ERRORS
# =============================================================================


class InsufficientResourceError(Exception):
    """
    Raised when an action needs more ammunition, power or edge than is available.

    Raised before any die is rolled; nothing has been consumed.
    """

    def __init__(self, resource: str, required: int, available: int):
        self.resource = resource
        self.required = required
        self.available = available
        super().__init__(
            f"Not enough {resource}: need {required}, have {available} "
            f"(short {self.shortfall})"
        )

    @property
    def shortfall(self) -> int:
        return max(0, self.required - self.available)


# =============================================================================
# DICE
# =============================================================================


class DiceRollService(Protocol):
    """Anything that can roll dice for the engine."""

    def roll(self, count: int, sides: int) -> list[int]:
        ...


@dataclass
class DiceResult:
    """Result of a dice roll with full information."""
    notation: str
    rolls: list[int]
    modifier: int
    total: int
    reason: str
    timestamp: datetime = field(default_factory=datetime.now)

    def __str__(self) -> str:
        if self.modifier > 0:
            return f"{self.notation}: {self.rolls} + {self.modifier} = {self.total}"
        elif self.modifier < 0:
            return f"{self.notation}: {self.rolls} - {abs(self.modifier)} = {self.total}"
        return f"{self.notation}: {self.rolls} = {self.total}"


class DiceRoller:
    """
    Default dice service.

    Each roller owns its own random source so that separate sessions and
    tests never share entropy. Pass a seed for reproducible sequences and a
    run log to record every roll.
    """

    def __init__(self, seed: Optional[int] = None, run_log: Optional[Any] = None):
        self._seed = seed
        self._random = random.Random(seed)
        self._roll_log: list[DiceResult] = []
        self._run_log = run_log
        if run_log is not None and seed is not None:
            run_log.set_seed(seed)

    @property
    def seed(self) -> Optional[int]:
        return self._seed

    def roll(self, count: int, sides: int) -> list[int]:
        """Roll `count` dice with `sides` faces and return the faces."""
        return self.roll_notation(f"{count}d{sides}").rolls

    def roll_notation(self, dice: str, reason: str = "") -> DiceResult:
        """
        Roll dice using standard notation (e.g., '2d6', '1d12', '2d6+3').

        Args:
            dice: Dice notation string
            reason: Why this roll is being made (for logging)

        Returns:
            DiceResult with individual rolls and total
        """
        modifier = 0
        if '+' in dice:
            dice_part, mod_part = dice.split('+')
            modifier = int(mod_part)
        elif '-' in dice:
            dice_part, mod_part = dice.split('-')
            modifier = -int(mod_part)
        else:
            dice_part = dice

        num_dice, die_size = dice_part.lower().split('d')
        num_dice = int(num_dice) if num_dice else 1
        die_size = int(die_size)

        rolls = [self._random.randint(1, die_size) for _ in range(num_dice)]
        total = sum(rolls) + modifier

        result = DiceResult(
            notation=dice,
            rolls=rolls,
            modifier=modifier,
            total=total,
            reason=reason,
        )
        self._roll_log.append(result)
        if self._run_log is not None:
            self._run_log.log_roll(dice, rolls, modifier, total, reason)
        return result

    def roll_2d6(self, reason: str = "") -> DiceResult:
        """Convenience method for the standard 2d6 action roll."""
        return self.roll_notation("2d6", reason)

    def roll_d6(self, num_dice: int = 1, reason: str = "") -> DiceResult:
        """Convenience method for d6 rolls."""
        return self.roll_notation(f"{num_dice}d6", reason)

    def roll_d12(self, reason: str = "") -> DiceResult:
        """Convenience method for the scatter direction roll."""
        return self.roll_notation("1d12", reason)

    def get_roll_log(self) -> list[DiceResult]:
        """Get every roll made by this roller."""
        return self._roll_log.copy()

    def clear_roll_log(self) -> None:
        """Clear the roll log."""
        self._roll_log = []


# =============================================================================
# CHARACTER SNAPSHOT
# =============================================================================


@dataclass
class AttributeScore:
    """Stored attribute value and its flat modifier."""
    base: int = 0
    modifier: int = 0


@dataclass
class Skill:
    """A skill with the experience invested in it."""
    name: str
    experience: int = 0
    linked_attributes: list[AttributeKey] = field(default_factory=list)  # up to two
    target_number: int = 7


@dataclass
class ItemEffect:
    """
    An effect granted by an item while it is equipped.

    `value` is stored as entered and coerced to a number when read, so a
    blank or garbled value counts as zero.
    """
    effect_type: EffectType
    value: Any = 0
    target: str = ""                  # attribute key, movement mode or skill name
    attached_item_only: bool = False  # only when this item is the weapon in use


@dataclass
class PersistentModifier:
    """One modifier inside an active effect."""
    target_type: ModifierTargetType
    target: str
    value: Any = 0
    operation: ModifierOperation = ModifierOperation.ADD


@dataclass
class ActiveEffect:
    """
    A persistent effect on the character (drugs, implants, conditions).

    `modifiers` comes straight from stored data and may not be a list.
    """
    name: str
    modifiers: Any = field(default_factory=list)
    active: bool = True


@dataclass
class RangeBrackets:
    """Upper bound in meters of each range bracket; 0 means not defined."""
    point_blank: int = 0
    short: int = 0
    medium: int = 0
    long: int = 0
    extreme: int = 0

    def is_defined(self) -> bool:
        return any((self.point_blank, self.short, self.medium, self.long, self.extreme))


@dataclass
class WeaponStats:
    """Weapon profile as stored on the item."""
    category: WeaponCategory = WeaponCategory.RANGED
    base_damage: int = 0
    damage_factor: DamageFactor = DamageFactor.NONE
    armor_penetration: int = 0
    penetration_factor: str = "M"  # M/B/E/X
    subduing: bool = False
    skill_name: Optional[str] = None
    recoil: int = 0
    burst_rating: int = 0
    range: RangeBrackets = field(default_factory=RangeBrackets)
    magazine_capacity: int = 0
    magazine_rounds: int = 0
    power_per_shot: int = 0
    loaded_ammo_id: Optional[str] = None

    @property
    def is_melee(self) -> bool:
        return self.category == WeaponCategory.MELEE

    @property
    def needs_ammunition(self) -> bool:
        return self.magazine_capacity > 0 or self.power_per_shot > 0


@dataclass
class ArmorStats:
    """Armor coverage and barrier armor rating per damage type."""
    coverage: list[ArmorLocation] = field(default_factory=list)
    ratings: dict[DamageType, int] = field(default_factory=dict)

    def rating_for(self, damage_type: DamageType) -> int:
        return int(self.ratings.get(damage_type, 0) or 0)


@dataclass
class AmmoStats:
    """Loaded ammunition or power pack."""
    category: AmmoCategory = AmmoCategory.BALLISTICS
    quantity: int = 0
    # Ballistics
    ap_modifier: int = 0
    bd_modifier: int = 0
    penetration_factor_override: Optional[str] = None
    damage_factor_override: Optional[DamageFactor] = None
    range_multiplier: float = 1.0
    # Ordnance
    base_damage: int = 0
    armor_penetration: int = 0
    damage_type: Optional[str] = None


@dataclass
class Item:
    """An item in a character's inventory."""
    item_id: str
    name: str
    item_type: ItemType = ItemType.GEAR
    carry_status: CarryStatus = CarryStatus.CARRIED
    equipped: bool = False  # armor may be worn without a carry status change
    mass: float = 0.0
    quantity: int = 1
    effects: list[ItemEffect] = field(default_factory=list)
    weapon: Optional[WeaponStats] = None
    armor: Optional[ArmorStats] = None
    ammo: Optional[AmmoStats] = None

    @property
    def is_equipped(self) -> bool:
        if self.item_type == ItemType.ARMOR and self.equipped:
            return True
        return self.carry_status == CarryStatus.EQUIPPED

    @property
    def grants_effects(self) -> bool:
        return self.item_type in EFFECT_ITEM_TYPES and self.is_equipped

    @property
    def counts_toward_carried_mass(self) -> bool:
        return self.carry_status != CarryStatus.STORED and self.item_type != ItemType.VEHICLE


@dataclass
class Wound:
    """A lasting wound."""
    wound_type: WoundType
    location: Optional[str] = None
    source: str = ""


@dataclass
class ConditionState:
    """Current damage track values."""
    damage: int = 0
    fatigue: int = 0
    stunned: bool = False
    unconscious: bool = False
    bleeding: bool = False


@dataclass
class CharacterSnapshot:
    """
    Read-only view of a character at the moment of resolution.

    Attribute, skill, condition and equipment data as stored; all derived
    values come from AttributeDerivationEngine.
    """
    character_id: str
    name: str = ""
    attributes: dict[AttributeKey, AttributeScore] = field(default_factory=dict)
    skills: list[Skill] = field(default_factory=list)
    items: list[Item] = field(default_factory=list)
    condition: ConditionState = field(default_factory=ConditionState)
    edge_burned: int = 0
    wounds: list[Wound] = field(default_factory=list)
    active_effects: list[ActiveEffect] = field(default_factory=list)
    size: TargetSize = TargetSize.MEDIUM
    cover: CoverLevel = CoverLevel.NONE
    prone: bool = False

    def get_attribute(self, key: AttributeKey) -> AttributeScore:
        return self.attributes.get(key) or AttributeScore()

    def get_skill(self, name: Optional[str]) -> Optional[Skill]:
        """Find a skill by name, ignoring case."""
        if not name:
            return None
        wanted = name.lower()
        for skill in self.skills:
            if skill.name.lower() == wanted:
                return skill
        return None

    def get_item(self, item_id: Optional[str]) -> Optional[Item]:
        if not item_id:
            return None
        for item in self.items:
            if item.item_id == item_id:
                return item
        return None

    def equipped_items(self) -> list[Item]:
        return [item for item in self.items if item.is_equipped]

    def equipped_armor(self) -> list[Item]:
        return [item for item in self.equipped_items() if item.armor is not None]

    def equipped_melee_weapon(self) -> Optional[Item]:
        for item in self.equipped_items():
            if item.weapon is not None and item.weapon.is_melee:
                return item
        return None


# =============================================================================
# VALUE COERCION
# =============================================================================


def coerce_number(value: Any) -> float:
    """Read a stored numeric value; anything non-numeric counts as zero."""
    if isinstance(value, bool):
        return 0.0
    try:
        number = float(value) if isinstance(value, (int, float)) else float(str(value).strip())
    except (TypeError, ValueError):
        return 0.0
    return 0.0 if math.isnan(number) else number


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounding up."""
    return int(math.floor(value + 0.5))
