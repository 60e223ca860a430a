"""
Pytest fixtures for the Mech Foundry engine test suite.

Provides scripted and seeded dice, sample characters and their gear.
"""

import pytest

from mechfoundry.config import EngineConfig
from mechfoundry.data_models import (
    AmmoCategory,
    AmmoStats,
    ArmorLocation,
    ArmorStats,
    AttributeKey,
    CarryStatus,
    DamageFactor,
    DamageType,
    DiceRoller,
    Item,
    ItemType,
    RangeBrackets,
    Skill,
    WeaponCategory,
    WeaponStats,
)
from tests.helpers import ScriptedRoller, make_attributes, make_character


# =============================================================================
# DICE FIXTURES
# =============================================================================


@pytest.fixture
def scripted_dice():
    """Factory for a ScriptedRoller loaded with the given faces."""
    def _make(*faces: int) -> ScriptedRoller:
        return ScriptedRoller(faces)
    return _make


@pytest.fixture
def seeded_dice():
    """Provide a seeded DiceRoller for reproducible tests."""
    return DiceRoller(seed=42)


@pytest.fixture
def config():
    return EngineConfig()


# =============================================================================
# EQUIPMENT FIXTURES
# =============================================================================


@pytest.fixture
def vibroblade():
    """Armed melee weapon: BD 5, AP 2 (M)."""
    return Item(
        item_id="vibroblade",
        name="Vibroblade",
        item_type=ItemType.WEAPON,
        carry_status=CarryStatus.EQUIPPED,
        mass=1.5,
        weapon=WeaponStats(
            category=WeaponCategory.MELEE,
            base_damage=5,
            armor_penetration=2,
            penetration_factor="M",
            skill_name="Melee Weapons",
        ),
    )


@pytest.fixture
def assault_rifle():
    """Burst-capable rifle: BD 6, AP 3 (B), recoil 1, burst rating 5."""
    return Item(
        item_id="rifle",
        name="Assault Rifle",
        item_type=ItemType.WEAPON,
        carry_status=CarryStatus.EQUIPPED,
        mass=4.0,
        weapon=WeaponStats(
            category=WeaponCategory.RANGED,
            base_damage=6,
            damage_factor=DamageFactor.BURST,
            armor_penetration=3,
            penetration_factor="B",
            skill_name="Small Arms",
            recoil=1,
            burst_rating=5,
            range=RangeBrackets(point_blank=5, short=30, medium=60, long=120, extreme=200),
            magazine_capacity=30,
            magazine_rounds=30,
            loaded_ammo_id="rifle_mag",
        ),
    )


@pytest.fixture
def rifle_magazine():
    return Item(
        item_id="rifle_mag",
        name="Rifle Magazine",
        item_type=ItemType.AMMO,
        mass=0.5,
        ammo=AmmoStats(category=AmmoCategory.BALLISTICS, quantity=30),
    )


@pytest.fixture
def laser_rifle():
    """Energy weapon drawing 2 power points per shot."""
    return Item(
        item_id="laser",
        name="Laser Rifle",
        item_type=ItemType.WEAPON,
        carry_status=CarryStatus.EQUIPPED,
        mass=3.0,
        weapon=WeaponStats(
            category=WeaponCategory.RANGED,
            base_damage=5,
            armor_penetration=4,
            penetration_factor="E",
            skill_name="Small Arms",
            power_per_shot=2,
            loaded_ammo_id="power_pack",
        ),
    )


@pytest.fixture
def power_pack():
    return Item(
        item_id="power_pack",
        name="Power Pack",
        item_type=ItemType.AMMO,
        mass=0.5,
        ammo=AmmoStats(category=AmmoCategory.ENERGY, quantity=10),
    )


@pytest.fixture
def grenade_launcher():
    """Area weapon: BD 6, AP 4 (X), one round loaded."""
    return Item(
        item_id="launcher",
        name="Grenade Launcher",
        item_type=ItemType.WEAPON,
        carry_status=CarryStatus.EQUIPPED,
        mass=5.0,
        weapon=WeaponStats(
            category=WeaponCategory.RANGED,
            base_damage=6,
            damage_factor=DamageFactor.AREA,
            armor_penetration=4,
            penetration_factor="X",
            skill_name="Support Weapons",
            magazine_capacity=1,
            magazine_rounds=1,
            loaded_ammo_id="grenades",
        ),
    )


@pytest.fixture
def grenade_rounds():
    return Item(
        item_id="grenades",
        name="Grenade Rounds",
        item_type=ItemType.AMMO,
        mass=1.0,
        ammo=AmmoStats(category=AmmoCategory.BALLISTICS, quantity=4),
    )


@pytest.fixture
def flak_vest():
    """Torso armor, BAR 5/6/3/4 (M/B/E/X)."""
    return Item(
        item_id="flak_vest",
        name="Flak Vest",
        item_type=ItemType.ARMOR,
        equipped=True,
        mass=5.0,
        armor=ArmorStats(
            coverage=[ArmorLocation.TORSO],
            ratings={
                DamageType.MELEE: 5,
                DamageType.BALLISTIC: 6,
                DamageType.ENERGY: 3,
                DamageType.EXPLOSIVE: 4,
            },
        ),
    )


@pytest.fixture
def combat_helmet():
    """Head armor, BAR 4/4/2/3."""
    return Item(
        item_id="helmet",
        name="Combat Helmet",
        item_type=ItemType.ARMOR,
        equipped=True,
        mass=1.0,
        armor=ArmorStats(
            coverage=[ArmorLocation.HEAD],
            ratings={
                DamageType.MELEE: 4,
                DamageType.BALLISTIC: 4,
                DamageType.ENERGY: 2,
                DamageType.EXPLOSIVE: 3,
            },
        ),
    )


# =============================================================================
# CHARACTER FIXTURES
# =============================================================================


@pytest.fixture
def attacker(vibroblade, assault_rifle, rifle_magazine):
    """
    Mara Voss: STR/RFL/DEX 6, Melee Weapons 2, Small Arms 3.

    Every link modifier is 0, so her melee modifier is +2 and her ranged
    modifier +3, both against TN 7.
    """
    return make_character(
        "mara",
        "Mara Voss",
        attributes=make_attributes(str=6, bod=5, rfl=6, dex=6, int=5, wil=5, cha=4, edg=3),
        skills=[
            Skill("Melee Weapons", experience=50, linked_attributes=[AttributeKey.RFL, AttributeKey.DEX]),
            Skill("Small Arms", experience=80, linked_attributes=[AttributeKey.DEX]),
        ],
        items=[vibroblade, assault_rifle, rifle_magazine],
    )


@pytest.fixture
def defender(flak_vest, combat_helmet):
    """
    Kell Dorn: STR/RFL/DEX 5, BOD 6, Martial Arts 0, wearing a flak vest and helmet.

    Damage capacity 12, fatigue capacity 10.
    """
    return make_character(
        "kell",
        "Kell Dorn",
        attributes=make_attributes(str=5, bod=6, rfl=5, dex=5, int=5, wil=5, cha=5, edg=2),
        skills=[
            Skill("Martial Arts", experience=20, linked_attributes=[AttributeKey.RFL]),
        ],
        items=[flak_vest, combat_helmet],
    )


@pytest.fixture
def unarmored_target():
    return make_character("target", "Training Dummy")
