"""
Unit tests for combat action resolution.

Tests CombatActionResolver from mechfoundry/combat/combat_engine.py:
attack types, ammunition checks, modifiers and damage formulas.
"""

from dataclasses import replace

import pytest

from mechfoundry.combat.combat_engine import (
    UNARMED_SKILL,
    AttackRequest,
    CombatActionResolver,
)
from mechfoundry.data_models import (
    AmmoCategory,
    AmmoStats,
    AttackType,
    CoverLevel,
    DamageFactor,
    DamageType,
    FiringMode,
    HitLocation,
    InsufficientResourceError,
    Item,
    ItemType,
    RangeBand,
    TargetSize,
)
from tests.helpers import ScriptedRoller, make_character


@pytest.fixture
def resolver():
    return CombatActionResolver()


def with_items(snapshot, *items):
    return replace(snapshot, items=list(items))


def stats_for(resolver, attacker, item_id):
    return resolver.effective_weapon_stats(attacker, attacker.get_item(item_id))


class TestAttackType:
    """Tests for mapping weapon and firing mode to an attack type."""

    def test_melee_weapon(self, resolver, attacker):
        stats = stats_for(resolver, attacker, "vibroblade")
        assert resolver.determine_attack_type(stats, FiringMode.SINGLE) == AttackType.STANDARD_MELEE

    @pytest.mark.parametrize("mode,expected", [
        (FiringMode.SINGLE, AttackType.STANDARD_RANGED),
        (FiringMode.BURST, AttackType.BURST_FIRE),
        (FiringMode.CONTROLLED, AttackType.CONTROLLED_BURST),
        (FiringMode.SUPPRESSION, AttackType.SUPPRESSION_FIRE),
    ])
    def test_burst_capable_rifle(self, resolver, attacker, mode, expected):
        stats = stats_for(resolver, attacker, "rifle")
        assert resolver.determine_attack_type(stats, mode) == expected

    def test_burst_mode_on_single_shot_weapon(self, resolver, attacker, laser_rifle, power_pack):
        gunner = with_items(attacker, laser_rifle, power_pack)
        stats = stats_for(resolver, gunner, "laser")
        assert resolver.determine_attack_type(stats, FiringMode.BURST) == AttackType.STANDARD_RANGED

    def test_area_weapon(self, resolver, attacker, grenade_launcher, grenade_rounds):
        gunner = with_items(attacker, grenade_launcher, grenade_rounds)
        stats = stats_for(resolver, gunner, "launcher")
        assert resolver.determine_attack_type(stats, FiringMode.SINGLE) == AttackType.AREA_EFFECT
        assert stats.damage_type == DamageType.EXPLOSIVE

    def test_subduing_weapon(self, resolver, attacker, vibroblade):
        stunner = replace(vibroblade, item_id="baton", weapon=replace(vibroblade.weapon, subduing=True))
        brawler = with_items(attacker, stunner)
        stats = stats_for(resolver, brawler, "baton")
        assert resolver.determine_attack_type(stats, FiringMode.SINGLE) == AttackType.SUBDUING

    def test_override(self, resolver, attacker):
        stats = stats_for(resolver, attacker, "rifle")
        assert resolver.determine_attack_type(stats, FiringMode.SINGLE, AttackType.SPLASH_FIRE) == AttackType.SPLASH_FIRE


class TestEffectiveWeaponStats:
    """Tests for loaded ammunition changing weapon stats."""

    def test_ballistic_ammunition_modifies(self, resolver, attacker, assault_rifle):
        armor_piercing = Item(
            item_id="ap_mag",
            name="AP Magazine",
            item_type=ItemType.AMMO,
            ammo=AmmoStats(category=AmmoCategory.BALLISTICS, quantity=30, ap_modifier=2, bd_modifier=-1, range_multiplier=0.5),
        )
        rifle = replace(assault_rifle, weapon=replace(assault_rifle.weapon, loaded_ammo_id="ap_mag"))
        gunner = with_items(attacker, rifle, armor_piercing)
        stats = stats_for(resolver, gunner, "rifle")
        assert stats.armor_penetration == 5
        assert stats.base_damage == 5
        assert stats.range.point_blank == 2
        assert stats.range.short == 15
        assert stats.range.long == 60
        # Stored weapon untouched
        assert rifle.weapon.range.short == 30

    def test_ordnance_replaces_profile(self, resolver, attacker, grenade_launcher):
        shells = Item(
            item_id="grenades",
            name="HE Shells",
            item_type=ItemType.AMMO,
            ammo=AmmoStats(category=AmmoCategory.ORDNANCE, quantity=4, base_damage=9, armor_penetration=6, damage_type="X"),
        )
        gunner = with_items(attacker, grenade_launcher, shells)
        stats = stats_for(resolver, gunner, "launcher")
        assert stats.base_damage == 9
        assert stats.armor_penetration == 6
        assert stats.damage_factor == DamageFactor.NONE
        assert stats.damage_type == DamageType.EXPLOSIVE

    def test_power_pack_changes_nothing(self, resolver, attacker, laser_rifle, power_pack):
        gunner = with_items(attacker, laser_rifle, power_pack)
        stats = stats_for(resolver, gunner, "laser")
        assert stats.base_damage == 5
        assert stats.armor_penetration == 4
        assert stats.damage_type == DamageType.ENERGY


class TestAmmunition:
    """Tests for ammunition and power checks."""

    def test_insufficient_rounds_rolls_nothing(self, resolver, attacker, assault_rifle, rifle_magazine, unarmored_target):
        """Test that a 3-round burst with 1 round loaded fails before any dice."""
        rifle = replace(assault_rifle, weapon=replace(assault_rifle.weapon, magazine_rounds=1))
        gunner = with_items(attacker, rifle, rifle_magazine)
        roller = ScriptedRoller()
        request = AttackRequest(weapon_id="rifle", firing_mode=FiringMode.BURST, burst_shots=3, target=unarmored_target)

        with pytest.raises(InsufficientResourceError) as excinfo:
            resolver.resolve_attack(gunner, request, roller)

        assert excinfo.value.resource == "ammunition"
        assert excinfo.value.required == 3
        assert excinfo.value.available == 1
        assert roller.call_count == 0

    def test_no_magazine_loaded(self, resolver, attacker, assault_rifle):
        rifle = replace(assault_rifle, weapon=replace(assault_rifle.weapon, loaded_ammo_id=None))
        gunner = with_items(attacker, rifle)
        with pytest.raises(InsufficientResourceError):
            resolver.check_ammunition(gunner, rifle, 1)

    def test_burst_reports_rounds_spent(self, resolver, attacker, assault_rifle):
        use = resolver.check_ammunition(attacker, assault_rifle, 5)
        assert use.resource == "ammunition"
        assert use.required == 5
        assert use.remaining == 25
        assert use.source_item_id == "rifle"

    def test_energy_weapon_draws_power_per_shot(self, resolver, attacker, laser_rifle, power_pack):
        gunner = with_items(attacker, laser_rifle, power_pack)
        use = resolver.check_ammunition(gunner, laser_rifle, 3)
        assert use.resource == "power"
        assert use.required == 6
        assert use.available == 10
        assert use.source_item_id == "power_pack"

    def test_drained_power_pack(self, resolver, attacker, laser_rifle, power_pack):
        drained = replace(power_pack, ammo=replace(power_pack.ammo, quantity=1))
        gunner = with_items(attacker, laser_rifle, drained)
        with pytest.raises(InsufficientResourceError) as excinfo:
            resolver.check_ammunition(gunner, laser_rifle, 1)
        assert excinfo.value.resource == "power"
        assert excinfo.value.shortfall == 1

    def test_melee_weapon_needs_nothing(self, resolver, attacker, vibroblade):
        assert resolver.check_ammunition(attacker, vibroblade, 1) is None

    def test_shots_fired(self, resolver, assault_rifle):
        request = AttackRequest(num_targets=4)
        assert resolver.shots_fired(AttackType.SUPPRESSION_FIRE, assault_rifle.weapon, request) == (10, 4)
        assert resolver.shots_fired(AttackType.CONTROLLED_BURST, assault_rifle.weapon, AttackRequest()) == (2, 1)
        assert resolver.shots_fired(AttackType.STANDARD_RANGED, assault_rifle.weapon, request) == (1, 1)


class TestComputeDamage:
    """Tests for the per-attack-type damage formulas."""

    def test_armed_melee(self, resolver, attacker):
        """Test BD 5 + ceil(6/4) + ceil(5/4) = 9 with 1 fatigue."""
        stats = stats_for(resolver, attacker, "vibroblade")
        damage = resolver.compute_damage(AttackType.STANDARD_MELEE, stats, 6, True, 5)
        assert damage.standard_damage == 9
        assert damage.fatigue_damage == 1
        assert damage.strength_damage == 2
        assert damage.margin_damage == 2
        assert damage.damage_type == DamageType.MELEE

    def test_unarmed_melee_is_fatigue_only(self, resolver, attacker):
        stats = resolver.effective_weapon_stats(attacker, None)
        damage = resolver.compute_damage(AttackType.STANDARD_MELEE, stats, 6, True, 2)
        assert damage.standard_damage == 0
        assert damage.fatigue_damage == 3
        assert damage.is_subduing

    def test_standard_ranged(self, resolver, attacker):
        """Test BD 6 + floor(7/4) = 7 with 1 fatigue."""
        stats = stats_for(resolver, attacker, "rifle")
        damage = resolver.compute_damage(AttackType.STANDARD_RANGED, stats, 6, True, 7)
        assert damage.standard_damage == 7
        assert damage.fatigue_damage == 1
        assert damage.armor_penetration == 3
        assert damage.damage_type == DamageType.BALLISTIC

    def test_burst_margin_capped_by_extra_shots(self, resolver, attacker):
        stats = stats_for(resolver, attacker, "rifle")
        assert resolver.compute_damage(AttackType.BURST_FIRE, stats, 6, True, 6, extra_shots=4).standard_damage == 10
        assert resolver.compute_damage(AttackType.BURST_FIRE, stats, 6, True, 2, extra_shots=4).standard_damage == 8

    def test_subduing_ranged(self, resolver, attacker):
        stats = replace(stats_for(resolver, attacker, "rifle"), damage_factor=DamageFactor.SUBDUING)
        damage = resolver.compute_damage(AttackType.SUBDUING, stats, 6, True, 4)
        assert damage.standard_damage == 0
        assert damage.fatigue_damage == 7

    @pytest.mark.parametrize("success,margin", [(False, -2), (False, 3), (True, -1)])
    def test_no_damage_without_success(self, resolver, attacker, success, margin):
        stats = stats_for(resolver, attacker, "rifle")
        damage = resolver.compute_damage(AttackType.STANDARD_RANGED, stats, 6, success, margin)
        assert not damage.has_damage

    def test_item_damage_bonus(self, resolver, attacker):
        stats = stats_for(resolver, attacker, "rifle")
        damage = resolver.compute_damage(AttackType.STANDARD_RANGED, stats, 6, True, 0, item_damage_bonus=2)
        assert damage.standard_damage == 8
        assert damage.item_damage_bonus == 2


class TestSituationalModifiers:
    """Tests for cover, size, range and aimed shots."""

    def _resolve_miss(self, resolver, attacker, **request_kwargs):
        request = AttackRequest(weapon_id="rifle", **request_kwargs)
        return resolver.resolve_attack(attacker, request, ScriptedRoller([1, 2]))

    def test_cover_and_size(self, resolver, attacker):
        target = make_character("bunker", cover=CoverLevel.HEAVY, size=TargetSize.LARGE)
        resolution = self._resolve_miss(resolver, attacker, target=target)
        labels = {c.label: c.value for c in resolution.modifiers.situational}
        assert labels == {"cover": -3, "target size": 1}
        assert resolution.total_modifier == 3 - 3 + 1

    def test_ignore_cover(self, resolver, attacker):
        target = make_character("bunker", cover=CoverLevel.FULL)
        resolution = self._resolve_miss(resolver, attacker, target=target, ignore_cover=True)
        assert resolution.total_modifier == 3

    def test_prone_target_at_range(self, resolver, attacker):
        target = make_character("crawler", prone=True)
        assert self._resolve_miss(resolver, attacker, target=target).total_modifier == 2

    @pytest.mark.parametrize("distance,band,modifier", [
        (4.2, RangeBand.POINT_BLANK, 1),
        (30, RangeBand.SHORT, 0),
        (45, RangeBand.MEDIUM, -2),
        (119.5, RangeBand.LONG, -4),
        (250, RangeBand.OUT_OF_RANGE, -6),
    ])
    def test_range_band(self, resolver, attacker, distance, band, modifier):
        resolution = self._resolve_miss(resolver, attacker, distance_meters=distance)
        assert resolution.range.band == band
        assert resolution.total_modifier == 3 + modifier

    def test_aimed_shot(self, resolver, attacker):
        resolution = self._resolve_miss(resolver, attacker, aimed_location=HitLocation.HEAD)
        assert resolution.total_modifier == 3 - 5

    def test_friendly_in_line_of_fire(self, resolver, attacker):
        assert self._resolve_miss(resolver, attacker, friendly_in_line_of_fire=True).total_modifier == 2

    def test_burst_recoil(self, resolver, attacker):
        resolution = self._resolve_miss(resolver, attacker, firing_mode=FiringMode.BURST, burst_shots=3)
        assert resolution.total_modifier == 3 - 1

    def test_controlled_burst_penalty(self, resolver, attacker):
        resolution = self._resolve_miss(resolver, attacker, firing_mode=FiringMode.CONTROLLED)
        assert resolution.total_modifier == 3 - 1
        assert resolution.ammunition.required == 2

    def test_suppression_area(self, resolver, attacker):
        resolution = self._resolve_miss(
            resolver, attacker, firing_mode=FiringMode.SUPPRESSION, suppression_area=4,
        )
        assert resolution.total_modifier == 3 - 1 - 3
        assert resolution.ammunition.required == 10

    def test_area_weapon_gets_area_bonus(self, resolver, attacker, grenade_launcher, grenade_rounds):
        gunner = with_items(attacker, grenade_launcher, grenade_rounds)
        resolution = resolver.resolve_attack(gunner, AttackRequest(weapon_id="launcher"), ScriptedRoller([1, 2]))
        labels = {c.label: c.value for c in resolution.modifiers.situational}
        assert resolution.attack_type == AttackType.AREA_EFFECT
        assert labels == {"area attack": 2}
        assert resolution.total_modifier == 2


class TestResolveAttack:
    """Tests for full attack resolution."""

    def test_single_shot_hit(self, resolver, attacker, unarmored_target):
        """Test a 3+5 roll at +3: MoS 4, 7 damage, legs take ceil(7 x 0.75) = 6."""
        roller = ScriptedRoller([3, 5, 3, 4])
        request = AttackRequest(weapon_id="rifle", target=unarmored_target)
        resolution = resolver.resolve_attack(attacker, request, roller)

        assert resolution.attack_type == AttackType.STANDARD_RANGED
        assert len(resolution.rolls) == 1
        roll = resolution.rolls[0]
        assert roll.hit
        assert roll.outcome.margin_of_success == 4
        assert roll.damage.standard_damage == 7
        assert roll.hit_location.location == HitLocation.LEGS
        assert roll.armor.final_damage == 7
        assert roll.armor.applied_damage == 6
        assert roll.target_id == "target"
        assert not roll.wound_effect_due
        assert resolution.ammunition.required == 1

    def test_burst_against_helmet(self, resolver, attacker, defender):
        """Test a 5-round burst: MoS 6 capped at 4 extra shots, head hit through the helmet."""
        roller = ScriptedRoller([5, 6, 1, 1])
        request = AttackRequest(weapon_id="rifle", firing_mode=FiringMode.BURST, burst_shots=5, target=defender)
        roll = resolver.resolve_attack(attacker, request, roller).rolls[0]

        assert roll.outcome.margin_of_success == 6
        assert roll.damage.standard_damage == 10
        assert roll.hit_location.location == HitLocation.HEAD
        assert roll.armor.effective_armor == 1
        assert roll.armor.final_damage == 9
        assert roll.armor.applied_damage == 18

    def test_miss_deals_nothing(self, resolver, attacker, unarmored_target):
        roller = ScriptedRoller([1, 2])
        request = AttackRequest(weapon_id="rifle", target=unarmored_target)
        resolution = resolver.resolve_attack(attacker, request, roller)
        roll = resolution.rolls[0]
        assert not roll.hit
        assert not roll.damage.has_damage
        assert roll.armor is None
        assert resolution.hits == []
        assert roller.call_count == 1

    def test_doubles_flag_wound_effect(self, resolver, attacker, unarmored_target):
        roller = ScriptedRoller([4, 4, 3, 4])
        request = AttackRequest(weapon_id="rifle", target=unarmored_target)
        roll = resolver.resolve_attack(attacker, request, roller).rolls[0]
        assert roll.outcome.is_doubles
        assert roll.wound_effect_due

    def test_aimed_shot_skips_location_roll(self, resolver, attacker, unarmored_target):
        """Test that an aimed hit lands where aimed without a location roll."""
        roller = ScriptedRoller([6, 5])
        request = AttackRequest(weapon_id="rifle", target=unarmored_target, aimed_location=HitLocation.CHEST)
        roll = resolver.resolve_attack(attacker, request, roller).rolls[0]
        assert roll.hit_location.aimed
        assert roll.hit_location.location == HitLocation.CHEST
        assert roller.call_count == 1

    def test_suppression_rolls_once_per_target(self, resolver, attacker):
        targets = [make_character(f"t{i}") for i in range(3)]
        roller = ScriptedRoller([1, 2, 1, 2, 1, 2])
        request = AttackRequest(
            weapon_id="rifle",
            firing_mode=FiringMode.SUPPRESSION,
            suppression_targets=targets,
        )
        resolution = resolver.resolve_attack(attacker, request, roller)
        assert [r.target_id for r in resolution.rolls] == ["t0", "t1", "t2"]
        assert roller.calls == [(2, 6)] * 3

    def test_melee_against_armor(self, resolver, attacker, defender):
        roller = ScriptedRoller([5, 6, 2, 4, 2])
        request = AttackRequest(weapon_id="vibroblade", target=defender)
        resolution = resolver.resolve_attack(attacker, request, roller)
        roll = resolution.rolls[0]

        assert resolution.attack_type == AttackType.STANDARD_MELEE
        assert resolution.ammunition is None
        assert roll.damage.standard_damage == 9
        assert roll.hit_location.location == HitLocation.CHEST
        assert roll.armor.effective_armor == 3
        assert roll.armor.applied_damage == 6

    def test_unknown_weapon_fights_unarmed(self, resolver, attacker, unarmored_target):
        roller = ScriptedRoller([4, 5])
        request = AttackRequest(weapon_id="missing", target=unarmored_target)
        resolution = resolver.resolve_attack(attacker, request, roller)

        assert resolution.weapon_name == "Unarmed"
        assert resolution.weapon_id is None
        assert resolution.modifiers.skill_name == UNARMED_SKILL
        assert resolution.modifiers.skill_found is False
        damage = resolution.rolls[0].damage
        assert damage.standard_damage == 0
        assert damage.fatigue_damage == 3
        assert roller.call_count == 1

    def test_snapshots_unchanged(self, resolver, attacker, defender):
        before_attacker = replace(attacker)
        before_defender = replace(defender)
        request = AttackRequest(weapon_id="rifle", firing_mode=FiringMode.BURST, burst_shots=5, target=defender)
        resolver.resolve_attack(attacker, request, ScriptedRoller([5, 6, 1, 1]))
        assert attacker == before_attacker
        assert defender == before_defender
        assert attacker.get_item("rifle").weapon.magazine_rounds == 30
