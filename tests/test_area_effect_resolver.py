"""
Unit tests for area effect attacks.

Tests AreaEffectResolver from mechfoundry/combat/area_effect_resolver.py:
scatter on a miss, blast radius membership and damage falloff.
"""

from collections import Counter
from dataclasses import replace

import pytest

from mechfoundry.combat.area_effect_resolver import (
    AreaAttackRequest,
    AreaEffectResolver,
    AreaTarget,
    Position,
    ScatterResult,
)
from mechfoundry.data_models import DamageType, DiceRoller, HitLocation, InsufficientResourceError
from tests.helpers import ScriptedRoller, make_character


@pytest.fixture
def resolver():
    return AreaEffectResolver()


@pytest.fixture
def grenadier(attacker, grenade_launcher, grenade_rounds):
    """Attacker with a loaded grenade launcher and no Support Weapons skill (+2 with the area bonus)."""
    return replace(attacker, items=[grenade_launcher, grenade_rounds])


class TestScatter:
    """Tests for scatter direction and distance."""

    def test_distance_is_margin_of_failure(self):
        roller = ScriptedRoller([3])
        scatter = AreaEffectResolver.scatter(-4, roller)
        assert scatter.distance_meters == 4
        assert scatter.clock_direction == 3
        assert scatter.heading_degrees == 90
        assert scatter.label == "3 o'clock"
        assert roller.calls == [(1, 12)]

    def test_twelve_o_clock_is_zero_degrees(self):
        assert AreaEffectResolver.scatter(-1, ScriptedRoller([12])).heading_degrees == 0

    def test_headings_cover_all_clock_positions(self):
        roller = DiceRoller(seed=2024)
        headings = [AreaEffectResolver.scatter(-2, roller).heading_degrees for _ in range(600)]
        assert set(headings) == set(range(0, 360, 30))

    def test_headings_are_evenly_spread(self):
        """Test that each clock heading turns up close to 1 time in 12."""
        roller = DiceRoller(seed=1200)
        trials = 1200
        counts = Counter(AreaEffectResolver.scatter(-1, roller).clock_direction for _ in range(trials))
        expected = trials / 12
        assert sorted(counts) == list(range(1, 13))
        for clock, count in counts.items():
            assert abs(count - expected) <= expected * 0.4, f"{clock} o'clock came up {count} times"

    def test_offset(self):
        dx, dy = ScatterResult(clock_direction=3, distance_meters=4, heading_degrees=90).offset()
        assert dx == pytest.approx(4)
        assert dy == pytest.approx(0, abs=1e-9)

    def test_no_scatter_keeps_aim_point(self):
        aim = Position(5, 5)
        impact = AreaEffectResolver.apply_scatter(aim, None)
        assert impact == aim
        assert impact is not aim


class TestFalloff:
    """Tests for damage falloff from the center."""

    def test_partial_meters_round_down(self):
        """Test BD 6 at 4.7 m: 4 whole meters, 2 damage."""
        assert AreaEffectResolver.falloff(6, 4, 4.7) == (2, 0, 4)

    def test_center(self):
        assert AreaEffectResolver.falloff(6, 4, 0.3) == (6, 4, 0)

    def test_never_negative(self):
        assert AreaEffectResolver.falloff(3, 1, 5) == (0, 0, 5)


class TestResolve:
    """Tests for full area attack resolution."""

    def test_hit_damages_targets_in_blast(self, resolver, grenadier, defender, unarmored_target):
        far = make_character("far", "Far Away")
        edge = make_character("edge", "Blast Edge")
        request = AreaAttackRequest(
            weapon_id="launcher",
            aim_point=Position(0, 0),
            targets=[
                AreaTarget(far, Position(10, 0)),
                AreaTarget(edge, Position(6, 0)),
                AreaTarget(unarmored_target, Position(3, 4)),
                AreaTarget(defender, Position(0, 2)),
            ],
        )
        roller = ScriptedRoller([3, 4, 3, 3, 1, 3, 4])
        result = resolver.resolve(grenadier, request, roller)

        assert result.roll.success
        assert not result.scattered
        assert result.blast_radius == 6
        assert result.damage_type == DamageType.EXPLOSIVE
        assert result.ammunition.required == 1
        assert [t.target_id for t in result.targets] == ["kell", "target"]

        kell, dummy = result.targets
        assert kell.effective_damage == 4
        assert kell.effective_penetration == 2
        assert kell.hit_location.location == HitLocation.CHEST
        assert kell.armor.effective_armor == 2
        assert kell.applied_damage == 2
        assert kell.fatigue_damage == 1

        assert dummy.distance == pytest.approx(5)
        assert dummy.effective_damage == 1
        assert dummy.hit_location.location == HitLocation.LEGS
        assert dummy.applied_damage == 1

    def test_miss_scatters_onto_target(self, resolver, grenadier, unarmored_target):
        request = AreaAttackRequest(
            weapon_id="launcher",
            aim_point=Position(0, 0),
            targets=[AreaTarget(unarmored_target, Position(2, 0))],
        )
        roller = ScriptedRoller([1, 2, 3, 3, 4])
        result = resolver.resolve(grenadier, request, roller)

        assert not result.roll.success
        assert result.scatter.distance_meters == 2
        assert result.impact_point.x == pytest.approx(2)
        assert result.impact_point.y == pytest.approx(0, abs=1e-9)
        assert result.targets[0].effective_damage == 6
        assert result.targets[0].applied_damage == 6

    def test_no_targets_in_blast(self, resolver, grenadier):
        request = AreaAttackRequest(
            weapon_id="launcher",
            aim_point=Position(0, 0),
            targets=[AreaTarget(make_character("far"), Position(30, 30))],
        )
        roller = ScriptedRoller([4, 4])
        result = resolver.resolve(grenadier, request, roller)
        assert result.targets == []
        assert roller.call_count == 1

    def test_empty_launcher_rolls_nothing(self, resolver, grenadier):
        launcher = grenadier.get_item("launcher")
        empty = replace(launcher, weapon=replace(launcher.weapon, magazine_rounds=0))
        snapshot = replace(grenadier, items=[empty, grenadier.get_item("grenades")])
        roller = ScriptedRoller()
        with pytest.raises(InsufficientResourceError):
            resolver.resolve(snapshot, AreaAttackRequest("launcher", Position(0, 0)), roller)
        assert roller.call_count == 0

    def test_area_bonus(self, resolver, grenadier):
        result = resolver.resolve(grenadier, AreaAttackRequest("launcher", Position(0, 0)), ScriptedRoller([3, 3]))
        assert result.modifiers.total == 2

    @pytest.mark.parametrize("spotter,total", [(False, 2 - 4), (True, 2 - 2)])
    def test_indirect_fire(self, resolver, grenadier, spotter, total):
        request = AreaAttackRequest("launcher", Position(0, 0), indirect_fire=True, spotter=spotter)
        result = resolver.resolve(grenadier, request, ScriptedRoller([6, 5]))
        assert result.modifiers.total == total
