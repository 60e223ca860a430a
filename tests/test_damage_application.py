"""
Unit tests for damage application planning.

Tests DamageApplicationPlanner from mechfoundry/combat/damage_application.py.
Kell (the defender fixture) has damage capacity 12, fatigue capacity 10,
critical threshold 9 and a bleeding threshold of 3.
"""

from dataclasses import replace

import pytest

from mechfoundry.combat.damage_application import DamageApplicationPlanner
from mechfoundry.data_models import ConditionState
from tests.helpers import ScriptedRoller


@pytest.fixture
def planner():
    return DamageApplicationPlanner()


def hurt(snapshot, **condition):
    return replace(snapshot, condition=ConditionState(**condition))


class TestStandardDamage:
    """Tests for damage to the standard damage track."""

    @pytest.mark.parametrize("damage", [0, -2])
    def test_nothing_through_armor(self, planner, defender, damage):
        change = planner.plan_damage(defender, damage)
        assert change.absorbed
        assert change.new_damage == 0
        assert change.new_fatigue == 0
        assert not change.stunned

    def test_damage_adds_fatigue_and_stuns(self, planner, defender):
        change = planner.plan_damage(defender, 4)
        assert change.damage_taken == 4
        assert change.fatigue_taken == 1
        assert change.new_damage == 4
        assert change.new_fatigue == 1
        assert change.stunned
        assert not change.critically_injured
        assert not change.dead

    def test_heavy_damage_requires_bleeding_check(self, planner, defender):
        assert planner.plan_damage(defender, 3).bleeding_check_required
        assert not planner.plan_damage(defender, 2).bleeding_check_required

    def test_already_bleeding(self, planner, defender):
        change = planner.plan_damage(hurt(defender, bleeding=True), 5)
        assert not change.bleeding_check_required

    def test_becoming_critically_injured(self, planner, defender):
        change = planner.plan_damage(hurt(defender, damage=6), 3)
        assert change.new_damage == 9
        assert change.critically_injured
        assert change.newly_critical
        assert change.needs_consciousness_check

    def test_already_critical(self, planner, defender):
        change = planner.plan_damage(hurt(defender, damage=9), 1)
        assert change.critically_injured
        assert not change.newly_critical

    def test_damage_past_capacity_kills(self, planner, defender):
        change = planner.plan_damage(hurt(defender, damage=10), 3)
        assert change.new_damage == 13
        assert change.dying
        assert change.dead
        assert not change.needs_consciousness_check

    def test_damage_reaching_capacity_kills(self, planner, defender):
        change = planner.plan_damage(hurt(defender, damage=8), 4)
        assert change.dead
        assert not change.dying

    def test_fatigue_from_damage_can_knock_out(self, planner, defender):
        change = planner.plan_damage(hurt(defender, fatigue=9), 2)
        assert change.new_fatigue == 10
        assert change.unconscious
        assert change.excess_fatigue_damage == 0
        assert change.new_damage == 2


class TestSubduingDamage:
    """Tests for damage to the fatigue track."""

    def test_subduing_goes_to_fatigue(self, planner, defender):
        change = planner.plan_damage(defender, 4, subduing=True)
        assert change.damage_taken == 0
        assert change.fatigue_taken == 4
        assert change.new_damage == 0
        assert change.new_fatigue == 4
        assert change.stunned
        assert not change.bleeding_check_required

    def test_excess_fatigue_becomes_damage(self, planner, defender):
        change = planner.plan_damage(hurt(defender, fatigue=8), 4, subduing=True)
        assert change.unconscious
        assert change.excess_fatigue_damage == 2
        assert change.new_fatigue == 10
        assert change.new_damage == 2
        assert not change.dead

    def test_excess_fatigue_can_kill(self, planner, defender):
        change = planner.plan_damage(hurt(defender, damage=11, fatigue=9), 3, subduing=True)
        assert change.unconscious
        assert change.new_damage == 13
        assert change.dead

    def test_snapshot_unchanged(self, planner, defender):
        wounded = hurt(defender, damage=5, fatigue=2)
        planner.plan_damage(wounded, 6)
        assert wounded.condition == ConditionState(damage=5, fatigue=2)


class TestBleedingCheck:
    """Tests for the BOD check against TN 12."""

    def test_pass(self, planner, defender):
        check = planner.roll_bleeding_check(defender, ScriptedRoller([3, 3]))
        assert check.roll.target_number == 12
        assert not check.bleeding

    def test_fail(self, planner, defender):
        assert planner.roll_bleeding_check(defender, ScriptedRoller([2, 3])).bleeding

    def test_fumble_always_bleeds(self, planner, defender):
        check = planner.roll_bleeding_check(defender, ScriptedRoller([1, 1]))
        assert check.roll.is_fumble
        assert check.bleeding

    def test_injury_penalty_applies(self, planner, defender):
        check = planner.roll_bleeding_check(hurt(defender, damage=6), ScriptedRoller([3, 3]))
        assert check.roll.final_total == 10
        assert check.bleeding


class TestFatigueRecovery:
    """Tests for recovering fatigue by resting."""

    def test_recover_bod_points(self, planner, defender):
        recovery = planner.plan_fatigue_recovery(hurt(defender, fatigue=8))
        assert recovery.recovered == 6
        assert recovery.new_fatigue == 2

    def test_not_below_zero(self, planner, defender):
        recovery = planner.plan_fatigue_recovery(hurt(defender, fatigue=3))
        assert recovery.recovered == 3
        assert recovery.new_fatigue == 0
