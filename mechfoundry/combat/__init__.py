"""Combat resolution module.

Armor and hit location, single attacks, opposed melee contests, area
attacks and damage planning.
"""

from mechfoundry.combat.area_effect_resolver import (
    AreaAttackRequest,
    AreaEffectResolver,
    AreaEffectResult,
    AreaTarget,
    Position,
    ScatterResult,
)
from mechfoundry.combat.armor_resolver import ArmorCalculation, ArmorDamageResolver, HitLocationResult
from mechfoundry.combat.combat_engine import (
    AttackRequest,
    AttackResolution,
    CombatActionResolver,
    CombatActionResult,
)
from mechfoundry.combat.damage_application import ConditionChange, DamageApplicationPlanner
from mechfoundry.combat.opposed_resolver import (
    ContestResolution,
    DefenderResponseService,
    DefenseOutcome,
    DefenseRequest,
    DefenseSelection,
    OpposedContestResolver,
    OpposedContestResult,
)

__all__ = [
    "AreaAttackRequest",
    "AreaEffectResolver",
    "AreaEffectResult",
    "AreaTarget",
    "Position",
    "ScatterResult",
    "ArmorCalculation",
    "ArmorDamageResolver",
    "HitLocationResult",
    "AttackRequest",
    "AttackResolution",
    "CombatActionResolver",
    "CombatActionResult",
    "ConditionChange",
    "DamageApplicationPlanner",
    "ContestResolution",
    "DefenderResponseService",
    "DefenseOutcome",
    "DefenseRequest",
    "DefenseSelection",
    "OpposedContestResolver",
    "OpposedContestResult",
]
