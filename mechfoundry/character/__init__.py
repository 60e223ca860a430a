"""Character derivation module.

Attribute totals, capacities, movement, encumbrance, skill progression and
equipment effects.
"""

from mechfoundry.character.attribute_engine import (
    AttributeDerivationEngine,
    AttributeTotals,
    DerivedStats,
    EncumbranceCalculator,
    EncumbranceResult,
    MovementCalculator,
    MovementRates,
    link_modifier,
)
from mechfoundry.character.item_effects import ItemEffectsCalculator, StackedModifiers, VisionProfile
from mechfoundry.character.progression import SkillProgression

__all__ = [
    "AttributeDerivationEngine",
    "AttributeTotals",
    "DerivedStats",
    "EncumbranceCalculator",
    "EncumbranceResult",
    "MovementCalculator",
    "MovementRates",
    "link_modifier",
    "ItemEffectsCalculator",
    "StackedModifiers",
    "VisionProfile",
    "SkillProgression",
]
