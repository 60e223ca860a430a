"""Action roll resolution module.

Special outcome evaluation for 2d6 rolls and roll modifier stacking.
"""

from mechfoundry.resolution.dice_outcome import DiceOutcomeEvaluator, RollOutcome, SpecialRoll
from mechfoundry.resolution.modifier_stack import (
    EdgeBurn,
    EdgeTiming,
    ModifierBreakdown,
    ModifierStackEngine,
)

__all__ = [
    "DiceOutcomeEvaluator",
    "RollOutcome",
    "SpecialRoll",
    "EdgeBurn",
    "EdgeTiming",
    "ModifierBreakdown",
    "ModifierStackEngine",
]
