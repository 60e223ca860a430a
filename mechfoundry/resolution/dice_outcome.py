"""
Special outcome evaluation for 2d6 action rolls.

Every action roll is 2d6 + modifier against a target number. Two faces
change the result:
- Snake eyes (1,1) is a fumble and always fails.
- Boxcars (6,6) is a stunning success: extra d6 are rolled one at a time
  while they come up 6 and are added to the total. Three or more 6s in
  that bonus chain (not counting the final non-6) is a miraculous feat,
  which always succeeds.
"""

from dataclasses import dataclass, field
from typing import Optional, Sequence
import logging

from mechfoundry.config import EngineConfig
from mechfoundry.data_models import DiceRollService, SpecialOutcome


logger = logging.getLogger(__name__)


MIRACULOUS_FEAT_SIXES = 3


@dataclass
class SpecialRoll:
    """Classification of the two action dice plus any bonus chain."""
    special_outcome: SpecialOutcome = SpecialOutcome.NONE
    bonus_dice: list[int] = field(default_factory=list)

    @property
    def bonus_total(self) -> int:
        return sum(self.bonus_dice)


@dataclass
class SuccessCheck:
    """Success, final total and margin for a classified roll."""
    success: bool
    final_total: int
    margin_of_success: int


@dataclass
class RollOutcome:
    """
    Fully evaluated action roll.

    raw_total is the two dice plus the modifier; final_total adds the
    bonus chain of a stunning success or miraculous feat.
    """
    dice: list[int]
    raw_total: int
    modifier: int
    final_total: int
    target_number: int
    success: bool
    margin_of_success: int
    special_outcome: SpecialOutcome = SpecialOutcome.NONE
    bonus_dice: list[int] = field(default_factory=list)

    @property
    def dice_total(self) -> int:
        return sum(self.dice)

    @property
    def is_fumble(self) -> bool:
        return self.special_outcome == SpecialOutcome.FUMBLE

    @property
    def is_miraculous_feat(self) -> bool:
        return self.special_outcome == SpecialOutcome.MIRACULOUS_FEAT

    @property
    def is_stunning_success(self) -> bool:
        return self.special_outcome in (
            SpecialOutcome.STUNNING_SUCCESS,
            SpecialOutcome.MIRACULOUS_FEAT,
        )

    @property
    def is_doubles(self) -> bool:
        return DiceOutcomeEvaluator.is_doubles(self.dice)

    def describe(self) -> str:
        """One-line summary for logs and chat output."""
        dice = ", ".join(str(d) for d in self.dice)
        text = f"[{dice}] {self.modifier:+d} = {self.raw_total}"
        if self.bonus_dice:
            text += f" + bonus ({DiceOutcomeEvaluator.format_bonus_dice(self.bonus_dice)})"
            text += f" = {self.final_total}"
        verdict = "success" if self.success else "failure"
        text += f" vs TN {self.target_number}: {verdict} (MoS {self.margin_of_success:+d})"
        if self.special_outcome != SpecialOutcome.NONE:
            text += f" [{self.special_outcome.value}]"
        return text


class DiceOutcomeEvaluator:
    """Classifies 2d6 action rolls and folds bonus dice into the total."""

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()

    @staticmethod
    def is_doubles(dice: Sequence[int]) -> bool:
        """Check whether the two action dice show the same face."""
        return len(dice) >= 2 and dice[0] == dice[1]

    @staticmethod
    def format_bonus_dice(bonus_dice: Sequence[int]) -> str:
        return " + ".join(str(d) for d in bonus_dice)

    def classify(self, dice: Sequence[int], roll_service: DiceRollService) -> SpecialRoll:
        """
        Classify the two action dice, rolling the bonus chain on boxcars.

        Args:
            dice: The two action dice faces
            roll_service: Source of bonus dice

        Returns:
            SpecialRoll with the outcome and any bonus dice
        """
        if len(dice) < 2:
            return SpecialRoll()

        first, second = dice[0], dice[1]

        if first == 1 and second == 1:
            logger.info("Fumble rolled (1,1)")
            return SpecialRoll(special_outcome=SpecialOutcome.FUMBLE)

        if first == 6 and second == 6:
            bonus_dice = self._roll_bonus_chain(roll_service)
            leading_sixes = self._count_leading_sixes(bonus_dice)
            if leading_sixes >= MIRACULOUS_FEAT_SIXES:
                logger.info(f"Miraculous feat: bonus dice {bonus_dice}")
                outcome = SpecialOutcome.MIRACULOUS_FEAT
            else:
                logger.info(f"Stunning success: bonus dice {bonus_dice}")
                outcome = SpecialOutcome.STUNNING_SUCCESS
            return SpecialRoll(special_outcome=outcome, bonus_dice=bonus_dice)

        return SpecialRoll()

    def determine_success(
        self,
        raw_total: int,
        target_number: int,
        special: SpecialRoll,
    ) -> SuccessCheck:
        """
        Decide success for a classified roll.

        The margin is always final total minus target number; for a fumble it
        is only informative.
        """
        final_total = raw_total + special.bonus_total
        margin = final_total - target_number

        if special.special_outcome == SpecialOutcome.FUMBLE:
            success = False
        elif special.special_outcome == SpecialOutcome.MIRACULOUS_FEAT:
            success = True
        else:
            success = final_total >= target_number

        return SuccessCheck(success=success, final_total=final_total, margin_of_success=margin)

    def evaluate(
        self,
        dice: Sequence[int],
        modifier: int,
        target_number: Optional[int],
        roll_service: DiceRollService,
    ) -> RollOutcome:
        """Evaluate already-rolled action dice into a RollOutcome."""
        if target_number is None:
            target_number = self.config.default_target_number

        faces = list(dice[:2])
        raw_total = sum(faces) + modifier
        special = self.classify(faces, roll_service)
        check = self.determine_success(raw_total, target_number, special)

        outcome = RollOutcome(
            dice=faces,
            raw_total=raw_total,
            modifier=modifier,
            final_total=check.final_total,
            target_number=target_number,
            success=check.success,
            margin_of_success=check.margin_of_success,
            special_outcome=special.special_outcome,
            bonus_dice=special.bonus_dice,
        )
        logger.debug(f"Action roll: {outcome.describe()}")
        return outcome

    def roll(
        self,
        modifier: int,
        target_number: Optional[int],
        roll_service: DiceRollService,
    ) -> RollOutcome:
        """Roll 2d6 through the service and evaluate them."""
        dice = list(roll_service.roll(2, 6))
        return self.evaluate(dice, modifier, target_number, roll_service)

    def _roll_bonus_chain(self, roll_service: DiceRollService) -> list[int]:
        bonus_dice: list[int] = []
        while True:
            die = roll_service.roll(1, 6)[0]
            bonus_dice.append(die)
            if die != 6:
                return bonus_dice

    @staticmethod
    def _count_leading_sixes(bonus_dice: Sequence[int]) -> int:
        # The terminal non-6 roll ends the chain and is not counted
        count = 0
        for die in bonus_dice:
            if die != 6:
                break
            count += 1
        return count
