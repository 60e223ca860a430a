"""
Engine configuration and logging setup.

Resolvers take an optional EngineConfig; without one they use the
tabletop defaults below.
"""

from dataclasses import dataclass
import logging


DEFAULT_TARGET_NUMBER = 7
ATTRIBUTE_CAP = 9
DECLINED_DEFENSE_MARGIN = -3
ATTRIBUTE_DEFENSE_TARGET_NUMBER = 18
AREA_ATTACK_BONUS = 2
DEFENDER_RESPONSE_TIMEOUT = 60.0


def setup_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity level."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


@dataclass
class EngineConfig:
    """Rule constants and timeouts used by the resolvers."""

    default_target_number: int = DEFAULT_TARGET_NUMBER
    attribute_cap: int = ATTRIBUTE_CAP

    # Opposed melee
    declined_defense_margin: int = DECLINED_DEFENSE_MARGIN
    attribute_defense_target_number: int = ATTRIBUTE_DEFENSE_TARGET_NUMBER
    defender_response_timeout: float = DEFENDER_RESPONSE_TIMEOUT  # seconds
    defender_choice_timeout: float = DEFENDER_RESPONSE_TIMEOUT    # seconds

    # Area attacks
    area_attack_bonus: int = AREA_ATTACK_BONUS
    indirect_fire_penalty: int = -4
    spotted_indirect_fire_penalty: int = -2

    verbose: bool = False
