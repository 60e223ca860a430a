"""
Deterministic replay of a recorded fight.

A ReplaySession feeds recorded dice back to the resolvers in order, so a
fight saved from a RunLog resolves exactly as it did the first time.
"""

from dataclasses import dataclass, field
from typing import Any, Optional
import json
import logging

from mechfoundry.data_models import DiceRoller

logger = logging.getLogger(__name__)


@dataclass
class ReplaySession:
    """
    Dice service that replays a recorded roll stream.

    Once the stream runs out, rolls fall back to a DiceRoller seeded with
    the recorded seed and advanced past the recorded rolls, so the overrun
    continues the original sequence. Each overrun is counted.
    """

    seed: Optional[int] = None
    roll_stream: list[dict[str, Any]] = field(default_factory=list)
    _position: int = 0
    _overruns: int = 0
    _fallback: Optional[DiceRoller] = None

    def __post_init__(self):
        self._position = 0
        self._overruns = 0
        self._fallback = None

    @classmethod
    def from_run_log(cls, log_data: dict[str, Any]) -> "ReplaySession":
        """
        Create a replay session from saved run log data.

        Args:
            log_data: Dictionary from RunLog.to_dict() or loaded JSON

        Returns:
            ReplaySession positioned at the first roll
        """
        roll_stream = []
        for event in log_data.get("events", []):
            if event.get("event_type") == "roll":
                roll_stream.append(
                    {
                        "notation": event.get("notation", ""),
                        "rolls": event.get("rolls", []),
                        "reason": event.get("reason", ""),
                    }
                )
        return cls(seed=log_data.get("seed"), roll_stream=roll_stream)

    @classmethod
    def load(cls, filepath: str) -> "ReplaySession":
        """Load a replay session from a saved RunLog or ReplaySession file."""
        with open(filepath, "r", encoding="utf-8") as f:
            data = json.load(f)

        if "roll_stream" in data:
            return cls(seed=data.get("seed"), roll_stream=data.get("roll_stream", []))
        return cls.from_run_log(data)

    def save(self, filepath: str) -> None:
        data = {
            "seed": self.seed,
            "roll_stream": self.roll_stream,
        }
        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        logger.info(f"ReplaySession saved to {filepath}")

    def roll(self, count: int, sides: int) -> list[int]:
        """Return the next recorded roll, checking it matches the request."""
        notation = f"{count}d{sides}"
        if self._position >= len(self.roll_stream):
            self._overruns += 1
            logger.warning(
                f"Replay overrun #{self._overruns}: no recorded roll for {notation} at position {self._position}"
            )
            if self._fallback is None:
                self._fallback = self._seeded_fallback()
            return self._fallback.roll(count, sides)

        recorded = self.roll_stream[self._position]
        self._position += 1
        rolls = list(recorded.get("rolls", []))
        if recorded.get("notation") != notation or len(rolls) != count:
            logger.warning(
                f"Replay diverged at position {self._position - 1}: "
                f"recorded {recorded.get('notation')}, requested {notation}"
            )
        return rolls

    def _seeded_fallback(self) -> DiceRoller:
        roller = DiceRoller(self.seed)
        for recorded in self.roll_stream:
            notation = recorded.get("notation", "")
            if notation:
                roller.roll_notation(notation)
        roller.clear_roll_log()
        return roller

    def get_position(self) -> int:
        return self._position

    def get_remaining_rolls(self) -> int:
        """Get number of remaining rolls in the stream."""
        return max(0, len(self.roll_stream) - self._position)

    def get_overrun_count(self) -> int:
        """Get number of times replay ran out of recorded rolls."""
        return self._overruns

    def reset(self) -> None:
        """Reset to the beginning of the roll stream."""
        self._position = 0
        self._overruns = 0
        self._fallback = None

    def __repr__(self) -> str:
        return (
            f"ReplaySession(seed={self.seed}, "
            f"position={self._position}/{len(self.roll_stream)})"
        )
