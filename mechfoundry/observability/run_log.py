"""
Run log for combat event tracking.

Captures every dice roll and every resolved action so a fight can be
audited afterwards or replayed from the roll stream with the same seed.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Optional
import json
import logging

if TYPE_CHECKING:
    from mechfoundry.combat.area_effect_resolver import AreaEffectResult
    from mechfoundry.combat.combat_engine import AttackResolution
    from mechfoundry.combat.damage_application import ConditionChange
    from mechfoundry.combat.opposed_resolver import OpposedContestResult

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Types of events that can be logged."""

    ROLL = "roll"  # Dice roll
    ATTACK = "attack"  # Single attack resolution
    CONTEST = "contest"  # Opposed melee contest
    AREA_ATTACK = "area_attack"  # Area effect attack
    DAMAGE = "damage"  # Planned condition change
    CUSTOM = "custom"  # Custom event


@dataclass
class LogEvent:
    """Base class for all logged events."""

    # event_type has a default so subclass fields may have defaults;
    # subclasses set the correct value in __post_init__
    event_type: EventType = EventType.CUSTOM
    timestamp: datetime = field(default_factory=datetime.now)
    sequence_number: int = 0
    combat_round: Optional[int] = None
    context: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "event_type": self.event_type.value,
            "timestamp": self.timestamp.isoformat(),
            "sequence_number": self.sequence_number,
            "combat_round": self.combat_round,
            "context": self.context,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LogEvent":
        """Create from dictionary."""
        return cls(
            event_type=EventType(data["event_type"]),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            sequence_number=data.get("sequence_number", 0),
            combat_round=data.get("combat_round"),
            context=data.get("context", {}),
        )

    def __str__(self) -> str:
        return f"[{self.sequence_number}] {self.event_type.value.upper()} {self.context}"


@dataclass
class RollEvent(LogEvent):
    """A dice roll event."""

    notation: str = ""  # e.g., "2d6", "1d12"
    rolls: list[int] = field(default_factory=list)  # Individual die results
    modifier: int = 0
    total: int = 0
    reason: str = ""  # Why this roll was made

    def __post_init__(self):
        self.event_type = EventType.ROLL

    def to_dict(self) -> dict[str, Any]:
        base = super().to_dict()
        base.update(
            {
                "notation": self.notation,
                "rolls": self.rolls,
                "modifier": self.modifier,
                "total": self.total,
                "reason": self.reason,
            }
        )
        return base

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RollEvent":
        return cls(
            timestamp=datetime.fromisoformat(data["timestamp"]),
            sequence_number=data.get("sequence_number", 0),
            combat_round=data.get("combat_round"),
            context=data.get("context", {}),
            notation=data.get("notation", ""),
            rolls=data.get("rolls", []),
            modifier=data.get("modifier", 0),
            total=data.get("total", 0),
            reason=data.get("reason", ""),
        )

    def __str__(self) -> str:
        reason = f" ({self.reason})" if self.reason else ""
        if self.modifier > 0:
            return f"[{self.sequence_number}] ROLL {self.notation}: {self.rolls} + {self.modifier} = {self.total}{reason}"
        elif self.modifier < 0:
            return f"[{self.sequence_number}] ROLL {self.notation}: {self.rolls} - {abs(self.modifier)} = {self.total}{reason}"
        return f"[{self.sequence_number}] ROLL {self.notation}: {self.rolls} = {self.total}{reason}"


@dataclass
class ResolutionEvent(LogEvent):
    """A resolved combat action: attack, contest, area attack or damage."""

    actor_id: str = ""
    target_ids: list[str] = field(default_factory=list)
    outcome: str = ""
    summary: str = ""

    def to_dict(self) -> dict[str, Any]:
        base = super().to_dict()
        base.update(
            {
                "actor_id": self.actor_id,
                "target_ids": self.target_ids,
                "outcome": self.outcome,
                "summary": self.summary,
            }
        )
        return base

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ResolutionEvent":
        return cls(
            event_type=EventType(data["event_type"]),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            sequence_number=data.get("sequence_number", 0),
            combat_round=data.get("combat_round"),
            context=data.get("context", {}),
            actor_id=data.get("actor_id", ""),
            target_ids=data.get("target_ids", []),
            outcome=data.get("outcome", ""),
            summary=data.get("summary", ""),
        )

    def __str__(self) -> str:
        targets = f" -> {', '.join(self.target_ids)}" if self.target_ids else ""
        return f"[{self.sequence_number}] {self.event_type.value.upper()} {self.actor_id}{targets}: {self.outcome} {self.summary}".rstrip()


class RunLog:
    """
    Event log for one combat session.

    Each session (or test) creates its own log; pass it to a DiceRoller to
    record rolls and call the log_* methods with resolver results.
    """

    def __init__(self):
        self._events: list[LogEvent] = []
        self._sequence: int = 0
        self._seed: Optional[int] = None
        self._session_start: datetime = datetime.now()
        self._round_provider: Optional[Callable[[], int]] = None
        self._subscribers: list[Callable[[LogEvent], None]] = []
        self._paused: bool = False

    def reset(self) -> None:
        """Reset the log for a new session."""
        self._events = []
        self._sequence = 0
        self._session_start = datetime.now()
        logger.info("RunLog reset")

    def set_seed(self, seed: int) -> None:
        """Record the RNG seed used for this session."""
        self._seed = seed
        logger.info(f"RunLog seed set: {seed}")

    def get_seed(self) -> Optional[int]:
        return self._seed

    def set_round_provider(self, provider: Callable[[], int]) -> None:
        """Set a callback returning the current combat round."""
        self._round_provider = provider

    def pause(self) -> None:
        """Pause logging (e.g., during replay)."""
        self._paused = True

    def resume(self) -> None:
        self._paused = False

    def is_paused(self) -> bool:
        return self._paused

    def subscribe(self, callback: Callable[[LogEvent], None]) -> None:
        """Subscribe to receive events as they are logged."""
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Callable[[LogEvent], None]) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def _log_event(self, event: LogEvent) -> None:
        if self._paused:
            return

        self._sequence += 1
        event.sequence_number = self._sequence
        if self._round_provider is not None:
            event.combat_round = self._round_provider()
        self._events.append(event)

        # Notify subscribers
        for subscriber in self._subscribers:
            try:
                subscriber(event)
            except Exception as e:
                logger.warning(f"Subscriber error: {e}")

    # =========================================================================
    # LOGGING
    # =========================================================================

    def log_roll(
        self,
        notation: str,
        rolls: list[int],
        modifier: int,
        total: int,
        reason: str = "",
        context: Optional[dict[str, Any]] = None,
    ) -> RollEvent:
        """Log a dice roll."""
        event = RollEvent(
            notation=notation,
            rolls=list(rolls),
            modifier=modifier,
            total=total,
            reason=reason,
            context=context or {},
        )
        self._log_event(event)
        return event

    def log_attack(self, resolution: "AttackResolution") -> ResolutionEvent:
        """Log a resolved attack."""
        target_ids = [r.target_id for r in resolution.rolls if r.target_id]
        event = ResolutionEvent(
            event_type=EventType.ATTACK,
            actor_id=resolution.attacker_id,
            target_ids=list(dict.fromkeys(target_ids)),
            outcome=f"{len(resolution.hits)}/{len(resolution.rolls)} hits",
            summary=f"{resolution.attack_type.value} with {resolution.weapon_name}",
            context={
                "weapon_id": resolution.weapon_id,
                "modifier": resolution.total_modifier,
                "target_number": resolution.target_number,
                "rounds_spent": resolution.ammunition.required if resolution.ammunition else 0,
                "damage": [r.armor.applied_damage if r.armor else r.damage.standard_damage for r in resolution.rolls],
            },
        )
        self._log_event(event)
        return event

    def log_contest(self, result: "OpposedContestResult") -> ResolutionEvent:
        """Log an opposed melee contest."""
        event = ResolutionEvent(
            event_type=EventType.CONTEST,
            actor_id=result.attacker_id,
            target_ids=[result.defender_id],
            outcome=result.outcome.value,
            summary=result.resolution.description,
            context={
                "contest_id": result.contest_id,
                "attacker_margin": result.attacker_roll.margin_of_success,
                "defender_margin": result.defense.margin_of_success,
                "defense_declined": result.defense.declined,
                "choice": result.choice.value if result.choice else None,
            },
        )
        self._log_event(event)
        return event

    def log_area_attack(self, result: "AreaEffectResult") -> ResolutionEvent:
        """Log an area attack and who it caught."""
        event = ResolutionEvent(
            event_type=EventType.AREA_ATTACK,
            actor_id=result.attacker_id,
            target_ids=[t.target_id for t in result.targets],
            outcome="hit" if result.roll.success else "scatter",
            summary=f"{result.weapon_name}, {result.blast_radius}m blast",
            context={
                "impact": [result.impact_point.x, result.impact_point.y],
                "scatter_direction": result.scatter.clock_direction if result.scatter else None,
                "scatter_distance": result.scatter.distance_meters if result.scatter else 0,
                "damage": {t.target_id: t.applied_damage for t in result.targets},
            },
        )
        self._log_event(event)
        return event

    def log_damage(self, change: "ConditionChange") -> ResolutionEvent:
        """Log a planned condition change."""
        if change.dead:
            outcome = "dead"
        elif change.unconscious:
            outcome = "unconscious"
        elif change.dying:
            outcome = "dying"
        else:
            outcome = "damaged"
        event = ResolutionEvent(
            event_type=EventType.DAMAGE,
            actor_id=change.character_id,
            outcome=outcome,
            summary=f"{change.damage_taken} damage, {change.fatigue_taken} fatigue",
            context={
                "new_damage": change.new_damage,
                "new_fatigue": change.new_fatigue,
                "bleeding_check_required": change.bleeding_check_required,
            },
        )
        self._log_event(event)
        return event

    def log_custom(self, event_name: str, details: dict[str, Any]) -> LogEvent:
        """Log a custom event."""
        event = LogEvent(
            event_type=EventType.CUSTOM,
            context={"event_name": event_name, **details},
        )
        self._log_event(event)
        return event

    # =========================================================================
    # QUERIES
    # =========================================================================

    def get_events(
        self,
        event_type: Optional[EventType] = None,
        since_sequence: int = 0,
    ) -> list[LogEvent]:
        """
        Get logged events.

        Args:
            event_type: Filter by event type (None = all)
            since_sequence: Only events after this sequence number

        Returns:
            List of events
        """
        events = [e for e in self._events if e.sequence_number > since_sequence]
        if event_type:
            events = [e for e in events if e.event_type == event_type]
        return events

    def get_rolls(self) -> list[RollEvent]:
        """Get all roll events."""
        return [e for e in self._events if isinstance(e, RollEvent)]

    def get_resolutions(self) -> list[ResolutionEvent]:
        return [e for e in self._events if isinstance(e, ResolutionEvent)]

    def get_roll_stream(self) -> list[dict[str, Any]]:
        """
        Get the roll stream for replay.

        Returns a list of {notation, rolls, modifier, total, reason} for each
        roll, enough to replay the exact sequence of rolls.
        """
        return [
            {
                "notation": e.notation,
                "rolls": e.rolls,
                "modifier": e.modifier,
                "total": e.total,
                "reason": e.reason,
            }
            for e in self.get_rolls()
        ]

    def get_event_count(self) -> int:
        return len(self._events)

    def get_summary(self) -> dict[str, Any]:
        """Get a summary of the run log."""
        return {
            "session_start": self._session_start.isoformat(),
            "seed": self._seed,
            "total_events": len(self._events),
            "rolls": len(self.get_rolls()),
            "attacks": len(self.get_events(EventType.ATTACK)),
            "contests": len(self.get_events(EventType.CONTEST)),
            "area_attacks": len(self.get_events(EventType.AREA_ATTACK)),
            "last_sequence": self._sequence,
        }

    # =========================================================================
    # SERIALIZATION
    # =========================================================================

    def to_dict(self) -> dict[str, Any]:
        """Serialize the entire log to a dictionary."""
        return {
            "session_start": self._session_start.isoformat(),
            "seed": self._seed,
            "sequence": self._sequence,
            "events": [e.to_dict() for e in self._events],
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, default=str)

    def save(self, filepath: str) -> None:
        """Save the log to a file."""
        with open(filepath, "w", encoding="utf-8") as f:
            f.write(self.to_json())
        logger.info(f"RunLog saved to {filepath}")

    @classmethod
    def load(cls, filepath: str) -> "RunLog":
        """Load a log from a file into a new RunLog."""
        with open(filepath, "r", encoding="utf-8") as f:
            data = json.load(f)

        log = cls()
        log._session_start = datetime.fromisoformat(data["session_start"])
        log._seed = data.get("seed")
        log._sequence = data.get("sequence", 0)

        for event_data in data.get("events", []):
            event_type = EventType(event_data["event_type"])
            event: LogEvent
            if event_type == EventType.ROLL:
                event = RollEvent.from_dict(event_data)
            elif event_type == EventType.CUSTOM:
                event = LogEvent.from_dict(event_data)
            else:
                event = ResolutionEvent.from_dict(event_data)
            log._events.append(event)

        logger.info(f"RunLog loaded from {filepath}: {len(log._events)} events")
        return log

    def format_log(
        self,
        event_types: Optional[list[EventType]] = None,
        max_events: Optional[int] = None,
    ) -> str:
        """
        Format the log as a human-readable string.

        Args:
            event_types: Filter by event types (None = all)
            max_events: Maximum number of events to include

        Returns:
            Formatted log string
        """
        lines = [
            "=== Combat Log ===",
            f"Session: {self._session_start.isoformat()}",
            f"Seed: {self._seed if self._seed is not None else 'not set'}",
            f"Total Events: {len(self._events)}",
            "",
        ]

        events = self._events
        if event_types:
            events = [e for e in events if e.event_type in event_types]
        if max_events:
            events = events[-max_events:]

        for event in events:
            lines.append(str(event))

        return "\n".join(lines)
