"""
Opposed melee contests.

The attacker rolls first and the roll is fixed. The defender then answers
through a response service (possibly another player on another machine),
with a bounded wait; no answer, a timeout or a cancelled wait all count as
a declined defense. The pair of rolls maps onto one of five outcomes:

    both succeed, equal margin       -> tie (defender blocks)
    both succeed, attacker higher    -> attacker hits
    both succeed, defender higher    -> defender chooses block or mutual damage
    attacker succeeds, defender not  -> attacker hits
    attacker fails, defender not     -> counterstrike
    both fail                        -> mutual miss

Damage for every side that could deal it is worked out up front, so the
defender's choice only selects which packages apply.
"""

from concurrent.futures import CancelledError, Future, TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field, replace
from typing import Optional, Protocol, Union
import logging
import uuid

from mechfoundry.character.attribute_engine import DerivedStats
from mechfoundry.character.progression import SkillProgression
from mechfoundry.combat.armor_resolver import ArmorCalculation, HitLocationResult
from mechfoundry.combat.combat_engine import CombatActionResolver, CombatActionResult
from mechfoundry.config import EngineConfig
from mechfoundry.data_models import (
    AttributeKey,
    CharacterSnapshot,
    ContestOutcome,
    DefenderChoice,
    DefenseOptionType,
    DiceRollService,
    Item,
)
from mechfoundry.resolution.dice_outcome import RollOutcome
from mechfoundry.resolution.modifier_stack import ModifierBreakdown


logger = logging.getLogger(__name__)


DEFENSE_SKILLS = ("melee weapons", "martial arts")
ATTRIBUTE_OPTION_ID = "attribute"
DECLINE_OPTION_ID = "decline"

OUTCOME_DESCRIPTIONS: dict[ContestOutcome, str] = {
    ContestOutcome.TIE: "Tie: the defender blocks the attack",
    ContestOutcome.ATTACKER_HITS: "The attacker hits",
    ContestOutcome.DEFENDER_CHOICE: "The defender out-rolls the attacker and may block or exchange blows",
    ContestOutcome.COUNTERSTRIKE: "The attack misses and the defender counterstrikes",
    ContestOutcome.MUTUAL_MISS: "Both sides miss",
}


# =============================================================================
# DEFENSE
# =============================================================================


@dataclass
class DefenseOption:
    """One way the defender may answer an attack."""
    option_id: str
    name: str
    option_type: DefenseOptionType
    skill_name: Optional[str] = None
    level: Optional[int] = None
    total: Optional[int] = None  # RFL + DEX for the attribute option


@dataclass
class DefenseSelection:
    """A defender's pick from the option list; the engine rolls it."""
    option_id: str
    modifier: int = 0


@dataclass
class DefenseOutcome:
    """The defender's side of a contest."""
    declined: bool = False
    option_type: DefenseOptionType = DefenseOptionType.DECLINE
    name: str = ""
    roll: Optional[RollOutcome] = None
    success: bool = False
    margin_of_success: int = -3

    @classmethod
    def declined_defense(cls, margin: int = -3) -> "DefenseOutcome":
        """A defense that was not made: automatic failure."""
        return cls(declined=True, success=False, margin_of_success=margin, name="No defense")

    @classmethod
    def from_roll(cls, option: DefenseOption, roll: RollOutcome) -> "DefenseOutcome":
        return cls(
            declined=False,
            option_type=option.option_type,
            name=option.name,
            roll=roll,
            success=roll.success,
            margin_of_success=roll.margin_of_success,
        )


@dataclass
class DefenseRequest:
    """What the defender is shown when asked to defend."""
    contest_id: str
    attacker_id: str
    defender_id: str
    attacker_roll: RollOutcome
    options: list[DefenseOption]
    timeout: float


class DefenderResponseService(Protocol):
    """
    Asks the defending participant how they respond.

    request_defense resolves to a DefenseOutcome, a DefenseSelection for the
    engine to roll, or None to decline. request_choice resolves to a
    DefenderChoice.
    """

    def request_defense(self, request: DefenseRequest) -> Future:
        ...

    def request_choice(self, contest_id: str, defender_id: str, timeout: float) -> Future:
        ...


DefenseResponse = Union[DefenseOutcome, DefenseSelection, None]


# =============================================================================
# RESULTS
# =============================================================================


@dataclass
class ContestResolution:
    """Outcome of the decision table and which sides deal damage."""
    outcome: ContestOutcome
    attacker_deals_damage: bool = False
    defender_deals_damage: bool = False
    defender_choice_pending: bool = False

    @property
    def description(self) -> str:
        return OUTCOME_DESCRIPTIONS[self.outcome]


@dataclass
class MeleeDamagePackage:
    """
    Damage one side would deal to the other, after hit location and armor.

    Armor reduces the standard damage of a normal strike and the fatigue
    damage of a subduing one.
    """
    damage: CombatActionResult
    hit_location: HitLocationResult
    armor: ArmorCalculation
    weapon_name: str = "Unarmed"

    @property
    def standard_damage(self) -> int:
        if self.damage.is_subduing:
            return 0
        return self.armor.applied_damage

    @property
    def fatigue_damage(self) -> int:
        if self.damage.is_subduing:
            return self.armor.applied_damage
        return self.damage.fatigue_damage


@dataclass
class OpposedContestResult:
    """Both rolls, the decision and the precomputed damage packages."""
    contest_id: str
    attacker_id: str
    defender_id: str
    attacker_roll: RollOutcome
    attacker_modifiers: ModifierBreakdown
    defense: DefenseOutcome
    resolution: ContestResolution
    attacker_damage: Optional[MeleeDamagePackage] = None  # dealt to the defender
    defender_damage: Optional[MeleeDamagePackage] = None  # dealt to the attacker
    choice: Optional[DefenderChoice] = None
    options: list[DefenseOption] = field(default_factory=list)

    @property
    def outcome(self) -> ContestOutcome:
        return self.resolution.outcome

    @property
    def damage_to_defender(self) -> Optional[MeleeDamagePackage]:
        return self.attacker_damage if self.resolution.attacker_deals_damage else None

    @property
    def damage_to_attacker(self) -> Optional[MeleeDamagePackage]:
        return self.defender_damage if self.resolution.defender_deals_damage else None

    def apply_choice(self, choice: DefenderChoice) -> "OpposedContestResult":
        """
        Settle a pending defender choice.

        Returns:
            A new result; block deals no damage, mutual damage applies both
            precomputed packages. Results without a pending choice are
            returned unchanged.
        """
        if not self.resolution.defender_choice_pending:
            return self
        mutual = choice == DefenderChoice.MUTUAL_DAMAGE
        resolution = replace(
            self.resolution,
            attacker_deals_damage=mutual,
            defender_deals_damage=mutual,
            defender_choice_pending=False,
        )
        logger.info(f"Contest {self.contest_id}: defender chooses {choice.value}")
        return replace(self, resolution=resolution, choice=choice)


# =============================================================================
# RESOLVER
# =============================================================================


class OpposedContestResolver:
    """Resolves two-sided melee contests."""

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        combat_resolver: Optional[CombatActionResolver] = None,
    ):
        self.config = config or EngineConfig()
        self.combat_resolver = combat_resolver or CombatActionResolver(self.config)

    @property
    def dice_evaluator(self):
        return self.combat_resolver.dice_evaluator

    @property
    def modifier_engine(self):
        return self.combat_resolver.modifier_engine

    @property
    def derivation_engine(self):
        return self.combat_resolver.derivation_engine

    # =========================================================================
    # DECISION TABLE
    # =========================================================================

    @staticmethod
    def decide_margins(
        attacker_success: bool,
        attacker_margin: int,
        defender_success: bool,
        defender_margin: int,
    ) -> ContestResolution:
        """Map both sides' success and margin to a contest outcome."""
        if attacker_success and defender_success:
            if attacker_margin == defender_margin:
                return ContestResolution(ContestOutcome.TIE)
            if attacker_margin > defender_margin:
                return ContestResolution(ContestOutcome.ATTACKER_HITS, attacker_deals_damage=True)
            return ContestResolution(ContestOutcome.DEFENDER_CHOICE, defender_choice_pending=True)
        if attacker_success:
            return ContestResolution(ContestOutcome.ATTACKER_HITS, attacker_deals_damage=True)
        if defender_success:
            return ContestResolution(ContestOutcome.COUNTERSTRIKE, defender_deals_damage=True)
        return ContestResolution(ContestOutcome.MUTUAL_MISS)

    def decide(self, attacker_roll: RollOutcome, defense: Optional[DefenseOutcome]) -> ContestResolution:
        """
        Decide a contest from the attacker's roll and the defense.

        A missing or declined defense fails with the declined margin.
        """
        defense = self._normalize_defense(defense)
        return self.decide_margins(
            attacker_roll.success,
            attacker_roll.margin_of_success,
            defense.success,
            defense.margin_of_success,
        )

    def _normalize_defense(self, defense: Optional[DefenseOutcome]) -> DefenseOutcome:
        if defense is None or defense.declined:
            return DefenseOutcome.declined_defense(self.config.declined_defense_margin)
        return defense

    # =========================================================================
    # DEFENSE OPTIONS AND ROLLS
    # =========================================================================

    def defense_options(self, snapshot: CharacterSnapshot, derived: Optional[DerivedStats] = None) -> list[DefenseOption]:
        """
        Defense options available to a character.

        Trained melee weapons and martial arts skills, the RFL + DEX
        attribute check (always available) and declining.
        """
        derived = derived or self.derivation_engine.derive(snapshot)
        options = []
        for fragment in DEFENSE_SKILLS:
            skill = next((s for s in snapshot.skills if fragment in s.name.lower()), None)
            if skill is None:
                continue
            level = SkillProgression.skill_level(skill)
            if level < 0:
                continue
            options.append(DefenseOption(
                option_id=skill.name.lower(),
                name=skill.name,
                option_type=DefenseOptionType.SKILL,
                skill_name=skill.name,
                level=level,
            ))

        options.append(DefenseOption(
            option_id=ATTRIBUTE_OPTION_ID,
            name="Attribute Check (RFL + DEX)",
            option_type=DefenseOptionType.ATTRIBUTE,
            total=derived.total(AttributeKey.RFL) + derived.total(AttributeKey.DEX),
        ))
        options.append(DefenseOption(
            option_id=DECLINE_OPTION_ID,
            name="Do Not Defend",
            option_type=DefenseOptionType.DECLINE,
        ))
        return options

    def roll_defense(
        self,
        snapshot: CharacterSnapshot,
        option: Optional[DefenseOption],
        roll_service: DiceRollService,
        modifier: int = 0,
        derived: Optional[DerivedStats] = None,
    ) -> DefenseOutcome:
        """
        Roll the chosen defense.

        Args:
            snapshot: Defending character
            option: Chosen option; None or decline means no defense
            roll_service: Source of the dice
            modifier: Extra modifier supplied by the defender
            derived: Pre-computed derived stats for the defender

        Returns:
            DefenseOutcome
        """
        if option is None or option.option_type == DefenseOptionType.DECLINE:
            return DefenseOutcome.declined_defense(self.config.declined_defense_margin)

        derived = derived or self.derivation_engine.derive(snapshot)
        if option.option_type == DefenseOptionType.ATTRIBUTE:
            total_modifier = (
                derived.total(AttributeKey.RFL)
                + derived.total(AttributeKey.DEX)
                + derived.injury_modifier
                + derived.fatigue_modifier
                + modifier
            )
            roll = self.dice_evaluator.roll(
                total_modifier, self.config.attribute_defense_target_number, roll_service
            )
        else:
            breakdown = self.modifier_engine.skill_check_modifiers(snapshot, option.skill_name, modifier, derived)
            roll = self.dice_evaluator.roll(breakdown.total, breakdown.target_number, roll_service)

        logger.debug(f"{snapshot.name or snapshot.character_id} defends with {option.name}: {roll.describe()}")
        return DefenseOutcome.from_roll(option, roll)

    def await_defense(
        self,
        service: DefenderResponseService,
        request: DefenseRequest,
        defender: CharacterSnapshot,
        roll_service: DiceRollService,
        derived: Optional[DerivedStats] = None,
    ) -> DefenseOutcome:
        """
        Ask the defender for a response and wait at most request.timeout.

        A timeout, cancelled wait or failed request is treated as a declined
        defense and the pending request is cancelled.
        """
        future = service.request_defense(request)
        try:
            response = future.result(timeout=request.timeout)
        except (FutureTimeoutError, CancelledError):
            future.cancel()
            logger.info(f"Contest {request.contest_id}: no defense from {request.defender_id}, treating as declined")
            return DefenseOutcome.declined_defense(self.config.declined_defense_margin)
        except Exception as e:
            future.cancel()
            logger.warning(f"Contest {request.contest_id}: defense request failed ({e}), treating as declined")
            return DefenseOutcome.declined_defense(self.config.declined_defense_margin)
        return self._defense_from_response(response, request.options, defender, roll_service, derived)

    def _defense_from_response(
        self,
        response: DefenseResponse,
        options: list[DefenseOption],
        defender: CharacterSnapshot,
        roll_service: DiceRollService,
        derived: Optional[DerivedStats],
    ) -> DefenseOutcome:
        if isinstance(response, DefenseOutcome):
            return self._normalize_defense(response)
        if isinstance(response, DefenseSelection):
            option = next((o for o in options if o.option_id == response.option_id), None)
            if option is None:
                logger.info(f"Unknown defense option '{response.option_id}', treating as declined")
            return self.roll_defense(defender, option, roll_service, response.modifier, derived)
        return DefenseOutcome.declined_defense(self.config.declined_defense_margin)

    # =========================================================================
    # DAMAGE
    # =========================================================================

    def damage_package(
        self,
        striker: CharacterSnapshot,
        weapon: Optional[Item],
        margin_of_success: int,
        target: CharacterSnapshot,
        roll_service: DiceRollService,
        derived: Optional[DerivedStats] = None,
    ) -> MeleeDamagePackage:
        """Melee damage one side deals, with hit location and armor resolved."""
        damage = self.combat_resolver.melee_damage(striker, weapon, margin_of_success, derived)
        hit_location = self.combat_resolver.armor_resolver.roll_hit_location(roll_service)
        amount = damage.fatigue_damage if damage.is_subduing else damage.standard_damage
        armor = self.combat_resolver.armor_resolver.resolve(
            amount,
            damage.armor_penetration,
            damage.damage_type,
            target,
            hit_location=hit_location.location,
        )
        return MeleeDamagePackage(
            damage=damage,
            hit_location=hit_location,
            armor=armor,
            weapon_name=weapon.name if weapon is not None else "Unarmed",
        )

    # =========================================================================
    # CONTEST
    # =========================================================================

    def resolve_contest(
        self,
        attacker: CharacterSnapshot,
        defender: CharacterSnapshot,
        roll_service: DiceRollService,
        response_service: Optional[DefenderResponseService] = None,
        weapon_id: Optional[str] = None,
        caller_modifier: int = 0,
        defense: Optional[DefenseSelection] = None,
        contest_id: Optional[str] = None,
    ) -> OpposedContestResult:
        """
        Resolve a melee attack the defender may oppose.

        Args:
            attacker: Attacking character
            defender: Defending character
            roll_service: Source of all dice
            response_service: Asks the defender for a response
            weapon_id: Attacker's weapon; None uses the equipped melee weapon
            caller_modifier: Extra modifier on the attack roll
            defense: Defense already chosen locally; skips the service
            contest_id: Identifier passed to the response service

        Returns:
            OpposedContestResult; a defender choice may still be pending
        """
        contest_id = contest_id or uuid.uuid4().hex[:12]
        attacker_derived = self.derivation_engine.derive(attacker)
        defender_derived = self.derivation_engine.derive(defender)

        if weapon_id is not None:
            attacker_weapon = self.combat_resolver.weapon_item(attacker, weapon_id)
        else:
            attacker_weapon = attacker.equipped_melee_weapon()

        attacker_roll, breakdown = self.combat_resolver.melee_attack_roll(
            attacker, attacker_weapon, roll_service, caller_modifier, attacker_derived, target=defender
        )

        options = self.defense_options(defender, defender_derived)
        if defense is not None:
            defense_outcome = self._defense_from_response(defense, options, defender, roll_service, defender_derived)
        elif response_service is not None:
            request = DefenseRequest(
                contest_id=contest_id,
                attacker_id=attacker.character_id,
                defender_id=defender.character_id,
                attacker_roll=attacker_roll,
                options=options,
                timeout=self.config.defender_response_timeout,
            )
            defense_outcome = self.await_defense(response_service, request, defender, roll_service, defender_derived)
        else:
            defense_outcome = DefenseOutcome.declined_defense(self.config.declined_defense_margin)

        resolution = self.decide(attacker_roll, defense_outcome)

        attacker_damage = None
        if resolution.attacker_deals_damage or resolution.defender_choice_pending:
            attacker_damage = self.damage_package(
                attacker, attacker_weapon, attacker_roll.margin_of_success, defender, roll_service, attacker_derived
            )
        defender_damage = None
        if resolution.defender_deals_damage or resolution.defender_choice_pending:
            # Counterstrikes use the defender's equipped melee weapon, or fists
            defender_damage = self.damage_package(
                defender,
                defender.equipped_melee_weapon(),
                defense_outcome.margin_of_success,
                attacker,
                roll_service,
                defender_derived,
            )

        logger.info(
            f"Contest {contest_id}: {attacker.name or attacker.character_id} "
            f"(MoS {attacker_roll.margin_of_success:+d}) vs {defender.name or defender.character_id} "
            f"(MoS {defense_outcome.margin_of_success:+d}) -> {resolution.outcome.value}"
        )
        return OpposedContestResult(
            contest_id=contest_id,
            attacker_id=attacker.character_id,
            defender_id=defender.character_id,
            attacker_roll=attacker_roll,
            attacker_modifiers=breakdown,
            defense=defense_outcome,
            resolution=resolution,
            attacker_damage=attacker_damage,
            defender_damage=defender_damage,
            options=options,
        )

    def resolve_choice(
        self,
        result: OpposedContestResult,
        service: DefenderResponseService,
    ) -> OpposedContestResult:
        """
        Ask the defender to settle a pending choice.

        A timeout, cancellation, failed request or unexpected answer counts as
        a block.
        """
        if not result.resolution.defender_choice_pending:
            return result

        future = service.request_choice(result.contest_id, result.defender_id, self.config.defender_choice_timeout)
        try:
            choice = future.result(timeout=self.config.defender_choice_timeout)
        except (FutureTimeoutError, CancelledError):
            future.cancel()
            logger.info(f"Contest {result.contest_id}: no choice from defender, blocking")
            choice = DefenderChoice.BLOCK
        except Exception as e:
            future.cancel()
            logger.warning(f"Contest {result.contest_id}: choice request failed ({e}), blocking")
            choice = DefenderChoice.BLOCK

        try:
            choice = DefenderChoice(choice)
        except ValueError:
            logger.info(f"Contest {result.contest_id}: unrecognised choice {choice!r}, blocking")
            choice = DefenderChoice.BLOCK
        return result.apply_choice(choice)
