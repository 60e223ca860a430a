"""
Equipment and persistent effect lookups.

Item effects come from equipped gear; persistent modifiers come from
active effects on the character. Stored values are coerced on read so a
garbled value counts as zero and a garbled modifier list as empty.
"""

from dataclasses import dataclass, field
from typing import Optional
import logging

from mechfoundry.data_models import (
    ActionScope,
    ActiveEffect,
    CharacterSnapshot,
    EffectType,
    ItemEffect,
    ModifierOperation,
    ModifierTargetType,
    PersistentModifier,
    coerce_number,
)


logger = logging.getLogger(__name__)


ATTACK_BONUS_SCOPES: dict[EffectType, Optional[ActionScope]] = {
    EffectType.ALL_ATTACK_BONUS: None,
    EffectType.RANGED_ATTACK_BONUS: ActionScope.RANGED,
    EffectType.MELEE_ATTACK_BONUS: ActionScope.MELEE,
}

DAMAGE_BONUS_SCOPES: dict[EffectType, Optional[ActionScope]] = {
    EffectType.DAMAGE_BONUS: None,
    EffectType.RANGED_DAMAGE_BONUS: ActionScope.RANGED,
    EffectType.MELEE_DAMAGE_BONUS: ActionScope.MELEE,
}


@dataclass
class EffectSource:
    """One contribution to an effect total, for display."""
    name: str
    source: str
    value: float
    attached_item_only: bool = False


@dataclass
class EffectTotal:
    """Summed effect value with its contributing sources."""
    total: float = 0.0
    sources: list[EffectSource] = field(default_factory=list)

    def add(self, effect: ItemEffect, source_name: str, value: float) -> None:
        self.total += value
        self.sources.append(EffectSource(
            name=effect.effect_type.value,
            source=source_name,
            value=value,
            attached_item_only=effect.attached_item_only,
        ))


@dataclass
class StackedModifiers:
    """Additive and multiplicative modifiers gathered for one target."""
    additive: float = 0.0
    multiplicative: list[float] = field(default_factory=list)

    def apply(self, value: float) -> float:
        """Add the additive total, then multiply by each factor in turn."""
        value += self.additive
        for factor in self.multiplicative:
            value *= factor
        return value

    @property
    def is_empty(self) -> bool:
        return self.additive == 0 and not self.multiplicative


@dataclass
class VisionProfile:
    """Vision granted by equipped gear."""
    darkvision: float = 0.0
    low_light_multiplier: float = 1.0
    thermal_vision: float = 0.0
    sources: list[EffectSource] = field(default_factory=list)


class ItemEffectsCalculator:
    """Reads item effects and persistent modifiers from a snapshot."""

    @classmethod
    def equipped_effects(cls, snapshot: CharacterSnapshot) -> list[tuple[ItemEffect, str, str]]:
        """
        Get every effect from equipped, effect-bearing items.

        Returns:
            List of (effect, source item id, source item name)
        """
        effects = []
        for item in snapshot.items:
            if not item.grants_effects:
                continue
            for effect in item.effects or []:
                if not isinstance(effect, ItemEffect):
                    continue
                effects.append((effect, item.item_id, item.name))
        return effects

    @classmethod
    def combat_modifier(
        cls,
        snapshot: CharacterSnapshot,
        scope: ActionScope,
        weapon_id: Optional[str] = None,
    ) -> EffectTotal:
        """Sum attack bonus effects that apply to an attack of this scope."""
        return cls._scoped_total(snapshot, ATTACK_BONUS_SCOPES, scope, weapon_id)

    @classmethod
    def damage_modifier(
        cls,
        snapshot: CharacterSnapshot,
        scope: ActionScope,
        weapon_id: Optional[str] = None,
    ) -> EffectTotal:
        """Sum damage bonus effects that apply to an attack of this scope."""
        return cls._scoped_total(snapshot, DAMAGE_BONUS_SCOPES, scope, weapon_id)

    @classmethod
    def skill_modifier(cls, snapshot: CharacterSnapshot, skill_name: str) -> EffectTotal:
        """Sum skill bonus effects targeting a skill (case-insensitive)."""
        result = EffectTotal()
        wanted = (skill_name or "").lower()
        for effect, _, source_name in cls.equipped_effects(snapshot):
            if effect.effect_type != EffectType.SKILL_BONUS:
                continue
            if (effect.target or "").lower() != wanted:
                continue
            result.add(effect, source_name, coerce_number(effect.value))
        return result

    @classmethod
    def targeted_bonuses(cls, snapshot: CharacterSnapshot, effect_type: EffectType) -> dict[str, float]:
        """Additive attribute or movement bonuses keyed by lowercase target."""
        bonuses: dict[str, float] = {}
        for effect, _, _ in cls.equipped_effects(snapshot):
            if effect.effect_type != effect_type:
                continue
            target = (effect.target or "").lower()
            bonuses[target] = bonuses.get(target, 0.0) + coerce_number(effect.value)
        return bonuses

    @classmethod
    def vision(cls, snapshot: CharacterSnapshot) -> VisionProfile:
        """Best darkvision and thermal ranges, product of low-light multipliers."""
        profile = VisionProfile()
        for effect, _, source_name in cls.equipped_effects(snapshot):
            value = coerce_number(effect.value)
            if effect.effect_type == EffectType.DARKVISION:
                profile.darkvision = max(profile.darkvision, value)
            elif effect.effect_type == EffectType.LOW_LIGHT_VISION:
                profile.low_light_multiplier *= value
            elif effect.effect_type == EffectType.THERMAL_VISION:
                profile.thermal_vision = max(profile.thermal_vision, value)
            else:
                continue
            profile.sources.append(EffectSource(effect.effect_type.value, source_name, value))
        return profile

    @classmethod
    def persistent_modifiers(
        cls,
        snapshot: CharacterSnapshot,
        target_type: ModifierTargetType,
    ) -> dict[str, StackedModifiers]:
        """
        Gather persistent modifiers of one target type from active effects.

        Args:
            snapshot: Character to read
            target_type: Attribute, movement or skill modifiers

        Returns:
            Stacked modifiers keyed by lowercase target name
        """
        stacked: dict[str, StackedModifiers] = {}
        for effect in snapshot.active_effects:
            if not effect.active:
                continue
            for modifier in cls._modifier_list(effect):
                if modifier.target_type != target_type:
                    continue
                target = (modifier.target or "").lower()
                entry = stacked.setdefault(target, StackedModifiers())
                value = coerce_number(modifier.value)
                if modifier.operation == ModifierOperation.MULTIPLY:
                    entry.multiplicative.append(value)
                else:
                    entry.additive += value
        return stacked

    @classmethod
    def _modifier_list(cls, effect: ActiveEffect) -> list[PersistentModifier]:
        modifiers = effect.modifiers
        if not isinstance(modifiers, (list, tuple)):
            if modifiers:
                logger.warning(
                    f"Ignoring malformed modifier data on effect '{effect.name}': "
                    f"{type(modifiers).__name__}"
                )
            return []
        return [m for m in modifiers if isinstance(m, PersistentModifier)]

    @classmethod
    def _scoped_total(
        cls,
        snapshot: CharacterSnapshot,
        scopes: dict[EffectType, Optional[ActionScope]],
        scope: ActionScope,
        weapon_id: Optional[str],
    ) -> EffectTotal:
        result = EffectTotal()
        for effect, source_id, source_name in cls.equipped_effects(snapshot):
            if effect.effect_type not in scopes:
                continue
            effect_scope = scopes[effect.effect_type]
            if effect_scope is not None and effect_scope != scope:
                continue
            if effect.attached_item_only and source_id != weapon_id:
                continue
            result.add(effect, source_name, coerce_number(effect.value))
        return result
