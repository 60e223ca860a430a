"""
Test helpers for the Mech Foundry engine test suite.

Provides a scripted dice service with call recording and quick builders
for character snapshots.
"""

from mechfoundry.data_models import AttributeKey, AttributeScore, CharacterSnapshot


class ScriptedRoller:
    """Dice service that returns queued faces and records every request."""

    def __init__(self, faces=None):
        self.faces = list(faces or [])
        self.calls: list[tuple[int, int]] = []

    def queue(self, *faces: int) -> "ScriptedRoller":
        self.faces.extend(faces)
        return self

    def roll(self, count: int, sides: int) -> list[int]:
        self.calls.append((count, sides))
        if len(self.faces) < count:
            raise AssertionError(f"ScriptedRoller ran out of faces for {count}d{sides}")
        rolled, self.faces = self.faces[:count], self.faces[count:]
        return rolled

    @property
    def call_count(self) -> int:
        return len(self.calls)


def make_attributes(**values: int) -> dict[AttributeKey, AttributeScore]:
    """Attribute map from keyword bases, e.g. make_attributes(str=6); others are 5."""
    bases = {key.value: 5 for key in AttributeKey}
    bases.update(values)
    return {AttributeKey(key): AttributeScore(base=value) for key, value in bases.items()}


def make_character(character_id: str = "pc_1", name: str = "Test Pilot", **kwargs) -> CharacterSnapshot:
    attributes = kwargs.pop("attributes", None) or make_attributes()
    return CharacterSnapshot(character_id=character_id, name=name, attributes=attributes, **kwargs)
