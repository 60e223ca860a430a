"""
Mech Foundry combat rules engine.

Resolves 2d6 action rolls, attribute derivation, modifier stacking, armor,
single attacks, opposed melee contests and area attacks from read-only
character snapshots.
"""

__version__ = "0.1.0"
