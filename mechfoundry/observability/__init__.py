"""
Observability and replay for combat sessions.

Records every roll and resolved action and replays a saved fight from its
roll stream.
"""

from mechfoundry.observability.run_log import (
    RunLog,
    LogEvent,
    EventType,
    RollEvent,
    ResolutionEvent,
)
from mechfoundry.observability.replay import ReplaySession

__all__ = [
    "RunLog",
    "LogEvent",
    "EventType",
    "RollEvent",
    "ResolutionEvent",
    "ReplaySession",
]
