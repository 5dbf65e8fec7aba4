"""
Detector states and the transition table.

    ENTRY   -> ENTRY, EXIT
    EXIT    -> ENTRY, EXIT, NOTHING
    NOTHING -> ENTRY, NOTHING

A request outside the current state's set is ignored.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet


class DetectorState(str, Enum):
    """Presence state of the watched crossing."""
    ENTRY = "entry"
    EXIT = "exit"
    NOTHING = "nothing"


TRANSITIONS: Dict[DetectorState, FrozenSet[DetectorState]] = {
    DetectorState.ENTRY: frozenset({DetectorState.ENTRY, DetectorState.EXIT}),
    DetectorState.EXIT: frozenset({DetectorState.ENTRY, DetectorState.EXIT, DetectorState.NOTHING}),
    DetectorState.NOTHING: frozenset({DetectorState.ENTRY, DetectorState.NOTHING}),
}


def is_allowed(current: DetectorState, requested: DetectorState) -> bool:
    return requested in TRANSITIONS[current]


def next_state(current: DetectorState, requested: DetectorState) -> DetectorState:
    """Resulting state when `requested` is asked for while in `current`."""
    return requested if is_allowed(current, requested) else current
