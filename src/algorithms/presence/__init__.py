"""
Presence detection for the rail crossing monitor.

Turns motion boxes into train entry/exit decisions. The detector owns the
background reference and the dwell timers; heuristics only classify a batch.

Available heuristics:
- EdgeTrendHeuristic: edge-anchored boxes growing (entry) or shrinking (exit)
- CoverageHeuristic: full-width coverage (entry), box-less ticks confirm exit
"""

from .state import DetectorState, TRANSITIONS, is_allowed, next_state
from .heuristics import PresenceHeuristic, EdgeTrendHeuristic, CoverageHeuristic, create_heuristic
from .entry_detector import EntryDetector, create_detector_from_config

__all__ = [
    "DetectorState",
    "TRANSITIONS",
    "is_allowed",
    "next_state",
    "PresenceHeuristic",
    "EdgeTrendHeuristic",
    "CoverageHeuristic",
    "create_heuristic",
    "EntryDetector",
    "create_detector_from_config",
]
