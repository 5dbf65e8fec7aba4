"""
Presence heuristics turning a batch of motion boxes into a state request.

Two strategies exist and exactly one is used per detector (see
DetectorConfig.heuristic):

- EdgeTrendHeuristic: the boxes stick to a horizontal frame edge and their
  width grows (entry) or shrinks (exit) monotonically over the batch.
- CoverageHeuristic: every frame of the batch is covered edge to edge (entry).
  Exits are confirmed by the detector after a run of box-less ticks.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from detection.geometry import common_edge, edge_margin, spans_width, width_trend
from models.config import DetectorConfig, HEURISTIC_COVERAGE, HEURISTIC_EDGE_TREND, HEURISTICS
from models.detection import BoundingBox
from .state import DetectorState


class PresenceHeuristic(ABC):
    """
    Abstract base class for presence heuristics.

    A heuristic only looks at the boxes of one batch. It holds no state;
    timers and counters belong to the detector.
    """

    name = ""

    def __init__(self, edge_margin_ratio: float):
        self._edge_margin_ratio = edge_margin_ratio

    @property
    def confirms_exit_on_misses(self) -> bool:
        """Whether box-less ticks in entry count towards an exit."""
        return False

    def margin(self, frame_width: int) -> int:
        return edge_margin(frame_width, self._edge_margin_ratio)

    @abstractmethod
    def classify(
        self,
        boxes: Sequence[BoundingBox],
        batch_size: int,
        frame_width: int,
    ) -> DetectorState:
        """
        Classify a batch.

        Args:
            boxes: Boxes of the frames that yielded one, in frame order.
            batch_size: Number of frames in the batch.
            frame_width: Width of the analysed frames in pixels.

        Returns:
            The state to request from the detector.
        """
        pass


class EdgeTrendHeuristic(PresenceHeuristic):
    """
    Edge-touch plus width-trend heuristic.

    A train enters at a horizontal edge: its box touches that edge and widens
    from frame to frame. Leaving, the box shrinks towards the edge.
    """

    name = HEURISTIC_EDGE_TREND

    def classify(
        self,
        boxes: Sequence[BoundingBox],
        batch_size: int,
        frame_width: int,
    ) -> DetectorState:
        # every frame of the batch must yield a box
        if batch_size < 2 or len(boxes) != batch_size:
            return DetectorState.NOTHING

        if common_edge(boxes, frame_width, self.margin(frame_width)) is None:
            return DetectorState.NOTHING

        trend = width_trend(boxes)
        if trend == batch_size - 1:
            return DetectorState.ENTRY
        if trend == -(batch_size - 1):
            return DetectorState.EXIT
        return DetectorState.NOTHING


class CoverageHeuristic(PresenceHeuristic):
    """
    Full-width coverage heuristic.

    Entry when every frame of the batch has a box spanning the full width.
    """

    name = HEURISTIC_COVERAGE

    @property
    def confirms_exit_on_misses(self) -> bool:
        return True

    def classify(
        self,
        boxes: Sequence[BoundingBox],
        batch_size: int,
        frame_width: int,
    ) -> DetectorState:
        if not boxes or len(boxes) != batch_size:
            return DetectorState.NOTHING

        margin = self.margin(frame_width)
        if all(spans_width(b, frame_width, margin) for b in boxes):
            return DetectorState.ENTRY
        return DetectorState.NOTHING


def create_heuristic(config: DetectorConfig) -> PresenceHeuristic:
    """
    Factory: Create the heuristic named in the detector config.

    Raises:
        ValueError: If the heuristic name is unknown.
    """
    if config.heuristic == HEURISTIC_EDGE_TREND:
        return EdgeTrendHeuristic(config.edge_margin_ratio)
    if config.heuristic == HEURISTIC_COVERAGE:
        return CoverageHeuristic(config.edge_margin_ratio)
    raise ValueError(
        f"Unknown heuristic '{config.heuristic}', expected one of: {', '.join(HEURISTICS)}"
    )
