"""
Geometry helpers shared by the motion finder and the presence heuristics.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

import cv2
import numpy as np

from models.detection import BoundingBox, union_all


EDGE_LEFT = "left"
EDGE_RIGHT = "right"


def contours_bounding_box(contours: Sequence[np.ndarray]) -> Optional[BoundingBox]:
    """
    Bounding rectangle of the union of all contours.

    Args:
        contours: Contours as returned by cv2.findContours.

    Returns:
        The enclosing box, or None if there are no contours.
    """
    return union_all(BoundingBox.from_xywh(*cv2.boundingRect(c)) for c in contours)


def edge_margin(frame_width: int, ratio: float) -> int:
    """Edge-touch tolerance in pixels, proportional to the frame width."""
    return max(0, int(round(frame_width * ratio)))


def touches_left_edge(box: BoundingBox, margin: int) -> bool:
    return box.x1 <= margin


def touches_right_edge(box: BoundingBox, frame_width: int, margin: int) -> bool:
    return box.x2 >= frame_width - margin


def common_edge(boxes: Sequence[BoundingBox], frame_width: int, margin: int) -> Optional[str]:
    """
    Horizontal frame edge touched by every box.

    Returns:
        EDGE_LEFT, EDGE_RIGHT, or None when the boxes do not share an edge.
        Boxes spanning the whole width report EDGE_LEFT.
    """
    if not boxes:
        return None
    if all(touches_left_edge(b, margin) for b in boxes):
        return EDGE_LEFT
    if all(touches_right_edge(b, frame_width, margin) for b in boxes):
        return EDGE_RIGHT
    return None


def spans_width(box: BoundingBox, frame_width: int, margin: int) -> bool:
    """True if the box covers the frame from the left to the right edge."""
    return touches_left_edge(box, margin) and touches_right_edge(box, frame_width, margin)


def width_trend(boxes: Sequence[BoundingBox]) -> int:
    """
    Net width trend over an ordered sequence of boxes.

    Each consecutive pair counts +1 if the width strictly increases and -1 if
    it strictly decreases. A monotonically widening sequence of n boxes
    returns n - 1, a monotonically narrowing one -(n - 1).
    """
    widths: List[int] = [b.width for b in boxes]
    trend = 0
    for prev, curr in zip(widths, widths[1:]):
        if curr > prev:
            trend += 1
        elif curr < prev:
            trend -= 1
    return trend
