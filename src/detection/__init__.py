"""
Rail Crossing Monitor - Detection Module

This module finds motion against a background reference in video frames.
"""

from .motion_finder import MotionFinder, DiagnosticsCallback, difference_mask, find_bounding_box
from .geometry import (
    EDGE_LEFT,
    EDGE_RIGHT,
    common_edge,
    contours_bounding_box,
    edge_margin,
    spans_width,
    width_trend,
)

__all__ = [
    'MotionFinder',
    'DiagnosticsCallback',
    'difference_mask',
    'find_bounding_box',
    'EDGE_LEFT',
    'EDGE_RIGHT',
    'common_edge',
    'contours_bounding_box',
    'edge_margin',
    'spans_width',
    'width_trend',
]
