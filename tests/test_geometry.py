"""
Tests for the geometry helpers.
"""

import numpy as np

from detection.geometry import (
    EDGE_LEFT,
    EDGE_RIGHT,
    common_edge,
    contours_bounding_box,
    edge_margin,
    spans_width,
    width_trend,
)
from models.detection import BoundingBox


def box(x1, x2, y1=10, y2=90):
    return BoundingBox(x1, y1, x2, y2)


class TestContoursBoundingBox:
    def test_no_contours(self):
        assert contours_bounding_box([]) is None

    def test_union_of_contours(self):
        a = np.array([[[10, 10]], [[20, 10]], [[20, 30]], [[10, 30]]], dtype=np.int32)
        b = np.array([[[50, 5]], [[60, 5]], [[60, 15]], [[50, 15]]], dtype=np.int32)

        bbox = contours_bounding_box([a, b])

        assert bbox.as_xywh() == (10, 5, 51, 26)


class TestEdges:
    def test_edge_margin(self):
        assert edge_margin(240, 0.05) == 12
        assert edge_margin(240, 0.0) == 0

    def test_common_right_edge(self):
        assert common_edge([box(200, 240), box(150, 240)], 240, 12) == EDGE_RIGHT

    def test_common_left_edge(self):
        assert common_edge([box(0, 40), box(5, 90)], 240, 12) == EDGE_LEFT

    def test_full_width_reports_left(self):
        assert common_edge([box(0, 240)], 240, 12) == EDGE_LEFT

    def test_mixed_edges(self):
        assert common_edge([box(0, 40), box(200, 240)], 240, 12) is None

    def test_floating_box(self):
        assert common_edge([box(100, 140)], 240, 12) is None

    def test_no_boxes(self):
        assert common_edge([], 240, 12) is None

    def test_spans_width(self):
        assert spans_width(box(3, 238), 240, 12)
        assert not spans_width(box(30, 240), 240, 12)


class TestWidthTrend:
    def test_growing(self):
        assert width_trend([box(200, 240), box(160, 240), box(100, 240)]) == 2

    def test_shrinking(self):
        assert width_trend([box(100, 240), box(160, 240), box(200, 240)]) == -2

    def test_equal_widths_do_not_count(self):
        assert width_trend([box(100, 240), box(100, 240), box(50, 240)]) == 1

    def test_mixed(self):
        assert width_trend([box(100, 240), box(50, 240), box(100, 240)]) == 0

    def test_single_box(self):
        assert width_trend([box(100, 240)]) == 0
