"""
Tests for the detector state table and the presence heuristics.
"""

import pytest

from algorithms.presence import (
    CoverageHeuristic,
    DetectorState,
    EdgeTrendHeuristic,
    create_heuristic,
    is_allowed,
    next_state,
)
from models.config import DetectorConfig
from models.detection import BoundingBox

ENTRY = DetectorState.ENTRY
EXIT = DetectorState.EXIT
NOTHING = DetectorState.NOTHING


@pytest.mark.parametrize(
    "current,requested,expected",
    [
        (ENTRY, ENTRY, ENTRY),
        (ENTRY, EXIT, EXIT),
        (ENTRY, NOTHING, ENTRY),
        (EXIT, ENTRY, ENTRY),
        (EXIT, EXIT, EXIT),
        (EXIT, NOTHING, NOTHING),
        (NOTHING, ENTRY, ENTRY),
        (NOTHING, EXIT, NOTHING),
        (NOTHING, NOTHING, NOTHING),
    ],
)
def test_next_state(current, requested, expected):
    assert next_state(current, requested) == expected


def test_disallowed_transitions():
    assert not is_allowed(ENTRY, NOTHING)
    assert not is_allowed(NOTHING, EXIT)


def test_state_values():
    assert DetectorState("entry") == ENTRY
    assert ENTRY.value == "entry"


def right(width, frame_width=240):
    return BoundingBox(frame_width - width, 10, frame_width, 90)


def left(width):
    return BoundingBox(0, 10, width, 90)


class TestEdgeTrendHeuristic:
    heuristic = EdgeTrendHeuristic(edge_margin_ratio=0.05)

    def test_growing_at_edge_is_entry(self):
        assert self.heuristic.classify([right(40), right(80), right(140)], 3, 240) == ENTRY

    def test_shrinking_at_edge_is_exit(self):
        assert self.heuristic.classify([left(140), left(80), left(40)], 3, 240) == EXIT

    def test_two_frame_batch(self):
        assert self.heuristic.classify([right(40), right(80)], 2, 240) == ENTRY

    def test_frame_without_box_is_nothing(self):
        # three widening boxes from a batch of four
        assert self.heuristic.classify([right(40), right(80), right(140)], 4, 240) == NOTHING
        assert self.heuristic.classify([right(140), right(80), right(40)], 4, 240) == NOTHING

    def test_single_box_is_nothing(self):
        assert self.heuristic.classify([right(40)], 4, 240) == NOTHING

    def test_not_monotonic_is_nothing(self):
        assert self.heuristic.classify([right(40), right(140), right(80)], 3, 240) == NOTHING

    def test_box_away_from_edge_is_nothing(self):
        floating = BoundingBox(100, 10, 180, 90)
        assert self.heuristic.classify([right(40), floating, right(140)], 3, 240) == NOTHING

    def test_no_misses_needed(self):
        assert self.heuristic.confirms_exit_on_misses is False


class TestCoverageHeuristic:
    heuristic = CoverageHeuristic(edge_margin_ratio=0.05)

    def test_full_width_batch_is_entry(self):
        assert self.heuristic.classify([right(240)] * 4, 4, 240) == ENTRY

    def test_missing_frame_is_nothing(self):
        assert self.heuristic.classify([right(240)] * 3, 4, 240) == NOTHING

    def test_partial_width_is_nothing(self):
        assert self.heuristic.classify([right(240), right(200)], 2, 240) == NOTHING

    def test_never_requests_exit(self):
        assert self.heuristic.classify([right(140), right(80)], 2, 240) == NOTHING

    def test_exit_confirmed_on_misses(self):
        assert self.heuristic.confirms_exit_on_misses is True


class TestCreateHeuristic:
    def test_default_is_edge_trend(self):
        assert isinstance(create_heuristic(DetectorConfig()), EdgeTrendHeuristic)

    def test_coverage(self):
        assert isinstance(create_heuristic(DetectorConfig(heuristic="coverage")), CoverageHeuristic)

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unknown heuristic"):
            create_heuristic(DetectorConfig(heuristic="optical_flow"))
