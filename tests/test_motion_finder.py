"""
Tests for the motion finder.
"""

from unittest.mock import MagicMock

import numpy as np
import pytest

from detection.motion_finder import MotionFinder, difference_mask, find_bounding_box
from models.config import MotionConfig


class TestFindBoundingBox:
    def test_identical_frame_has_no_box(self, frames):
        finder = MotionFinder(frames.background())

        assert finder.find_bounding_box(frames.background()) is None

    def test_train_at_right_edge(self, frames):
        finder = MotionFinder(frames.background())

        bbox = finder.find_bounding_box(frames.train(40))

        assert bbox is not None
        assert bbox.x2 == frames.width
        assert 40 <= bbox.width <= 60
        assert bbox.y1 < frames.train_top
        assert bbox.y2 > frames.train_bottom

    def test_train_at_left_edge(self, frames):
        finder = MotionFinder(frames.background())

        bbox = finder.find_bounding_box(frames.train(80, edge="left"))

        assert bbox.x1 == 0
        assert 80 <= bbox.width <= 100

    def test_widths_follow_train(self, frames):
        finder = MotionFinder(frames.background())

        widths = [finder.find_bounding_box(f).width for f in frames.entering()]

        assert widths[0] < widths[1] < widths[2]

    def test_low_box_is_discarded(self, frames):
        finder = MotionFinder(frames.background())

        assert finder.find_bounding_box(frames.bird()) is None

    def test_low_box_kept_without_height_filter(self, frames):
        finder = MotionFinder(frames.background(), MotionConfig(min_height_factor=0.0))

        bbox = finder.find_bounding_box(frames.bird())

        assert bbox is not None
        assert bbox.height < frames.height * 0.3

    def test_small_blob_is_eroded(self, frames):
        config = MotionConfig(min_height_factor=0.0)

        assert find_bounding_box(frames.background(), frames.speck(), config) is None

    def test_threshold_override(self, frames):
        finder = MotionFinder(frames.background())

        assert finder.find_bounding_box(frames.train(80), threshold=200) is None
        assert finder.find_bounding_box(frames.train(80), threshold=100) is not None

    def test_two_blobs_are_combined(self, frames):
        finder = MotionFinder(frames.background())
        frame = frames.train(40)
        frame[frames.train_top:frames.train_bottom, :40] = frames.train_value

        bbox = finder.find_bounding_box(frame)

        assert bbox.x1 == 0
        assert bbox.x2 == frames.width

    def test_darker_object_is_found(self, frames):
        finder = MotionFinder(frames.background())
        frame = frames.background()
        frame[10:110, 100:240] = 0

        assert finder.find_bounding_box(frame) is not None


class TestValidation:
    def test_shape_mismatch(self, frames):
        finder = MotionFinder(frames.background())

        with pytest.raises(ValueError):
            finder.find_bounding_box(np.zeros((60, 120), dtype=np.uint8))

    def test_color_frame_rejected(self, frames):
        finder = MotionFinder(frames.background())

        with pytest.raises(ValueError):
            finder.find_bounding_box(np.zeros((frames.height, frames.width, 3), dtype=np.uint8))

    def test_color_background_rejected(self, frames):
        with pytest.raises(ValueError):
            MotionFinder(np.zeros((frames.height, frames.width, 3), dtype=np.uint8))


class TestBackground:
    def test_background_is_a_read_only_copy(self, frames):
        background = frames.background()
        finder = MotionFinder(background)

        background[:] = 0

        assert finder.background[0, 0] == frames.background_value
        with pytest.raises(ValueError):
            finder.background[0, 0] = 1


class TestHasDifference:
    def test_same_frames(self, frames):
        finder = MotionFinder(frames.background())

        assert finder.has_difference(frames.train(140), frames.train(140)) is False

    def test_moving_train(self, frames):
        finder = MotionFinder(frames.background())

        assert finder.has_difference(frames.train(40), frames.train(140)) is True

    def test_small_change_ignored(self, frames):
        finder = MotionFinder(frames.background())

        assert finder.has_difference(frames.train(140), frames.train(145)) is False


class TestDiagnostics:
    def test_images_reported_when_contours_found(self, frames):
        sink = MagicMock()
        finder = MotionFinder(frames.background(), diagnostics=sink)

        finder.find_bounding_box(frames.train(80))

        names = [c.args[0] for c in sink.call_args_list]
        assert names == ["frame", "diff", "mask"]

    def test_nothing_reported_without_contours(self, frames):
        sink = MagicMock()
        finder = MotionFinder(frames.background(), diagnostics=sink)

        finder.find_bounding_box(frames.background())

        sink.assert_not_called()

    def test_failing_sink_is_ignored(self, frames):
        sink = MagicMock(side_effect=OSError("read-only file system"))
        finder = MotionFinder(frames.background(), diagnostics=sink)

        assert finder.find_bounding_box(frames.train(80)) is not None


class TestDifferenceMask:
    def test_mask_is_binary(self, frames):
        _, mask = difference_mask(frames.background(), frames.train(80), MotionConfig())

        assert set(np.unique(mask)) <= {0, 255}

    def test_diff_is_absolute(self, frames):
        diff, _ = difference_mask(frames.train(80), frames.background(), MotionConfig())

        assert diff.max() == frames.train_value - frames.background_value
