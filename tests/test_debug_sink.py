"""
Tests for the debug image sink.
"""

import os

import numpy as np
import pytest

from diagnostics import DebugImageSink, create_sink_from_config
from models.config import Config


class TestDebugImageSink:
    def test_writes_numbered_images(self, tmp_path):
        sink = DebugImageSink(str(tmp_path / "debug"), max_images=10)
        image = np.zeros((20, 30), dtype=np.uint8)

        sink("frame", image)
        sink("mask", image)

        assert sorted(os.listdir(tmp_path / "debug")) == ["0000-frame.jpg", "0001-mask.jpg"]

    def test_sequence_wraps(self, tmp_path):
        sink = DebugImageSink(str(tmp_path), max_images=2)

        names = [os.path.basename(sink.next_path("diff")) for _ in range(3)]

        assert names == ["0000-diff.jpg", "0001-diff.jpg", "0000-diff.jpg"]

    def test_invalid_max_images(self, tmp_path):
        with pytest.raises(ValueError):
            DebugImageSink(str(tmp_path), max_images=0)


class TestCreateSink:
    def test_disabled_by_default(self, valid_config):
        assert create_sink_from_config(Config.from_dict(valid_config)) is None

    def test_enabled(self, valid_config, tmp_path):
        valid_config["diagnostics"] = {"enabled": True, "output_dir": str(tmp_path / "d"), "max_images": 5}

        sink = create_sink_from_config(Config.from_dict(valid_config))

        assert isinstance(sink, DebugImageSink)
        assert sink.max_images == 5
        assert os.path.isdir(tmp_path / "d")
