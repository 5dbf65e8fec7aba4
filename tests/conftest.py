"""
Pytest configuration and shared fixtures.
"""

import os
import sys

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from runtime.clock import ManualClock  # noqa: E402


# 2000-01-01 00:00:00 UTC
START_TIME = 946684800.0


class SyntheticFrames:
    """
    Builds small grayscale frames of a crossing.

    The background is flat gray. A train is a bright band between rows
    20 and 80 that reaches in from one horizontal edge.
    """

    height = 120
    width = 240
    background_value = 50
    train_value = 200
    train_top = 20
    train_bottom = 80

    def background(self) -> np.ndarray:
        return np.full((self.height, self.width), self.background_value, dtype=np.uint8)

    def train(self, width: int, edge: str = "right") -> np.ndarray:
        """A train reaching `width` pixels into the frame from `edge`."""
        frame = self.background()
        if edge == "right":
            frame[self.train_top:self.train_bottom, self.width - width:] = self.train_value
        else:
            frame[self.train_top:self.train_bottom, :width] = self.train_value
        return frame

    def full_train(self) -> np.ndarray:
        return self.train(self.width)

    def bird(self) -> np.ndarray:
        """A flat blob in the middle of the frame, too low to be a train."""
        frame = self.background()
        frame[50:70, 80:160] = self.train_value
        return frame

    def speck(self) -> np.ndarray:
        """A blob small enough to vanish in the erosion."""
        frame = self.background()
        frame[50:62, 100:112] = self.train_value
        return frame

    def entering(self, edge: str = "right"):
        return [self.train(40, edge), self.train(80, edge), self.train(140, edge)]

    def exiting(self, edge: str = "right"):
        return [self.train(140, edge), self.train(80, edge), self.train(40, edge)]

    def still(self, count: int = 3):
        """A train standing in the frame, identical in every frame."""
        return [self.train(140) for _ in range(count)]

    def moving(self):
        """A train in view that moves between the first and last frame."""
        return [self.train(140), self.train(180), self.train(220)]

    def empty(self, count: int = 3):
        return [self.background() for _ in range(count)]


@pytest.fixture
def frames():
    return SyntheticFrames()


@pytest.fixture
def clock():
    return ManualClock(start=START_TIME)


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create a temporary config directory with default.yaml."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    default_yaml = config_dir / "default.yaml"
    default_yaml.write_text("""
camera:
  backend: "opencv"
  device_id: 0
  resolution: [640, 480]
  fps: 1

motion:
  threshold: 40
  erode_iterations: 8
  dilate_iterations: 15

detector:
  min_time_after_entry: 60
  heuristic: "edge_trend"

recording:
  output_dir: "recordings"

log_path: "logs/test.log"
log_level: "INFO"
""")

    return config_dir


@pytest.fixture
def valid_config():
    """Return a valid configuration dictionary."""
    return {
        "camera": {
            "backend": "opencv",
            "device_id": 0,
            "resolution": [1280, 720],
            "fps": 1,
        },
        "preprocess": {
            "roi": [0, 460, 1280, 155],
            "scale": 0.5,
            "batch_size": 4,
        },
        "motion": {
            "threshold": 40,
            "max_value": 255,
            "kernel_size": 3,
            "erode_iterations": 8,
            "dilate_iterations": 15,
            "min_height_factor": 0.3,
        },
        "detector": {
            "min_time_after_exit": 3,
            "min_time_after_entry": 60,
            "max_recording_duration": 2700,
            "heuristic": "edge_trend",
        },
        "recording": {
            "output_dir": "recordings",
            "fourcc": "mp4v",
        },
        "log_path": "logs/test.log",
        "log_level": "INFO",
    }
