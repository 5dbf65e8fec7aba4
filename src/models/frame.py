"""
Camera frames as they travel from the observation source to the recorder
and the preprocess stage.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import cv2
import numpy as np


@dataclass
class FrameData:
    """
    One captured frame plus where and when it was taken.

    The recorder writes `frame` untouched; the detector only ever sees the
    grayscale crop made by the preprocess stage.

    Attributes:
        frame: Pixel data, BGR from cameras or single channel from tests.
        width: Frame width in pixels.
        height: Frame height in pixels.
        timestamp: Capture time in seconds since the epoch. For video files
            this follows the playback position.
        frame_index: 1-based position since the source was opened.
        source: source_id of the producing ObservationSource.
    """
    frame: np.ndarray
    width: int
    height: int
    timestamp: float
    frame_index: int = 0
    source: Optional[str] = None

    @classmethod
    def from_numpy(
        cls,
        frame: np.ndarray,
        timestamp: float,
        frame_index: int = 0,
        source: Optional[str] = None,
    ) -> "FrameData":
        """Wrap an array, taking width and height from its shape."""
        height, width = frame.shape[:2]
        return cls(frame, width, height, timestamp, frame_index, source)

    @property
    def size(self) -> Tuple[int, int]:
        """(width, height), the order cv2.VideoWriter expects."""
        return (self.width, self.height)

    @property
    def is_gray(self) -> bool:
        return self.frame.ndim == 2

    def to_gray(self) -> np.ndarray:
        """Single channel copy of the frame."""
        if self.is_gray:
            return self.frame.copy()
        return cv2.cvtColor(self.frame, cv2.COLOR_BGR2GRAY)
