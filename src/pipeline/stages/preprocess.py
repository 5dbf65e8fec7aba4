"""
Preprocess stage: turn raw camera frames into detector input.

The detector works on small single channel images. This stage converts to
grayscale, crops the region of interest (the band of the image the tracks
run through) and downscales.
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple

import cv2
import numpy as np

from models.config import PreprocessConfig
from models.frame import FrameData


class PreprocessStage:
    """
    Pipeline stage preparing frames for the entry detector.

    Example:
        stage = PreprocessStage(PreprocessConfig(roi=[0, 460, 1280, 155], scale=0.5))
        gray = stage.process(frame_data)
    """

    def __init__(self, config: Optional[PreprocessConfig] = None):
        self._config = config or PreprocessConfig()
        if self._config.scale <= 0:
            raise ValueError(f"scale must be positive, got {self._config.scale}")
        if self._config.roi is not None and len(self._config.roi) != 4:
            raise ValueError(f"roi must be [x, y, width, height], got {self._config.roi}")
        self._warned_clip = False

    @property
    def config(self) -> PreprocessConfig:
        return self._config

    def crop_region(self, width: int, height: int) -> Tuple[int, int, int, int]:
        """
        ROI clipped to the frame, as (x, y, w, h).

        Raises:
            ValueError: If the ROI lies outside the frame.
        """
        if self._config.roi is None:
            return (0, 0, width, height)

        x, y, w, h = (int(v) for v in self._config.roi)
        x1, y1 = max(0, x), max(0, y)
        x2, y2 = min(width, x + w), min(height, y + h)
        if x2 <= x1 or y2 <= y1:
            raise ValueError(f"ROI {self._config.roi} lies outside the {width}x{height} frame")

        if (x1, y1, x2 - x1, y2 - y1) != (x, y, w, h) and not self._warned_clip:
            logging.warning(f"ROI {self._config.roi} clipped to the {width}x{height} frame")
            self._warned_clip = True
        return (x1, y1, x2 - x1, y2 - y1)

    def process_array(self, frame: np.ndarray) -> np.ndarray:
        if frame.ndim == 3:
            gray = cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)
        else:
            gray = frame

        h, w = gray.shape[:2]
        x, y, cw, ch = self.crop_region(w, h)
        gray = gray[y:y + ch, x:x + cw]

        if self._config.scale != 1.0:
            size = (max(1, int(cw * self._config.scale)), max(1, int(ch * self._config.scale)))
            return cv2.resize(gray, size, interpolation=cv2.INTER_AREA)

        return gray.copy()

    def process(self, frame_data: FrameData) -> np.ndarray:
        """Grayscale, cropped and scaled copy of the frame."""
        return self.process_array(frame_data.frame)


def create_preprocess_stage(config: PreprocessConfig) -> PreprocessStage:
    """Factory function to create a PreprocessStage."""
    return PreprocessStage(config)
