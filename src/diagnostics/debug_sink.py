"""
Debug image sink for the motion finder.

Writes intermediate images (background, frame, diff, mask) as numbered JPEG
files so thresholds can be tuned offline. The sequence wraps at max_images,
overwriting the oldest files.
"""

from __future__ import annotations

import logging
import os

import cv2
import numpy as np


class DebugImageSink:
    """
    Callable diagnostics sink: sink(name, image).

    Files are named NNNN-name.jpg. Each instance has its own sequence.
    """

    def __init__(self, output_dir: str, max_images: int = 100):
        if max_images <= 0:
            raise ValueError(f"max_images must be positive, got {max_images}")
        self.output_dir = output_dir
        self.max_images = max_images
        self._sequence = 0
        os.makedirs(output_dir, exist_ok=True)

    def next_path(self, name: str) -> str:
        path = os.path.join(self.output_dir, f"{self._sequence:04d}-{name}.jpg")
        self._sequence = (self._sequence + 1) % self.max_images
        return path

    def __call__(self, name: str, image: np.ndarray) -> None:
        path = self.next_path(name)
        if not cv2.imwrite(path, image):
            logging.warning(f"Failed to write debug image {path}")


def create_sink_from_config(config):
    """Factory: DebugImageSink if diagnostics are enabled, else None."""
    diagnostics = config.diagnostics
    if diagnostics is None or not diagnostics.enabled:
        return None
    logging.info(f"Writing debug images to {diagnostics.output_dir}")
    return DebugImageSink(diagnostics.output_dir, diagnostics.max_images)
