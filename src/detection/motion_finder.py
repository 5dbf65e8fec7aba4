"""
Motion finder: background-difference bounding box extraction.

Given a fixed background reference and a new grayscale frame, the finder
computes the absolute per-pixel difference, binarizes it, removes isolated
noise with an erosion followed by a dilation and extracts the external
contours. The bounding rectangle of all contours combined is the motion box.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Tuple

import cv2
import numpy as np

from models.config import MotionConfig
from models.detection import BoundingBox
from .geometry import contours_bounding_box


# (name, image) -> None. Receives intermediate images when contours are found.
DiagnosticsCallback = Callable[[str, np.ndarray], None]


def _validate_pair(a: np.ndarray, b: np.ndarray) -> None:
    if a.ndim != 2 or b.ndim != 2:
        raise ValueError(f"Expected single channel frames, got shapes {a.shape} and {b.shape}")
    if a.shape != b.shape:
        raise ValueError(f"Frame shapes differ: {a.shape} vs {b.shape}")


def difference_mask(
    reference: np.ndarray,
    frame: np.ndarray,
    config: MotionConfig,
    threshold: Optional[int] = None,
    max_value: Optional[int] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Binary mask of significant differences between two frames.

    Args:
        reference: Reference frame (usually the background).
        frame: Frame to compare.
        config: Motion parameters (structuring element, iterations).
        threshold: Binarization threshold. None = config.threshold.
        max_value: Value for pixels above the threshold. None = config.max_value.

    Returns:
        Tuple of (absolute difference image, cleaned binary mask).
    """
    _validate_pair(reference, frame)
    threshold = config.threshold if threshold is None else threshold
    max_value = config.max_value if max_value is None else max_value

    diff = cv2.absdiff(reference, frame)
    _, mask = cv2.threshold(diff, threshold, max_value, cv2.THRESH_BINARY)

    kernel = np.ones((config.kernel_size, config.kernel_size), np.uint8)
    mask = cv2.erode(mask, kernel, iterations=config.erode_iterations)
    mask = cv2.dilate(mask, kernel, iterations=config.dilate_iterations)
    return diff, mask


def find_contours(
    reference: np.ndarray,
    frame: np.ndarray,
    config: MotionConfig,
    threshold: Optional[int] = None,
    max_value: Optional[int] = None,
    diagnostics: Optional[DiagnosticsCallback] = None,
) -> List[np.ndarray]:
    """Significant external contours between two frames."""
    diff, mask = difference_mask(reference, frame, config, threshold, max_value)
    contours, _ = cv2.findContours(mask, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)

    if len(contours) > 0 and diagnostics is not None:
        try:
            diagnostics("frame", frame)
            diagnostics("diff", diff)
            diagnostics("mask", mask)
        except Exception as e:
            logging.warning(f"Diagnostics callback error: {e}")

    return list(contours)


def find_bounding_box(
    background: np.ndarray,
    frame: np.ndarray,
    config: MotionConfig,
    threshold: Optional[int] = None,
    max_value: Optional[int] = None,
    diagnostics: Optional[DiagnosticsCallback] = None,
) -> Optional[BoundingBox]:
    """
    Bounding box of everything that differs from the background.

    Returns:
        The box enclosing all contours, or None if there are no contours or
        the box is lower than config.min_height_factor of the frame height.
    """
    contours = find_contours(background, frame, config, threshold, max_value, diagnostics)
    bbox = contours_bounding_box(contours)
    if bbox is None:
        return None

    if bbox.height < frame.shape[0] * config.min_height_factor:
        logging.debug(f"Discarding low bounding box {bbox.as_xywh()}")
        return None

    return bbox


class MotionFinder:
    """
    Finds motion relative to a fixed background reference.

    The background is copied and stored read-only. Replacing the background
    means building a new MotionFinder.

    Example:
        finder = MotionFinder(background)
        bbox = finder.find_bounding_box(frame)
        stalled = not finder.has_difference(frames[0], frames[-1])
    """

    def __init__(
        self,
        background: np.ndarray,
        config: Optional[MotionConfig] = None,
        diagnostics: Optional[DiagnosticsCallback] = None,
    ) -> None:
        if background.ndim != 2:
            raise ValueError(f"Background must be a single channel image, got shape {background.shape}")
        self._background = np.array(background, dtype=np.uint8, copy=True)
        self._background.setflags(write=False)
        self._config = config or MotionConfig()
        self._diagnostics = diagnostics

    @property
    def background(self) -> np.ndarray:
        """The background reference (read-only)."""
        return self._background

    @property
    def config(self) -> MotionConfig:
        return self._config

    def find_bounding_box(
        self,
        frame: np.ndarray,
        threshold: Optional[int] = None,
        max_value: Optional[int] = None,
    ) -> Optional[BoundingBox]:
        """Bounding box of the foreground in frame, or None."""
        return find_bounding_box(
            self._background, frame, self._config, threshold, max_value, self._diagnostics
        )

    def has_difference(
        self,
        frame_a: np.ndarray,
        frame_b: np.ndarray,
        threshold: Optional[int] = None,
        max_value: Optional[int] = None,
    ) -> bool:
        """Tells if the two frames have a significant difference."""
        return len(find_contours(frame_a, frame_b, self._config, threshold, max_value)) > 0
