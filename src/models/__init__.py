"""
Typed models for the rail crossing monitor.

These models provide strong typing for frames, detection results, events
and configuration.
"""

from .frame import FrameData
from .detection import BoundingBox
from .events import DetectorEvent
from .config import (
    Config,
    CameraConfig,
    PreprocessConfig,
    MotionConfig,
    DetectorConfig,
    RecordingConfig,
    DiagnosticsConfig,
)

__all__ = [
    # Frame
    "FrameData",
    # Detection
    "BoundingBox",
    # Events
    "DetectorEvent",
    # Config
    "Config",
    "CameraConfig",
    "PreprocessConfig",
    "MotionConfig",
    "DetectorConfig",
    "RecordingConfig",
    "DiagnosticsConfig",
]
