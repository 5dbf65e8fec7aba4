"""
Observation layer for the camera feed.

Abstracts where frames come from (USB camera, IP stream, video file) from the
processing pipeline. Each source implements the ObservationSource interface
and returns FrameData objects.
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict

from .base import ObservationSource, ObservationConfig
from .opencv_source import OpenCVSource, OpenCVSourceConfig
from .rtsp_utils import inject_rtsp_credentials, sanitize_url


def create_source_from_config(camera_cfg: Dict[str, Any], source_id: str = "camera") -> ObservationSource:
    """
    Factory: Create an observation source from the camera section of the config.

    RTSP credentials from camera_cfg["secrets_file"] are merged into a copy of
    the config, the caller's dict is not modified.

    Raises:
        ValueError: If the backend is not supported.
    """
    camera_cfg = copy.deepcopy(camera_cfg)
    backend = camera_cfg.get("backend", "opencv")
    if backend != "opencv":
        raise ValueError(f"Unsupported camera backend: {backend}")

    inject_rtsp_credentials(camera_cfg)
    config = OpenCVSourceConfig.from_camera_config(camera_cfg, source_id=source_id)
    logging.info(f"Using OpenCV source: device={sanitize_url(config.device_id)}")
    return OpenCVSource(config)


__all__ = [
    "ObservationSource",
    "ObservationConfig",
    "OpenCVSource",
    "OpenCVSourceConfig",
    "create_source_from_config",
    "inject_rtsp_credentials",
    "sanitize_url",
]
