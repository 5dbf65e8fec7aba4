"""
OpenCV-based observation source.

Supports:
- USB cameras (device_id as int, e.g., 0)
- RTSP/IP cameras (device_id as str URL)
- Recorded video files (device_id as file path), used for replays

For files, frame timestamps follow the video position instead of the wall
clock, so a replay sees the same timing as the original capture.
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

import cv2
import numpy as np

from models.frame import FrameData
from .base import ObservationSource, ObservationConfig
from .rtsp_utils import sanitize_url


# V4L2 maps CAP_PROP_AUTO_EXPOSURE 0.25 to manual and 0.75 to aperture priority (auto).
AUTO_EXPOSURE_MANUAL = 0.25
AUTO_EXPOSURE_AUTO = 0.75


@dataclass
class OpenCVSourceConfig(ObservationConfig):
    """
    Configuration for OpenCV-based observation sources.

    Attributes:
        device_id: Camera index (int), RTSP URL (str), or file path (str).
        rtsp_transport: Transport protocol for RTSP ("tcp" or "udp").
        buffer_size: Capture buffer size. 1 keeps live feeds current.
        max_retries: Attempts to open the device before giving up.
        max_read_failures: Reconnect attempts on failed reads before read() gives up.
        warmup: Seconds to wait after opening a live device.
        swap_rb: Swap R/B channels (fixes RGB vs BGR issues).
        rotate: Rotation in degrees (0, 90, 180, 270).
        flip_horizontal: Flip frame horizontally.
        flip_vertical: Flip frame vertically.
    """
    device_id: Union[int, str] = 0
    rtsp_transport: str = "tcp"
    buffer_size: int = 1
    max_retries: int = 3
    max_read_failures: int = 3
    warmup: float = 0.5
    swap_rb: bool = False
    rotate: int = 0
    flip_horizontal: bool = False
    flip_vertical: bool = False

    @classmethod
    def from_camera_config(cls, camera_cfg: Dict[str, Any], source_id: str = "camera") -> "OpenCVSourceConfig":
        """
        Adapter: Create OpenCVSourceConfig from the camera section of the config.

        Args:
            camera_cfg: Camera configuration dict (from config.yaml).
            source_id: Identifier for this source.
        """
        resolution = camera_cfg.get("resolution")
        if resolution:
            resolution = tuple(resolution)

        return cls(
            source_id=source_id,
            resolution=resolution,
            fps=camera_cfg.get("fps"),
            device_id=camera_cfg.get("device_id", 0),
            rtsp_transport=camera_cfg.get("rtsp_transport", "tcp"),
            buffer_size=camera_cfg.get("buffer_size", 1),
            max_retries=camera_cfg.get("max_retries", 3),
            max_read_failures=camera_cfg.get("max_read_failures", 3),
            warmup=camera_cfg.get("warmup", 0.5),
            swap_rb=camera_cfg.get("swap_rb", False),
            rotate=camera_cfg.get("rotate", 0) or 0,
            flip_horizontal=camera_cfg.get("flip_horizontal", False),
            flip_vertical=camera_cfg.get("flip_vertical", False),
        )


class OpenCVSource(ObservationSource):
    """
    Observation source wrapping cv2.VideoCapture.

    Live devices are reopened with exponential backoff when reads fail.
    correct_exposure() is meant as the entry detector's exposure hook.

    Example:
        config = OpenCVSourceConfig(device_id=0, resolution=(1280, 720), fps=1)
        with OpenCVSource(config) as source:
            for frame_data in source:
                process(frame_data.frame)
    """

    def __init__(self, config: OpenCVSourceConfig):
        super().__init__(config)
        self._opencv_config = config
        self._cap: Optional[cv2.VideoCapture] = None
        self._read_failures = 0
        self._start_time: Optional[float] = None

    @property
    def device_id(self) -> Union[int, str]:
        return self._opencv_config.device_id

    @property
    def is_rtsp(self) -> bool:
        return isinstance(self.device_id, str) and self.device_id.startswith(("rtsp://", "rtsps://"))

    @property
    def is_file(self) -> bool:
        return isinstance(self.device_id, str) and not self.is_rtsp and os.path.exists(self.device_id)

    @property
    def fps(self) -> float:
        """Frame rate reported by the device, falling back to the configured one."""
        if self._cap is not None:
            reported = self._cap.get(cv2.CAP_PROP_FPS)
            if reported and reported > 0:
                return float(reported)
        return float(self._opencv_config.fps or 1)

    def open(self) -> None:
        if self._is_open:
            return

        self._connect()
        self._read_failures = 0
        self._is_open = True
        self._frame_index = 0
        self._start_time = time.time()

        logging.info(
            f"OpenCVSource opened: source_id={self.source_id}, "
            f"device={sanitize_url(self.device_id)}, resolution={self._opencv_config.resolution}"
        )

    def _connect(self) -> None:
        """
        (Re)open the capture device.

        Raises:
            RuntimeError: If the device cannot be opened within max_retries attempts.
        """
        cfg = self._opencv_config
        device = sanitize_url(self.device_id)

        for attempt in range(cfg.max_retries):
            self._release()

            if attempt > 0:
                wait_time = min(2 ** attempt, 10)
                logging.info(
                    f"Retrying to open {device} (attempt {attempt + 1}/{cfg.max_retries}) after {wait_time}s"
                )
                time.sleep(wait_time)

            if self.is_rtsp:
                os.environ["OPENCV_FFMPEG_CAPTURE_OPTIONS"] = f"rtsp_transport;{cfg.rtsp_transport}"

            self._cap = cv2.VideoCapture(self.device_id)
            if self._cap.isOpened():
                break
            logging.warning(f"Failed to open device {device}")
        else:
            self._release()
            raise RuntimeError(f"Failed to open device {device} after {cfg.max_retries} attempts")

        if isinstance(self.device_id, int):
            self._configure_device()

        if not self.is_file and cfg.warmup > 0:
            time.sleep(cfg.warmup)

    def _configure_device(self) -> None:
        cfg = self._opencv_config
        if cfg.resolution:
            w, h = cfg.resolution
            self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, w)
            self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, h)
        if cfg.fps:
            self._cap.set(cv2.CAP_PROP_FPS, cfg.fps)
        self._cap.set(cv2.CAP_PROP_BUFFERSIZE, cfg.buffer_size)

        logging.info(
            f"Camera settings - Resolution: ({self._cap.get(cv2.CAP_PROP_FRAME_WIDTH)}x"
            f"{self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT)}), FPS: {self._cap.get(cv2.CAP_PROP_FPS)}"
        )

    def read(self) -> Optional[FrameData]:
        if not self._is_open or self._cap is None:
            return None

        ret, frame = self._cap.read()

        if not ret or frame is None:
            if self.is_file:
                logging.info("End of video file reached")
                return None

            frame = self._reconnect_and_read()
            if frame is None:
                return None

        self._read_failures = 0
        frame = self._apply_transforms(frame)
        self._frame_index += 1

        return FrameData(
            frame=frame,
            width=frame.shape[1],
            height=frame.shape[0],
            timestamp=self._timestamp(),
            frame_index=self._frame_index,
            source=self.source_id,
        )

    def _reconnect_and_read(self) -> Optional[np.ndarray]:
        self._read_failures += 1
        if self._read_failures > self._opencv_config.max_read_failures:
            logging.error("Too many consecutive read failures")
            return None

        logging.warning(f"Failed to read frame (failures: {self._read_failures}), reconnecting...")
        try:
            self._connect()
        except RuntimeError as e:
            logging.error(f"Reconnect failed: {e}")
            return None

        ret, frame = self._cap.read()
        return frame if ret else None

    def _timestamp(self) -> float:
        if self.is_file:
            return self._start_time + self._cap.get(cv2.CAP_PROP_POS_MSEC) / 1000.0
        return time.time()

    def _apply_transforms(self, frame: np.ndarray) -> np.ndarray:
        """Apply configured image transforms (rotate, flip, swap_rb)."""
        cfg = self._opencv_config

        rotations = {
            90: cv2.ROTATE_90_CLOCKWISE,
            180: cv2.ROTATE_180,
            270: cv2.ROTATE_90_COUNTERCLOCKWISE,
        }
        if cfg.rotate in rotations:
            frame = cv2.rotate(frame, rotations[cfg.rotate])

        if cfg.flip_horizontal and cfg.flip_vertical:
            frame = cv2.flip(frame, -1)
        elif cfg.flip_horizontal:
            frame = cv2.flip(frame, 1)
        elif cfg.flip_vertical:
            frame = cv2.flip(frame, 0)

        if cfg.swap_rb:
            frame = frame[..., ::-1].copy()

        return frame

    def correct_exposure(self) -> None:
        """
        Let the camera re-measure exposure once.

        Auto exposure is switched off and on again so the driver adapts to the
        current lighting. Only USB devices expose the property; for streams
        and files this is a no-op.
        """
        if self._cap is None or not isinstance(self.device_id, int):
            logging.debug("Exposure correction not supported for this source")
            return

        exposure = self._cap.get(cv2.CAP_PROP_EXPOSURE)
        gain = self._cap.get(cv2.CAP_PROP_GAIN)
        logging.info(f"Exposure is {exposure}. Gain is {gain}. Automatically adjusting")

        self._cap.set(cv2.CAP_PROP_AUTO_EXPOSURE, AUTO_EXPOSURE_MANUAL)
        self._cap.set(cv2.CAP_PROP_AUTO_EXPOSURE, AUTO_EXPOSURE_AUTO)

    def _release(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None

    def close(self) -> None:
        self._release()
        self._is_open = False
        logging.info(f"OpenCVSource closed: source_id={self.source_id}")

    def get_video_info(self) -> Dict[str, Any]:
        """Get information about the video source."""
        if self._cap is None or not self._cap.isOpened():
            return {}

        return {
            "width": int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
            "height": int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
            "fps": self._cap.get(cv2.CAP_PROP_FPS),
            "frame_count": int(self._cap.get(cv2.CAP_PROP_FRAME_COUNT)) if self.is_file else None,
        }
