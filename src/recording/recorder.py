"""
Video recorder driven by detector events.

ENTER starts a new file, EXIT finalizes it, ABORT finalizes and deletes it,
PAUSE/RESUME suspend and continue writing while a train stands still.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime
from typing import Optional

import cv2
import numpy as np

from models.config import RecordingConfig
from models.events import DetectorEvent
from runtime.clock import Clock, SystemClock


TIMESTAMP_FORMAT = "%Y-%m-%d@%H-%M-%S"


class VideoRecorder:
    """
    Writes raw camera frames to timestamp-named video files.

    The cv2.VideoWriter is opened on the first frame of a recording, when
    the frame size is known.

    Example:
        recorder = VideoRecorder(config.recording, fps=1)
        recorder.bind(detector)
        recorder.write(frame)  # no-op unless recording and not paused
    """

    def __init__(
        self,
        config: Optional[RecordingConfig] = None,
        fps: float = 1.0,
        clock: Optional[Clock] = None,
    ):
        self.config = config or RecordingConfig()
        self.fps = self.config.fps or fps
        self._clock = clock or SystemClock()
        self._writer: Optional[cv2.VideoWriter] = None
        self._path: Optional[str] = None
        self._paused = False
        self._first_frame: Optional[np.ndarray] = None
        self.frame_count = 0

    @property
    def recording(self) -> bool:
        return self._path is not None

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def path(self) -> Optional[str]:
        """Path of the current recording, None when idle."""
        return self._path

    def bind(self, detector) -> None:
        """Subscribe to the detector's events."""
        detector.subscribe(DetectorEvent.ENTER, self.start)
        detector.subscribe(DetectorEvent.EXIT, self.stop)
        detector.subscribe(DetectorEvent.ABORT, self.abort)
        detector.subscribe(DetectorEvent.PAUSE, self.pause)
        detector.subscribe(DetectorEvent.RESUME, self.resume)

    def file_name(self, name: Optional[str] = None) -> str:
        if name is None:
            name = datetime.fromtimestamp(self._clock.now()).strftime(TIMESTAMP_FORMAT)
        return f"{name}{self.config.suffix}.{self.config.extension}"

    def start(self, name: Optional[str] = None) -> str:
        """
        Start a new recording. A running recording is finalized first.

        Returns:
            Path of the new recording.
        """
        if self.recording:
            self.stop()

        os.makedirs(self.config.output_dir, exist_ok=True)
        self._path = os.path.join(self.config.output_dir, self.file_name(name))
        self._paused = False
        self._first_frame = None
        self.frame_count = 0
        logging.info(f"Recording started: {self._path}")
        return self._path

    def write(self, frame: np.ndarray) -> None:
        if not self.recording or self._paused:
            return

        if self._writer is None:
            self._open_writer(frame)
            self._first_frame = frame.copy()

        self._writer.write(frame)
        self.frame_count += 1

    def _open_writer(self, frame: np.ndarray) -> None:
        h, w = frame.shape[:2]
        is_color = frame.ndim == 3
        fourcc = cv2.VideoWriter_fourcc(*self.config.fourcc)
        writer = cv2.VideoWriter(self._path, fourcc, self.fps, (w, h), is_color)
        if not writer.isOpened():
            raise RuntimeError(f"Failed to open video writer: {self._path}")
        self._writer = writer

    def stop(self) -> Optional[str]:
        """
        Finalize the current recording.

        Returns:
            Path of the finished file, None if nothing was recording.
        """
        path = self._finish()
        if path is None:
            return None

        if self.config.snapshot and self._first_frame is not None:
            self._save_snapshot(path)
        self._first_frame = None
        logging.info(f"Recording saved: {path} ({self.frame_count} frames)")
        return path

    def abort(self) -> None:
        """Stop recording and delete the file."""
        path = self._finish()
        self._first_frame = None
        if path is None:
            return

        if os.path.exists(path):
            try:
                os.remove(path)
            except OSError as e:
                logging.warning(f"Could not delete aborted recording {path}: {e}")
                return
        logging.info(f"Recording aborted: {path}")

    def _finish(self) -> Optional[str]:
        if not self.recording:
            return None

        path = self._path
        if self._writer is not None:
            self._writer.release()
        self._writer = None
        self._path = None
        self._paused = False
        return path

    def _save_snapshot(self, path: str) -> None:
        snapshot_path = f"{path}.jpg"
        if cv2.imwrite(snapshot_path, self._first_frame):
            logging.info(f"Snapshot saved: {snapshot_path}")
        else:
            logging.warning(f"Failed to write snapshot {snapshot_path}")

    def pause(self) -> None:
        if self.recording:
            self._paused = True
            logging.info("Recording paused")

    def resume(self) -> None:
        if self.recording and self._paused:
            self._paused = False
            logging.info("Recording resumed")

    def close(self) -> None:
        """Finalize an active recording (shutdown)."""
        self.stop()


def create_recorder_from_config(config, clock: Optional[Clock] = None) -> VideoRecorder:
    """Factory: Create a VideoRecorder from the application Config."""
    return VideoRecorder(config.recording, fps=config.camera.fps, clock=clock)
