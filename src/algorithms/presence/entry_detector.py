"""
Entry/exit detector: hysteresis state machine over batches of frames.

The detector is ticked once per batch of grayscale frames. It runs the motion
finder on every frame, asks the configured heuristic what the boxes mean and
combines that with dwell times to decide whether a train entered, exited or
nothing happened. It also detects stalled trains (pause/resume) and owns the
background reference together with its refresh policy.

Events are zero-payload and delivered synchronously on the ticking thread:

    detector = EntryDetector(correct_exposure=camera.correct_exposure)
    detector.subscribe(DetectorEvent.ENTER, recorder.start)
    detector.subscribe(DetectorEvent.EXIT, recorder.stop)
    detector.tick(frames)

The detector is not thread safe. Exactly one thread calls tick().
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional, Sequence

import cv2
import numpy as np

from detection.motion_finder import DiagnosticsCallback, MotionFinder
from models.config import Config, DetectorConfig, MotionConfig
from models.detection import BoundingBox
from models.events import DetectorEvent
from runtime.clock import Clock, SystemClock
from .heuristics import PresenceHeuristic, create_heuristic
from .state import DetectorState, is_allowed


EventHandler = Callable[[], None]
ExposureCallback = Callable[[], None]


class EntryDetector:
    """
    Decides when a train enters or leaves the field of view.

    Per tick:
        1. Force an exit once the accumulated recording time exceeds the maximum.
        2. (Re)initialize the background if needed or scheduled.
        3. Find a bounding box in every frame.
        4. Boxes found: apply the heuristic, then check for a stalled train.
        5. No boxes: run the no-bounding-box timer and schedule a background
           refresh once it expires.

    Args:
        background: Initial background. None = use the last frame of the first tick.
        correct_exposure: Called right before a background refresh is scheduled.
        clock: Time source. None = wall clock.
        config: Detector thresholds.
        motion_config: Motion finder parameters.
        diagnostics: Receives debug images (background, diff, mask).
    """

    def __init__(
        self,
        background: Optional[np.ndarray] = None,
        correct_exposure: Optional[ExposureCallback] = None,
        clock: Optional[Clock] = None,
        config: Optional[DetectorConfig] = None,
        motion_config: Optional[MotionConfig] = None,
        diagnostics: Optional[DiagnosticsCallback] = None,
    ):
        self._config = config or DetectorConfig()
        self._motion_config = motion_config or MotionConfig()
        self._heuristic = create_heuristic(self._config)
        self._clock = clock or SystemClock()
        self._correct_exposure = correct_exposure
        self._diagnostics = diagnostics
        self._handlers: Dict[DetectorEvent, List[EventHandler]] = {e: [] for e in DetectorEvent}

        self._state = DetectorState.NOTHING
        self._motion_finder: Optional[MotionFinder] = None

        self._entry_time: Optional[float] = None
        self._exit_time: Optional[float] = None
        self._recording_duration = 0.0
        self._paused = False
        self._scheduled_exit_at: Optional[float] = None

        self._no_bounding_box_since: Optional[float] = None
        self._no_motion_since: Optional[float] = None
        self._motion_since: Optional[float] = None
        self._exit_likelihood = 0
        self._found_nothing_count = 0

        self._reset_background_at: Optional[float] = None
        self._last_background_reset: Optional[float] = None

        if background is not None:
            self._reset_background(background, self._clock.now())

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> DetectorState:
        """Current detector state."""
        return self._state

    @property
    def motion_finder(self) -> Optional[MotionFinder]:
        """Motion finder bound to the current background (None until initialized)."""
        return self._motion_finder

    @property
    def background(self) -> Optional[np.ndarray]:
        return self._motion_finder.background if self._motion_finder is not None else None

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def recording_duration(self) -> float:
        """Seconds spent in entry so far, paused time included."""
        return self._recording_duration

    @property
    def config(self) -> DetectorConfig:
        return self._config

    @property
    def heuristic(self) -> PresenceHeuristic:
        return self._heuristic

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def subscribe(self, event: DetectorEvent, handler: EventHandler) -> None:
        """
        Register a handler for an event.

        Handlers run on the ticking thread before tick() returns. They must not
        block and must not call tick(). Execution order is not guaranteed.
        """
        self._handlers[event].append(handler)

    def unsubscribe(self, event: DetectorEvent, handler: EventHandler) -> None:
        if handler in self._handlers[event]:
            self._handlers[event].remove(handler)

    def _emit(self, event: DetectorEvent) -> None:
        for handler in list(self._handlers[event]):
            try:
                handler()
            except Exception as e:
                logging.warning(f"Handler for '{event.value}' failed: {e}")

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def tick(self, frames: Sequence[np.ndarray]) -> DetectorState:
        """
        Evaluate one batch of frames.

        Args:
            frames: Ordered single channel frames of identical size. Order
                drives the width trend and defines first/last for the stall check.

        Returns:
            The state after the tick.

        Raises:
            ValueError: If the batch is empty.
        """
        if len(frames) == 0:
            raise ValueError("tick() needs at least one frame")

        now = self._clock.now()
        if self._check_recording(now):
            return self._state

        self._check_background(frames[-1], now)
        self._evaluate(frames, now)

        return self._state

    def _check_recording(self, now: float) -> bool:
        """
        Recording bookkeeping for the entry state.

        Returns:
            True if the tick ends here (forced or delayed exit).
        """
        if self._state != DetectorState.ENTRY:
            return False

        # paused time included
        self._recording_duration = max(0.0, now - self._entry_time)

        if self._recording_duration > self._config.max_recording_duration:
            logging.warning(
                f"Recording for longer than {self._config.max_recording_duration}s. Forcing exit."
            )
            self._finish_exit(now, abort=False)
            return True

        if self._scheduled_exit_at is not None:
            if now >= self._scheduled_exit_at:
                self._finish_exit(now, abort=False)
            return True

        return False

    def _check_background(self, latest: np.ndarray, now: float) -> None:
        if self._motion_finder is None:
            self._reset_background(latest, now)
            return

        if self._reset_background_at is not None and now >= self._reset_background_at:
            if self._state == DetectorState.ENTRY:
                logging.info("Train present, cancelling scheduled background reset")
                self._reset_background_at = None
            else:
                self._reset_background(latest, now)
            return

        timeout = self._config.force_background_reset_timeout
        if timeout <= 0 or self._state == DetectorState.ENTRY:
            return

        # Measured from the later of the last reset and the last exit, so a
        # train that just left is not burnt into the background.
        since = self._last_background_reset
        if self._exit_time is not None and (since is None or self._exit_time > since):
            since = self._exit_time
        if since is not None and now - since > timeout:
            logging.info(f"No background reset for {timeout}s, forcing one")
            self._reset_background(latest, now)

    def _evaluate(self, frames: Sequence[np.ndarray], now: float) -> None:
        boxes: List[BoundingBox] = []
        for frame in frames:
            bbox = self._motion_finder.find_bounding_box(frame)
            if bbox is not None:
                boxes.append(bbox)

        if boxes:
            self._on_boxes(frames, boxes, now)
        else:
            self._on_no_boxes(now)

    def _on_boxes(self, frames: Sequence[np.ndarray], boxes: List[BoundingBox], now: float) -> None:
        self._no_bounding_box_since = None
        self._exit_likelihood = 0

        requested = self._heuristic.classify(boxes, len(frames), frames[0].shape[1])
        logging.debug(
            f"Boxes {[b.as_xywh() for b in boxes]} -> {requested.value} (state={self._state.value})"
        )
        self._change_state(requested, now)

        if self._state == DetectorState.ENTRY and self._scheduled_exit_at is None:
            self._check_motion(frames, now)

    def _on_no_boxes(self, now: float) -> None:
        if self._no_bounding_box_since is None:
            self._no_bounding_box_since = now

        if (
            self._state == DetectorState.ENTRY
            and self._heuristic.confirms_exit_on_misses
            and self._scheduled_exit_at is None
        ):
            self._exit_likelihood += 1
            if self._exit_likelihood > self._config.exit_threshold:
                logging.info(f"No bounding box for {self._exit_likelihood} ticks, exit confirmed")
                self._exit_likelihood = 0
                self._change_state(DetectorState.EXIT, now)

        if now - self._no_bounding_box_since > self._config.no_bounding_box_threshold:
            self._schedule_background_reset(now)
            self._change_state(DetectorState.NOTHING, now)

    def _check_motion(self, frames: Sequence[np.ndarray], now: float) -> None:
        """Pause a stalled train's recording, resume once it moves again."""
        moving = self._motion_finder.has_difference(frames[0], frames[-1])

        if not moving:
            # a stall, however short, restarts the resume debounce
            self._motion_since = None
            if self._no_motion_since is None:
                self._no_motion_since = now
            if not self._paused and now - self._no_motion_since > self._config.no_motion_pause_threshold:
                logging.info(
                    f"No motion for {now - self._no_motion_since:.0f}s, pausing recording"
                )
                self._paused = True
                self._emit(DetectorEvent.PAUSE)
            return

        self._no_motion_since = None
        if not self._paused:
            return

        if self._motion_since is None:
            self._motion_since = now
        if now - self._motion_since >= self._config.resume_debounce:
            logging.info("Motion detected again, resuming recording")
            self._paused = False
            self._motion_since = None
            self._emit(DetectorEvent.RESUME)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _change_state(self, requested: DetectorState, now: float) -> None:
        if not is_allowed(self._state, requested):
            logging.debug(f"Ignoring transition {self._state.value} -> {requested.value}")
            return

        if requested == DetectorState.NOTHING:
            self._on_nothing(now)
            return

        if requested == self._state:
            return

        if requested == DetectorState.ENTRY:
            self._on_enter(now)
        else:
            self._request_exit(now)

    def _on_enter(self, now: float) -> None:
        if self._exit_time is not None and now - self._exit_time < self._config.min_time_after_exit:
            logging.info(
                f"Entry less than {self._config.min_time_after_exit}s after the last exit, ignoring"
            )
            return

        self._state = DetectorState.ENTRY
        self._entry_time = now
        self._found_nothing_count = 0
        self._clear_entry_bookkeeping()

        if self._exit_time is None:
            self._exit_time = now

        logging.info("Train entered")
        self._emit(DetectorEvent.ENTER)

    def _request_exit(self, now: float) -> None:
        if now - self._entry_time < self._config.min_time_after_entry:
            self._finish_exit(now, abort=True)
            return

        if self._config.exit_delay > 0:
            if self._scheduled_exit_at is None:
                self._scheduled_exit_at = now + self._config.exit_delay
                logging.info(f"Exit confirmed. Stopping recording in {self._config.exit_delay}s.")
            return

        self._finish_exit(now, abort=False)

    def _finish_exit(self, now: float, abort: bool) -> None:
        self._state = DetectorState.EXIT
        self._exit_time = now
        self._scheduled_exit_at = None
        self._clear_entry_bookkeeping()

        if abort:
            # Too short to be a train, most likely a misfire.
            logging.warning(
                f"Entry followed by exit was shorter than {self._config.min_time_after_entry}s. Aborting."
            )
            self._emit(DetectorEvent.ABORT)
        else:
            logging.info("Train exited")
            self._emit(DetectorEvent.EXIT)

    def _on_nothing(self, now: float) -> None:
        self._state = DetectorState.NOTHING
        self._found_nothing_count += 1

        if self._found_nothing_count > self._config.found_nothing_threshold:
            self._schedule_background_reset(now)

    def _clear_entry_bookkeeping(self) -> None:
        self._recording_duration = 0.0
        self._exit_likelihood = 0
        self._paused = False
        self._no_motion_since = None
        self._motion_since = None

    # ------------------------------------------------------------------
    # Background
    # ------------------------------------------------------------------

    def _schedule_background_reset(self, now: float) -> None:
        """Schedule a background replacement once the camera exposure has settled."""
        if self._state == DetectorState.ENTRY:
            # do not update the background while a train is in view
            return

        if self._reset_background_at is not None:
            return

        if self._correct_exposure is not None:
            try:
                self._correct_exposure()
            except Exception as e:
                logging.warning(f"Exposure correction failed: {e}")

        self._reset_background_at = now + self._config.auto_exposure_timeout
        self._no_bounding_box_since = None
        self._found_nothing_count = 0
        logging.info(f"Background reset scheduled in {self._config.auto_exposure_timeout}s")

    def _reset_background(self, frame: np.ndarray, now: float) -> None:
        logging.info("(Re)initializing background")

        background = frame
        if self._config.background_blur > 0:
            k = self._config.background_blur
            background = cv2.blur(frame, (k, k))

        self._motion_finder = MotionFinder(background, self._motion_config, self._diagnostics)

        if self._diagnostics is not None:
            try:
                self._diagnostics("background", self._motion_finder.background)
            except Exception as e:
                logging.warning(f"Diagnostics callback error: {e}")

        self._last_background_reset = now
        self._reset_background_at = None
        self._no_bounding_box_since = None
        self._no_motion_since = None
        self._found_nothing_count = 0


def create_detector_from_config(
    config: Config,
    correct_exposure: Optional[ExposureCallback] = None,
    clock: Optional[Clock] = None,
    diagnostics: Optional[DiagnosticsCallback] = None,
) -> EntryDetector:
    """
    Factory: Create an EntryDetector from the application config.

    The background is taken from the first tick.
    """
    return EntryDetector(
        background=None,
        correct_exposure=correct_exposure,
        clock=clock,
        config=config.detector,
        motion_config=config.motion,
        diagnostics=diagnostics,
    )
