"""
Pipeline engine for the rail crossing monitor.

This module owns the main processing loop: frames come from an observation
source, raw frames go to the recorder, preprocessed frames are batched and
handed to the entry detector.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import numpy as np

from algorithms.presence import DetectorState, EntryDetector, create_detector_from_config
from diagnostics import create_sink_from_config
from models.config import Config
from models.events import DetectorEvent
from models.frame import FrameData
from observation import ObservationSource, create_source_from_config
from pipeline.stages.preprocess import PreprocessStage, create_preprocess_stage
from recording import VideoRecorder, create_recorder_from_config


@dataclass
class PipelineConfig:
    """
    Configuration for the pipeline engine.

    Attributes:
        batch_size: Frames per detector tick.
        max_consecutive_failures: Max frame read failures before stopping.
        retry_delay: Seconds to wait after a failed read.
        stats_log_interval: Seconds between status log messages.
        max_frames: Stop after this many frames (None = run until stopped).
    """
    batch_size: int = 4
    max_consecutive_failures: int = 10
    retry_delay: float = 0.5
    stats_log_interval: float = 60.0
    max_frames: Optional[int] = None


@dataclass
class PipelineStats:
    """Runtime statistics for the pipeline."""
    frame_count: int = 0
    tick_count: int = 0
    event_counts: Dict[str, int] = field(default_factory=dict)
    start_time: float = field(default_factory=time.time)
    last_stats_log_time: float = field(default_factory=time.time)
    consecutive_failures: int = 0


class PipelineEngine:
    """
    Main processing engine.

    This engine:
    - Reads frames from any ObservationSource
    - Writes raw frames to the recorder (which ignores them unless recording)
    - Preprocesses frames and ticks the detector once per batch
    - Counts detector events for the periodic stats line

    Example:
        source = OpenCVSource(OpenCVSourceConfig(device_id=0))
        detector = EntryDetector(correct_exposure=source.correct_exposure)
        recorder = VideoRecorder(recording_cfg)
        recorder.bind(detector)
        engine = PipelineEngine(source, PreprocessStage(), detector, recorder, PipelineConfig())
        engine.run()
    """

    def __init__(
        self,
        source: ObservationSource,
        preprocess: PreprocessStage,
        detector: EntryDetector,
        recorder: Optional[VideoRecorder],
        config: Optional[PipelineConfig] = None,
    ):
        self.source = source
        self.preprocess = preprocess
        self.detector = detector
        self.recorder = recorder
        self.config = config or PipelineConfig()
        if self.config.batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {self.config.batch_size}")
        self.stats = PipelineStats()
        self._running = False
        self._batch: List[np.ndarray] = []
        self._raw_batch: List[np.ndarray] = []
        self._callbacks: List[Callable[[DetectorState], None]] = []

        for event in DetectorEvent:
            detector.subscribe(event, self._make_event_counter(event))

    def _make_event_counter(self, event: DetectorEvent) -> Callable[[], None]:
        def count() -> None:
            self.stats.event_counts[event.value] = self.stats.event_counts.get(event.value, 0) + 1
        return count

    def add_callback(self, callback: Callable[[DetectorState], None]) -> None:
        """
        Add a callback to be called after each detector tick.

        Args:
            callback: Function taking the detector state after the tick.
        """
        self._callbacks.append(callback)

    def run(self) -> None:
        """
        Run the main processing loop.

        Opens the observation source, processes frames until stopped or
        exhausted, then closes resources.
        """
        self._running = True
        self.stats = PipelineStats()
        self._batch = []
        self._raw_batch = []

        try:
            self.source.open()
            logging.info(f"Pipeline started: source={self.source.source_id}")

            while self._running:
                frame_data = self.source.read()

                if frame_data is None:
                    self.stats.consecutive_failures += 1
                    if self.stats.consecutive_failures >= self.config.max_consecutive_failures:
                        logging.error(
                            f"Too many consecutive failures ({self.stats.consecutive_failures}), stopping"
                        )
                        break
                    logging.warning(
                        f"Frame read failed ({self.stats.consecutive_failures}/"
                        f"{self.config.max_consecutive_failures})"
                    )
                    time.sleep(self.config.retry_delay)
                    continue

                self.stats.consecutive_failures = 0
                self.process_frame(frame_data)

                self._handle_periodic_tasks()

                if self.config.max_frames is not None and self.stats.frame_count >= self.config.max_frames:
                    logging.info(f"Reached {self.config.max_frames} frames, stopping")
                    break

        except KeyboardInterrupt:
            logging.info("Pipeline interrupted by user")
        except Exception as e:
            logging.exception(f"Pipeline error: {e}")
        finally:
            self._cleanup()

    def stop(self) -> None:
        """Signal the pipeline to stop after the current frame."""
        self._running = False

    def process_frame(self, frame_data: FrameData) -> Optional[DetectorState]:
        """
        Batch a single frame.

        Raw frames are held back until their batch has been ticked, so the
        batch that triggers an entry ends up in the new recording.

        Returns:
            The detector state if this frame completed a batch, else None.
        """
        self.stats.frame_count += 1

        self._raw_batch.append(frame_data.frame)
        self._batch.append(self.preprocess.process(frame_data))
        if len(self._batch) < self.config.batch_size:
            return None

        batch, self._batch = self._batch, []
        state = self.detector.tick(batch)
        self.stats.tick_count += 1
        self._flush_raw_frames()

        for callback in self._callbacks:
            try:
                callback(state)
            except Exception as e:
                logging.warning(f"Callback error: {e}")

        return state

    def _flush_raw_frames(self) -> None:
        raw, self._raw_batch = self._raw_batch, []
        if self.recorder is None:
            return
        for frame in raw:
            self.recorder.write(frame)

    def _handle_periodic_tasks(self) -> None:
        now = time.time()

        if now - self.stats.last_stats_log_time >= self.config.stats_log_interval:
            logging.info(
                f"Pipeline stats: frames={self.stats.frame_count}, "
                f"ticks={self.stats.tick_count}, "
                f"state={self.detector.state.value}, "
                f"events={self.stats.event_counts}"
            )
            self.stats.last_stats_log_time = now

    def _cleanup(self) -> None:
        """Clean up resources."""
        self._running = False

        try:
            self.source.close()
        except Exception as e:
            logging.warning(f"Error closing source: {e}")

        if self.recorder is not None:
            try:
                self._flush_raw_frames()
                self.recorder.close()
            except Exception as e:
                logging.warning(f"Error closing recorder: {e}")

        logging.info("Pipeline stopped")


def create_engine_from_config(config: Config, max_frames: Optional[int] = None) -> PipelineEngine:
    """
    Factory function to create a PipelineEngine from the application config.

    Builds the observation source, preprocess stage, detector (with the
    source's exposure correction as hook) and recorder, and wires them up.

    Args:
        config: Typed application config.
        max_frames: Optional frame limit (testing).
    """
    source = create_source_from_config(config.camera.to_dict(), source_id="main-camera")
    preprocess = create_preprocess_stage(config.preprocess)

    correct_exposure = getattr(source, "correct_exposure", None)
    detector = create_detector_from_config(
        config,
        correct_exposure=correct_exposure,
        diagnostics=create_sink_from_config(config),
    )

    recorder = create_recorder_from_config(config)
    recorder.bind(detector)

    pipeline_config = PipelineConfig(
        batch_size=config.preprocess.batch_size,
        max_frames=max_frames,
    )
    return PipelineEngine(source, preprocess, detector, recorder, pipeline_config)
