"""
Typed configuration models matching the YAML config structure.

Detector thresholds are named constants. The YAML file may override them per
deployment, but nothing here is read from the environment.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union


# Entry detector thresholds (seconds unless noted)
MIN_TIME_AFTER_EXIT = 3
MIN_TIME_AFTER_ENTRY = 60
MAX_RECORDING_DURATION = 45 * 60
NO_BOUNDING_BOX_THRESHOLD = 30
FOUND_NOTHING_THRESHOLD = 30  # ticks
AUTO_EXPOSURE_TIMEOUT = 2
NO_MOTION_PAUSE_THRESHOLD = 10
RESUME_DEBOUNCE = 2
EXIT_THRESHOLD = 8  # ticks
FORCE_BACKGROUND_RESET_TIMEOUT = 5 * 60
EXIT_DELAY = 0
EDGE_MARGIN_RATIO = 0.05

HEURISTIC_EDGE_TREND = "edge_trend"
HEURISTIC_COVERAGE = "coverage"
HEURISTICS = (HEURISTIC_EDGE_TREND, HEURISTIC_COVERAGE)


@dataclass
class CameraConfig:
    """Camera configuration."""
    backend: str = "opencv"
    device_id: Union[int, str] = 0
    secrets_file: Optional[str] = None
    resolution: List[int] = field(default_factory=lambda: [1280, 720])
    fps: int = 1
    swap_rb: bool = False
    rotate: int = 0
    flip_horizontal: bool = False
    flip_vertical: bool = False

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CameraConfig":
        """Adapter: Create from config dictionary."""
        return cls(
            backend=d.get("backend", "opencv"),
            device_id=d.get("device_id", 0),
            secrets_file=d.get("secrets_file"),
            resolution=d.get("resolution", [1280, 720]),
            fps=d.get("fps", 1),
            swap_rb=d.get("swap_rb", False),
            rotate=d.get("rotate", 0),
            flip_horizontal=d.get("flip_horizontal", False),
            flip_vertical=d.get("flip_vertical", False),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "backend": self.backend,
            "device_id": self.device_id,
            "secrets_file": self.secrets_file,
            "resolution": self.resolution,
            "fps": self.fps,
            "swap_rb": self.swap_rb,
            "rotate": self.rotate,
            "flip_horizontal": self.flip_horizontal,
            "flip_vertical": self.flip_vertical,
        }


@dataclass
class PreprocessConfig:
    """
    Frame preparation before detection.

    Attributes:
        roi: Region of interest as [x, y, width, height] in raw frame pixels.
             None = use the whole frame.
        scale: Downscale factor applied after cropping (1.0 = keep size).
        batch_size: Number of frames per detector tick.
    """
    roi: Optional[List[int]] = None
    scale: float = 0.5
    batch_size: int = 4

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "PreprocessConfig":
        return cls(
            roi=d.get("roi"),
            scale=d.get("scale", 0.5),
            batch_size=d.get("batch_size", 4),
        )

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "scale": self.scale,
            "batch_size": self.batch_size,
        }
        if self.roi is not None:
            d["roi"] = self.roi
        return d


@dataclass
class MotionConfig:
    """
    Background-difference parameters for the motion finder.

    Attributes:
        threshold: Binarization threshold on the absolute difference.
        max_value: Value written for pixels above the threshold.
        kernel_size: Side of the square structuring element.
        erode_iterations: Erosion passes removing isolated noise.
        dilate_iterations: Dilation passes merging what survives into blobs.
        min_height_factor: Boxes lower than this fraction of the frame height
                           are discarded (birds, shadows).
    """
    threshold: int = 40
    max_value: int = 255
    kernel_size: int = 3
    erode_iterations: int = 8
    dilate_iterations: int = 15
    min_height_factor: float = 0.3

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "MotionConfig":
        return cls(
            threshold=d.get("threshold", 40),
            max_value=d.get("max_value", 255),
            kernel_size=d.get("kernel_size", 3),
            erode_iterations=d.get("erode_iterations", 8),
            dilate_iterations=d.get("dilate_iterations", 15),
            min_height_factor=d.get("min_height_factor", 0.3),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "threshold": self.threshold,
            "max_value": self.max_value,
            "kernel_size": self.kernel_size,
            "erode_iterations": self.erode_iterations,
            "dilate_iterations": self.dilate_iterations,
            "min_height_factor": self.min_height_factor,
        }


@dataclass
class DetectorConfig:
    """
    Entry/exit detector thresholds. Durations are in seconds.

    Attributes:
        min_time_after_exit: Dwell after an exit before a new entry is accepted.
        min_time_after_entry: Dwell after an entry before an exit is genuine.
            Earlier exits are reported as aborts.
        max_recording_duration: Accumulated (un-paused) time in entry after
            which an exit is forced.
        no_bounding_box_threshold: Box-less time before the background is refreshed.
        found_nothing_threshold: Consecutive "nothing" verdicts before the
            background is refreshed.
        auto_exposure_timeout: Delay between a refresh request and the actual
            background replacement.
        no_motion_pause_threshold: Stall time before a pause is raised.
        resume_debounce: Time motion has to persist before a resume is raised.
        exit_threshold: Box-less ticks confirming an exit (coverage heuristic).
        force_background_reset_timeout: Periodic refresh outside entry (0 = off).
        exit_delay: Keep recording this long after a genuine exit (0 = off).
        edge_margin_ratio: Edge-touch margin as a fraction of frame width.
        heuristic: "edge_trend" or "coverage".
        background_blur: Box blur kernel applied to a new background (0 = off).
    """
    min_time_after_exit: float = MIN_TIME_AFTER_EXIT
    min_time_after_entry: float = MIN_TIME_AFTER_ENTRY
    max_recording_duration: float = MAX_RECORDING_DURATION
    no_bounding_box_threshold: float = NO_BOUNDING_BOX_THRESHOLD
    found_nothing_threshold: int = FOUND_NOTHING_THRESHOLD
    auto_exposure_timeout: float = AUTO_EXPOSURE_TIMEOUT
    no_motion_pause_threshold: float = NO_MOTION_PAUSE_THRESHOLD
    resume_debounce: float = RESUME_DEBOUNCE
    exit_threshold: int = EXIT_THRESHOLD
    force_background_reset_timeout: float = FORCE_BACKGROUND_RESET_TIMEOUT
    exit_delay: float = EXIT_DELAY
    edge_margin_ratio: float = EDGE_MARGIN_RATIO
    heuristic: str = HEURISTIC_EDGE_TREND
    background_blur: int = 0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DetectorConfig":
        return cls(
            min_time_after_exit=d.get("min_time_after_exit", MIN_TIME_AFTER_EXIT),
            min_time_after_entry=d.get("min_time_after_entry", MIN_TIME_AFTER_ENTRY),
            max_recording_duration=d.get("max_recording_duration", MAX_RECORDING_DURATION),
            no_bounding_box_threshold=d.get("no_bounding_box_threshold", NO_BOUNDING_BOX_THRESHOLD),
            found_nothing_threshold=d.get("found_nothing_threshold", FOUND_NOTHING_THRESHOLD),
            auto_exposure_timeout=d.get("auto_exposure_timeout", AUTO_EXPOSURE_TIMEOUT),
            no_motion_pause_threshold=d.get("no_motion_pause_threshold", NO_MOTION_PAUSE_THRESHOLD),
            resume_debounce=d.get("resume_debounce", RESUME_DEBOUNCE),
            exit_threshold=d.get("exit_threshold", EXIT_THRESHOLD),
            force_background_reset_timeout=d.get(
                "force_background_reset_timeout", FORCE_BACKGROUND_RESET_TIMEOUT
            ),
            exit_delay=d.get("exit_delay", EXIT_DELAY),
            edge_margin_ratio=d.get("edge_margin_ratio", EDGE_MARGIN_RATIO),
            heuristic=d.get("heuristic", HEURISTIC_EDGE_TREND),
            background_blur=d.get("background_blur", 0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "min_time_after_exit": self.min_time_after_exit,
            "min_time_after_entry": self.min_time_after_entry,
            "max_recording_duration": self.max_recording_duration,
            "no_bounding_box_threshold": self.no_bounding_box_threshold,
            "found_nothing_threshold": self.found_nothing_threshold,
            "auto_exposure_timeout": self.auto_exposure_timeout,
            "no_motion_pause_threshold": self.no_motion_pause_threshold,
            "resume_debounce": self.resume_debounce,
            "exit_threshold": self.exit_threshold,
            "force_background_reset_timeout": self.force_background_reset_timeout,
            "exit_delay": self.exit_delay,
            "edge_margin_ratio": self.edge_margin_ratio,
            "heuristic": self.heuristic,
            "background_blur": self.background_blur,
        }


@dataclass
class RecordingConfig:
    """
    Video recording configuration.

    Attributes:
        output_dir: Directory for finished recordings.
        fourcc: Four character codec code passed to cv2.VideoWriter.
        extension: File extension matching the codec container.
        suffix: Appended to the timestamp file name (e.g. "-visible").
        fps: Recording frame rate. None = use the camera fps.
        snapshot: Save the first frame as <recording>.jpg when a recording is kept.
    """
    output_dir: str = "recordings"
    fourcc: str = "mp4v"
    extension: str = "mp4"
    suffix: str = ""
    fps: Optional[int] = None
    snapshot: bool = True

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "RecordingConfig":
        return cls(
            output_dir=d.get("output_dir", "recordings"),
            fourcc=d.get("fourcc", "mp4v"),
            extension=d.get("extension", "mp4"),
            suffix=d.get("suffix", ""),
            fps=d.get("fps"),
            snapshot=d.get("snapshot", True),
        )

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "output_dir": self.output_dir,
            "fourcc": self.fourcc,
            "extension": self.extension,
            "suffix": self.suffix,
            "snapshot": self.snapshot,
        }
        if self.fps is not None:
            d["fps"] = self.fps
        return d


@dataclass
class DiagnosticsConfig:
    """Debug image dumps from the motion finder."""
    enabled: bool = False
    output_dir: str = "diagnostics"
    max_images: int = 100

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DiagnosticsConfig":
        return cls(
            enabled=d.get("enabled", False),
            output_dir=d.get("output_dir", "diagnostics"),
            max_images=d.get("max_images", 100),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "output_dir": self.output_dir,
            "max_images": self.max_images,
        }


@dataclass
class Config:
    """
    Complete application configuration.

    This is a typed representation of the YAML config structure.
    """
    camera: CameraConfig = field(default_factory=CameraConfig)
    preprocess: PreprocessConfig = field(default_factory=PreprocessConfig)
    motion: MotionConfig = field(default_factory=MotionConfig)
    detector: DetectorConfig = field(default_factory=DetectorConfig)
    recording: RecordingConfig = field(default_factory=RecordingConfig)
    diagnostics: Optional[DiagnosticsConfig] = None
    log_path: str = "logs/rail_crossing_monitor.log"
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Config":
        """Adapter: Create Config from raw dictionary (e.g., from load_config)."""
        diagnostics_dict = d.get("diagnostics")
        diagnostics = DiagnosticsConfig.from_dict(diagnostics_dict) if diagnostics_dict else None

        return cls(
            camera=CameraConfig.from_dict(d.get("camera", {})),
            preprocess=PreprocessConfig.from_dict(d.get("preprocess", {}) or {}),
            motion=MotionConfig.from_dict(d.get("motion", {})),
            detector=DetectorConfig.from_dict(d.get("detector", {})),
            recording=RecordingConfig.from_dict(d.get("recording", {})),
            diagnostics=diagnostics,
            log_path=d.get("log_path", "logs/rail_crossing_monitor.log"),
            log_level=d.get("log_level", "INFO"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to dictionary (for saving or passing to existing code)."""
        d: Dict[str, Any] = {
            "camera": self.camera.to_dict(),
            "preprocess": self.preprocess.to_dict(),
            "motion": self.motion.to_dict(),
            "detector": self.detector.to_dict(),
            "recording": self.recording.to_dict(),
            "log_path": self.log_path,
            "log_level": self.log_level,
        }
        if self.diagnostics:
            d["diagnostics"] = self.diagnostics.to_dict()
        return d
