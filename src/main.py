"""
Main application: rail crossing monitor.

Watches a rail crossing with a camera, detects trains entering and leaving the
field of view and records each passage to a video file.

Usage:
    python src/main.py --config config/config.yaml

Arguments:
    --config: Path to configuration file
    --max-frames: Stop after this many frames (testing)
    --pid-file: PID file path (default: data/rail_crossing_monitor.pid)
    --kill-existing: Replace a running instance instead of refusing to start
"""

import os
import sys
import argparse
import logging
import yaml
from typing import Dict, Any, Tuple, Optional

from models.config import Config, HEURISTICS
from ops.logging import setup_logging
from ops.process import ensure_single_instance, install_shutdown_handler
from pipeline.engine import create_engine_from_config


VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base and return base."""
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
    return base


def _read_yaml(path: str) -> Dict[str, Any]:
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration with layering:
    - `config/default.yaml` (checked in)
    - `config/config.yaml` (local overrides)
    - plus any explicitly provided `--config` path (treated as overrides)
    """
    config_dir = os.path.dirname(config_path)
    try:
        merged: Dict[str, Any] = {}
        base_path = os.path.join(config_dir, "default.yaml")
        if os.path.exists(base_path):
            merged = _read_yaml(base_path)

        local_path = os.path.join(config_dir, "config.yaml")
        if os.path.exists(local_path):
            merged = _deep_merge(merged, _read_yaml(local_path))

        if os.path.exists(config_path) and os.path.abspath(config_path) not in (
            os.path.abspath(base_path),
            os.path.abspath(local_path),
        ):
            merged = _deep_merge(merged, _read_yaml(config_path))

        return merged
    except Exception as e:
        logging.error(f"Failed to load configuration: {e}")
        sys.exit(1)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _validate_camera(camera: Dict[str, Any]) -> Optional[str]:
    if 'device_id' not in camera:
        return "Missing camera.device_id"
    device_id = camera['device_id']
    if isinstance(device_id, bool) or not isinstance(device_id, (int, str)):
        return "camera.device_id must be an integer (index) or string (URL or file)"
    if isinstance(device_id, int) and device_id < 0:
        return "camera.device_id integer must be non-negative"

    if 'resolution' in camera:
        resolution = camera['resolution']
        if not isinstance(resolution, list) or len(resolution) != 2:
            return "camera.resolution must be a list of [width, height]"
        if not all(isinstance(x, int) and x > 0 for x in resolution):
            return "camera.resolution values must be positive integers"

    if 'fps' in camera and (not isinstance(camera['fps'], int) or camera['fps'] <= 0):
        return "camera.fps must be a positive integer"

    if camera.get('backend', 'opencv') != 'opencv':
        return "camera.backend must be: opencv"

    if camera.get('rotate', 0) not in (0, 90, 180, 270, None):
        return "camera.rotate must be one of: 0, 90, 180, 270"
    return None


def _validate_preprocess(preprocess: Dict[str, Any]) -> Optional[str]:
    roi = preprocess.get('roi')
    if roi is not None:
        if not isinstance(roi, list) or len(roi) != 4:
            return "preprocess.roi must be a list of [x, y, width, height]"
        if not all(isinstance(v, int) for v in roi) or roi[2] <= 0 or roi[3] <= 0:
            return "preprocess.roi must hold integers with positive width and height"

    scale = preprocess.get('scale', 0.5)
    if not _is_number(scale) or not (0 < scale <= 1):
        return "preprocess.scale must be in (0, 1]"

    batch_size = preprocess.get('batch_size', 4)
    if not isinstance(batch_size, int) or batch_size < 1:
        return "preprocess.batch_size must be a positive integer"
    return None


def _validate_motion(motion: Dict[str, Any]) -> Optional[str]:
    for key in ('threshold', 'max_value'):
        if key in motion and (not isinstance(motion[key], int) or not (0 <= motion[key] <= 255)):
            return f"motion.{key} must be an integer between 0 and 255"
    if 'kernel_size' in motion and (not isinstance(motion['kernel_size'], int) or motion['kernel_size'] < 1):
        return "motion.kernel_size must be a positive integer"
    for key in ('erode_iterations', 'dilate_iterations'):
        if key in motion and (not isinstance(motion[key], int) or motion[key] < 0):
            return f"motion.{key} must be a non-negative integer"
    if 'min_height_factor' in motion:
        factor = motion['min_height_factor']
        if not _is_number(factor) or not (0 <= factor <= 1):
            return "motion.min_height_factor must be between 0 and 1"
    return None


def _validate_detector(detector: Dict[str, Any]) -> Optional[str]:
    durations = (
        'min_time_after_exit', 'min_time_after_entry', 'max_recording_duration',
        'no_bounding_box_threshold', 'auto_exposure_timeout', 'no_motion_pause_threshold',
        'resume_debounce', 'force_background_reset_timeout', 'exit_delay',
    )
    for key in durations:
        if key in detector and (not _is_number(detector[key]) or detector[key] < 0):
            return f"detector.{key} must be a non-negative number of seconds"

    for key in ('found_nothing_threshold', 'exit_threshold', 'background_blur'):
        if key in detector and (not isinstance(detector[key], int) or detector[key] < 0):
            return f"detector.{key} must be a non-negative integer"

    if 'edge_margin_ratio' in detector:
        ratio = detector['edge_margin_ratio']
        if not _is_number(ratio) or not (0 <= ratio < 0.5):
            return "detector.edge_margin_ratio must be in [0, 0.5)"

    if detector.get('heuristic', HEURISTICS[0]) not in HEURISTICS:
        return f"detector.heuristic must be one of: {', '.join(HEURISTICS)}"
    return None


def _validate_recording(recording: Dict[str, Any]) -> Optional[str]:
    output_dir = recording.get('output_dir', 'recordings')
    if not isinstance(output_dir, str) or not output_dir:
        return "recording.output_dir must be a non-empty string"
    fourcc = recording.get('fourcc', 'mp4v')
    if not isinstance(fourcc, str) or len(fourcc) != 4:
        return "recording.fourcc must be a four character code"
    fps = recording.get('fps')
    if fps is not None and (not _is_number(fps) or fps <= 0):
        return "recording.fps must be a positive number"
    return None


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate configuration file structure and values.

    Args:
        config: Configuration dictionary

    Returns:
        Tuple of (is_valid, error_message)
    """
    required_sections = ['camera', 'motion', 'detector', 'recording', 'log_path', 'log_level']
    for section in required_sections:
        if section not in config:
            return False, f"Missing required configuration section: {section}"

    checks = (
        (_validate_camera, 'camera'),
        (_validate_preprocess, 'preprocess'),
        (_validate_motion, 'motion'),
        (_validate_detector, 'detector'),
        (_validate_recording, 'recording'),
    )
    for check, section in checks:
        value = config.get(section) or {}
        if not isinstance(value, dict):
            return False, f"{section} must be a mapping"
        error = check(value)
        if error:
            return False, error

    diagnostics = config.get('diagnostics') or {}
    if 'max_images' in diagnostics and (
        not isinstance(diagnostics['max_images'], int) or diagnostics['max_images'] <= 0
    ):
        return False, "diagnostics.max_images must be a positive integer"

    if config['log_level'] not in VALID_LOG_LEVELS:
        return False, f"log_level must be one of: {', '.join(VALID_LOG_LEVELS)}"

    return True, None


def main():
    """Main application function."""
    parser = argparse.ArgumentParser(description='Rail Crossing Monitor')
    parser.add_argument('--config', type=str, default='config/config.yaml',
                        help='Path to configuration file')
    parser.add_argument('--max-frames', type=int, default=None,
                        help='Stop after this many frames')
    parser.add_argument('--pid-file', type=str, default=None,
                        help='PID file for single-instance enforcement')
    parser.add_argument('--kill-existing', action='store_true',
                        help='Stop a running instance before starting')
    args = parser.parse_args()

    config = load_config(args.config)

    is_valid, error_msg = validate_config(config)
    if not is_valid:
        logging.error(f"Configuration validation failed: {error_msg}")
        sys.exit(1)

    setup_logging(config['log_path'], config['log_level'])

    if not ensure_single_instance(args.pid_file, kill_existing=args.kill_existing):
        sys.exit(1)

    logging.info("Starting Rail Crossing Monitor")

    typed_config = Config.from_dict(config)
    engine = create_engine_from_config(typed_config, max_frames=args.max_frames)
    install_shutdown_handler(engine.stop)
    engine.run()


if __name__ == "__main__":
    main()
