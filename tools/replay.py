#!/usr/bin/env python3
"""
Replay a recorded video through the entry detector.

Time is simulated from the video position, so a one hour capture replays in
seconds with the same dwell timers as on the crossing. Use it to tune the
motion and detector thresholds offline.

Usage:
  python3 tools/replay.py --video recordings/2017-06-01@12-00-00-visible.mp4
  python3 tools/replay.py --video capture.mp4 --config config/config.yaml --debug-dir diagnostics
  python3 tools/replay.py --video capture.mp4 --record out/   # also write the cut recordings
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import List, Tuple

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "src"))

from algorithms.presence import EntryDetector  # noqa: E402
from diagnostics import DebugImageSink  # noqa: E402
from main import load_config, validate_config  # noqa: E402
from models.config import Config  # noqa: E402
from models.events import DetectorEvent  # noqa: E402
from observation import OpenCVSource, OpenCVSourceConfig  # noqa: E402
from pipeline.stages.preprocess import PreprocessStage  # noqa: E402
from recording import VideoRecorder  # noqa: E402
from runtime.clock import ManualClock  # noqa: E402


def _format_offset(seconds: float) -> str:
    minutes, secs = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def replay(video: str, config: Config, record_dir: str = None, debug_dir: str = None) -> List[Tuple[float, str]]:
    """
    Run the detector over a video file.

    Returns:
        List of (seconds into the video, event name).
    """
    source = OpenCVSource(OpenCVSourceConfig(source_id="replay", device_id=video, warmup=0))
    preprocess = PreprocessStage(config.preprocess)
    batch_size = config.preprocess.batch_size

    events: List[Tuple[float, str]] = []

    with source:
        start = None
        clock = ManualClock(start=0.0)
        diagnostics = DebugImageSink(debug_dir) if debug_dir else None
        detector = EntryDetector(
            clock=clock,
            config=config.detector,
            motion_config=config.motion,
            diagnostics=diagnostics,
        )

        def on_event(event: DetectorEvent):
            def handle():
                offset = clock.now() - start
                events.append((offset, event.value))
                print(f"{_format_offset(offset)}  {event.value.upper()}")
            return handle

        for event in DetectorEvent:
            detector.subscribe(event, on_event(event))

        recorder = None
        if record_dir:
            recording_cfg = config.recording
            recording_cfg.output_dir = record_dir
            recorder = VideoRecorder(recording_cfg, fps=source.fps, clock=clock)
            recorder.bind(detector)

        info = source.get_video_info()
        logging.info(
            f"Replaying {video}: {info.get('width')}x{info.get('height')}, "
            f"{info.get('frame_count')} frames at {source.fps:.1f} fps, batch size {batch_size}"
        )

        batch, raw = [], []
        for frame_data in source:
            if start is None:
                start = frame_data.timestamp
            raw.append(frame_data.frame)
            batch.append(preprocess.process(frame_data))
            if len(batch) < batch_size:
                continue

            clock.set(frame_data.timestamp)
            detector.tick(batch)
            batch = []
            # written after the tick so an entering batch is recorded
            if recorder is not None:
                for frame in raw:
                    recorder.write(frame)
            raw = []

        if recorder is not None:
            for frame in raw:
                recorder.write(frame)
            recorder.close()

    return events


def main() -> int:
    parser = argparse.ArgumentParser(description="Replay a video through the entry detector")
    parser.add_argument("--video", required=True, help="Video file to replay")
    parser.add_argument("--config", default="config/config.yaml", help="Path to configuration file")
    parser.add_argument("--record", default=None, help="Write recordings to this directory")
    parser.add_argument("--debug-dir", default=None, help="Write motion finder debug images here")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if not os.path.exists(args.video):
        print(f"Video not found: {args.video}")
        return 1

    raw = load_config(args.config)
    is_valid, error_msg = validate_config(raw)
    if not is_valid:
        print(f"Configuration validation failed: {error_msg}")
        return 1

    events = replay(args.video, Config.from_dict(raw), args.record, args.debug_dir)

    entries = sum(1 for _, name in events if name == DetectorEvent.ENTER.value)
    aborts = sum(1 for _, name in events if name == DetectorEvent.ABORT.value)
    print(f"\n{entries} entries, {aborts} aborted, {len(events)} events total")
    return 0


if __name__ == "__main__":
    sys.exit(main())
