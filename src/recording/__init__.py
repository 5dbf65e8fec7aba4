"""
Recording of train passages to video files.
"""

from .recorder import VideoRecorder, create_recorder_from_config, TIMESTAMP_FORMAT

__all__ = ["VideoRecorder", "create_recorder_from_config", "TIMESTAMP_FORMAT"]
