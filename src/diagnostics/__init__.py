"""
Diagnostics output for threshold tuning.
"""

from .debug_sink import DebugImageSink, create_sink_from_config

__all__ = ["DebugImageSink", "create_sink_from_config"]
