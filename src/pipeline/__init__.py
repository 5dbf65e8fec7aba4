"""
Pipeline module for the rail crossing monitor.

The pipeline orchestrates the full processing flow:
- Frame acquisition from observation sources
- Recording of raw frames
- Preprocessing (via PreprocessStage)
- Batched entry/exit detection
"""

from .engine import PipelineEngine, PipelineConfig, PipelineStats, create_engine_from_config
from .stages.preprocess import PreprocessStage, create_preprocess_stage

__all__ = [
    "PipelineEngine",
    "PipelineConfig",
    "PipelineStats",
    "create_engine_from_config",
    "PreprocessStage",
    "create_preprocess_stage",
]
