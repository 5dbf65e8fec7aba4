"""
Pipeline stages for the rail crossing monitor.

Each stage handles a specific part of the processing pipeline:
- preprocess: grayscale, region of interest, downscale
"""

from .preprocess import PreprocessStage, create_preprocess_stage

__all__ = ["PreprocessStage", "create_preprocess_stage"]
