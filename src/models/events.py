"""
Detector events consumed by recording collaborators.
"""

from __future__ import annotations

from enum import Enum


class DetectorEvent(str, Enum):
    """
    Zero-payload events raised by the entry detector.

    Consumers map them to recorder actions:
        ENTER  -> start recording
        EXIT   -> stop and persist
        ABORT  -> stop and discard the artifact
        PAUSE  -> suspend writing, keep the session
        RESUME -> continue writing
    """
    ENTER = "enter"
    EXIT = "exit"
    ABORT = "abort"
    PAUSE = "pause"
    RESUME = "resume"
