"""
seqframe protocol frames.

Frames are immutable records of observed state, numbered by the frame store.
"""

from .base import Changes, Diff, ErrorChanges, ErrorCode, Frame, FullPage, error_frame
from .thought import ThoughtFrame, ThoughtStatus

__all__ = [
    # Frame
    "Frame",
    "error_frame",
    # Change variants
    "Changes",
    "FullPage",
    "Diff",
    "ErrorChanges",
    "ErrorCode",
    # Thought channel
    "ThoughtFrame",
    "ThoughtStatus",
]
