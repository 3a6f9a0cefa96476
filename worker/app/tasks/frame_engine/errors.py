"""
Frame Engine Errors

Every failure of a generation run is one of these. The ``kind`` string
is what status listeners and job metadata report.
"""


class FrameEngineError(Exception):
    """Base class for all frame engine failures."""

    kind = "error"


class InvalidImage(FrameEngineError):
    """Raised when the source image cannot be decoded or has no area."""

    kind = "invalid-image"


class InvalidConfig(FrameEngineError):
    """Raised when an AnimationConfig is rejected before scheduling."""

    kind = "invalid-config"


class EncodingFailure(FrameEngineError):
    """Raised when the encoding sink cannot produce an artifact."""

    kind = "encoding-failure"


class AbortedByCaller(FrameEngineError):
    """Raised when a run is cancelled before completion."""

    kind = "aborted"


class InvalidStateTransition(FrameEngineError):
    """Raised when the encoding sink is driven out of order."""

    kind = "invalid-state"


class PartialFrameError(FrameEngineError):
    """Raised when a surface is sampled while a frame is incomplete."""

    kind = "partial-frame"
