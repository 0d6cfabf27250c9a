"""
Exception taxonomy for the dance analysis pipeline.

Missing audio is not an error (it degrades to an empty BeatTrack), so there is
no exception for it here.
"""


class DanceSageError(Exception):
    """Base class for all pipeline errors."""


class NoVideoTrackError(DanceSageError):
    """The media source has no readable video track."""


class LandmarkSourceUnavailable(DanceSageError):
    """The pose backend could not be loaded (missing package or model)."""


class FrameExtractionError(DanceSageError):
    """A still frame could not be decoded at the requested timestamp."""

    def __init__(self, timestamp: float, reason: str = ""):
        self.timestamp = timestamp
        self.reason = reason
        message = f"Cannot extract frame at {timestamp:.3f}s"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class FrameDetectionError(DanceSageError):
    """The pose backend failed on a single frame."""


class RecordingNotFoundError(DanceSageError):
    """No stored recording has the requested id."""
