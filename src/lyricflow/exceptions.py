"""
Custom exceptions for the lyric video engine.
"""


class LyricFlowError(Exception):
    """Base exception for all LyricFlow errors."""
    pass


class MediaError(LyricFlowError):
    """Raised when an input file (audio, lyrics, cover) cannot be loaded."""
    pass


class AudioError(LyricFlowError):
    """Raised when the audio output cannot be prepared or driven."""
    pass


class CaptureError(LyricFlowError):
    """Raised when the capture sink cannot start, encode or finalize."""
    pass


class RecordingStartError(LyricFlowError):
    """Raised when a recording session could not be started.

    The message is meant to be shown to the user as-is.
    """
    pass
