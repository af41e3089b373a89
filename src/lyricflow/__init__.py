"""Lyric video frame synthesis and time-synced capture."""

from lyricflow.config import BokehSettings, VisualSettings, load_settings
from lyricflow.core.engine import EngineState, LyricEngine, PlaybackState
from lyricflow.core.scheduler import FrameScheduler
from lyricflow.core.session import RecordingPhase, RecordingSessionController
from lyricflow.core.timeline import LyricLine, LyricTimeline, parse_lrc
from lyricflow.render.compositor import FrameCompositor

__version__ = "0.1.0"
__all__ = [
    "BokehSettings",
    "VisualSettings",
    "load_settings",
    "EngineState",
    "LyricEngine",
    "PlaybackState",
    "FrameScheduler",
    "RecordingPhase",
    "RecordingSessionController",
    "LyricLine",
    "LyricTimeline",
    "parse_lrc",
    "FrameCompositor",
]
