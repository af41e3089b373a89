"""Timing core: lyric timeline, scroll smoothing, recording session, engine."""

from lyricflow.core.scroll import ScrollInterpolator
from lyricflow.core.timeline import LyricLine, LyricTimeline, parse_lrc

__all__ = ["ScrollInterpolator", "LyricLine", "LyricTimeline", "parse_lrc"]
