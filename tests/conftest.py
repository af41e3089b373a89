"""Pytest configuration and shared fixtures."""

from pathlib import Path

import numpy as np
import pytest
import soundfile as sf

from lyricflow.config import VisualSettings
from lyricflow.core.engine import LyricEngine
from lyricflow.core.timeline import LyricTimeline
from lyricflow.exceptions import CaptureError
from lyricflow.io.audio import FrameClock, VirtualTransport

# Default sample rate for test audio
TEST_SR = 22050

SAMPLE_LRC = """[ar:Test Artist]
[ti:Test Song]
[00:00.50]First line
[00:02.00]Second line
[00:03:500]Third line with milliseconds
not a lyric
[00:05.00]
[00:06.25]Fourth line
[00:08.00]Last line
"""


class FakeCapture:
    """In-memory capture sink that records what it was fed."""

    def __init__(self, fail_on_start: bool = False, fail_on_stop: bool = False):
        self.fail_on_start = fail_on_start
        self.fail_on_stop = fail_on_stop
        self.active = False
        self.size = None
        self.route = None
        self.frames: list[tuple[int, ...]] = []
        self.audio_times: list[float | None] = []
        self.stops = 0
        self.aborts = 0

    def start(self, width, height, route):
        if self.fail_on_start:
            raise CaptureError("capture refused")
        self.active = True
        self.size = (width, height)
        self.route = route

    def push_frame(self, frame, audio_time):
        self.frames.append(frame.shape)
        self.audio_times.append(audio_time)

    def stop(self):
        self.active = False
        self.stops += 1
        if self.fail_on_stop:
            raise CaptureError("finalize failed")
        return Path("capture.webm")

    def abort(self):
        self.active = False
        self.aborts += 1


@pytest.fixture
def sample_rate() -> int:
    """Default sample rate for tests."""
    return TEST_SR


@pytest.fixture
def sample_lrc() -> str:
    """LRC text with metadata tags, a malformed line and an empty cue."""
    return SAMPLE_LRC


@pytest.fixture
def timeline(sample_lrc: str) -> LyricTimeline:
    return LyricTimeline.from_lrc(sample_lrc)


@pytest.fixture
def settings() -> VisualSettings:
    """Small frame size keeps rendering tests fast."""
    return VisualSettings(video_width=320, video_height=180, intro_duration=1.0)


@pytest.fixture
def make_capture():
    """Factory for fake capture sinks."""
    return FakeCapture


@pytest.fixture
def make_engine(settings, timeline):
    """
    Factory for an offline engine on a virtual 10 s track.

    Returns:
        Callable(**overrides) -> (engine, transport, clock, capture).
    """

    def _make(duration=10.0, capture=None, settings_override=None, lyrics=timeline):
        transport = VirtualTransport(Path("song.wav"), duration)
        clock = FrameClock()
        capture = capture if capture is not None else FakeCapture()
        engine = LyricEngine(
            transport,
            capture,
            settings_override or settings,
            clock=clock,
        )
        engine.load_timeline(lyrics)
        return engine, transport, clock, capture

    return _make


@pytest.fixture
def audio_file(tmp_path: Path, sample_rate: int) -> Path:
    """
    Write a 2 second stereo 440Hz sine wave to a WAV file.

    Returns:
        Path to the file.
    """
    duration = 2.0
    t = np.linspace(0, duration, int(sample_rate * duration), endpoint=False)
    y = 0.5 * np.sin(2 * np.pi * 440.0 * t)
    stereo = np.stack([y, y], axis=1).astype(np.float32)
    path = tmp_path / "tone.wav"
    sf.write(str(path), stereo, sample_rate)
    return path
