"""
Per-tick lyric engine.

One ``tick`` samples time once, then runs index lookup, interpolation,
compositing and (while recording) capture, in that order.
"""

import dataclasses
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from PIL import Image

from lyricflow.config import VisualSettings
from lyricflow.core.scroll import ScrollInterpolator
from lyricflow.core.session import RecordingPhase, RecordingSessionController
from lyricflow.core.timeline import LyricTimeline
from lyricflow.exceptions import CaptureError
from lyricflow.io.audio import AudioTransport, MonotonicClock, SilenceSource
from lyricflow.io.encoder import CaptureSink
from lyricflow.io.media import MediaState, load_cover
from lyricflow.render.compositor import FrameCompositor
from lyricflow.render.surface import Canvas

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlaybackState:
    """Snapshot of one rendered tick."""

    time: float
    active_index: int
    smooth_index: float
    absolute_time: float
    is_intro: bool
    title_opacity: float
    lyrics_opacity: float
    phase: RecordingPhase


@dataclass
class EngineState:
    """Mutable animation state carried from tick to tick."""

    interpolator: ScrollInterpolator = field(default_factory=ScrollInterpolator)
    last_tick: float | None = None
    frame_count: int = 0
    skipped_frames: int = 0
    playback: PlaybackState | None = None

    @property
    def smooth_index(self) -> float:
        return self.interpolator.smooth_index


class LyricEngine:
    """
    Ties timeline, interpolator, compositor and recording session together.

    Args:
        transport: Audio clock (and player).
        capture: Capture sink for recordings, or None for preview only.
        settings: Initial visual settings. An empty song title defaults to
            the audio file's name.
        clock: Animation clock in seconds; drives bokeh motion, the intro
            timer and interpolation damping.
        compositor: Frame compositor (fonts and caches).
        silence_factory: Builds the silent keep-alive source for recordings.
    """

    def __init__(
        self,
        transport: AudioTransport,
        capture: CaptureSink | None = None,
        settings: VisualSettings | None = None,
        clock: Callable[[], float] | None = None,
        compositor: FrameCompositor | None = None,
        silence_factory: Callable[[], SilenceSource] = SilenceSource,
    ):
        self.transport = transport
        self.capture = capture
        self.clock = clock or MonotonicClock()
        self.compositor = compositor or FrameCompositor()
        self.media = MediaState.for_audio(transport.source)
        self.state = EngineState()

        settings = settings or VisualSettings()
        if not settings.song_title and self.media.file_name:
            settings = dataclasses.replace(settings, song_title=self.media.file_name)
        self.settings = settings

        self.canvas = Canvas(settings.video_width, settings.video_height)
        self.session = RecordingSessionController(
            transport,
            capture,
            self.state.interpolator,
            self.clock,
            silence_factory,
        )

    @property
    def timeline(self) -> LyricTimeline:
        return self.media.timeline

    @property
    def recording(self) -> bool:
        return self.session.active

    # --- loading ---

    def load_lyrics(self, raw_text: str) -> LyricTimeline:
        """Parse LRC text and replace the current timeline."""
        timeline = LyricTimeline.from_lrc(raw_text)
        self.load_timeline(timeline)
        return timeline

    def load_timeline(self, timeline: LyricTimeline):
        self.media.timeline = timeline
        self.state.interpolator.reset(0.0)

    def load_cover(self, cover: Path | Image.Image | None):
        """Set the cover art from a path or an already opened image."""
        if cover is None or isinstance(cover, Image.Image):
            self.media.image = cover
        else:
            self.media.image = load_cover(cover)

    def update_settings(self, settings: VisualSettings | None = None, **changes):
        """Replace the settings snapshot; takes effect on the next tick."""
        settings = settings or self.settings
        if changes:
            settings = dataclasses.replace(settings, **changes)
        self.settings = settings.clamped()

    # --- recording ---

    def start_recording(self) -> bool:
        return self.session.start(
            self.media.timeline,
            self.settings.video_width,
            self.settings.video_height,
        )

    def stop_recording(self) -> Path | None:
        return self.session.stop()

    def on_audio_ended(self) -> Path | None:
        return self.session.on_audio_ended()

    # --- tick ---

    def tick(self) -> PlaybackState | None:
        """
        Produce one frame.

        Returns:
            The tick's playback state, or None if the canvas is unusable and
            the frame was skipped.
        """
        settings = self.settings
        self.canvas.resize(settings.video_width, settings.video_height)
        if not self.canvas.is_valid:
            self.state.skipped_frames += 1
            logger.debug("Canvas %dx%d unusable, skipping frame", *self.canvas.size)
            return None

        now = self.clock()
        dt = None if self.state.last_tick is None else now - self.state.last_tick
        self.state.last_tick = now

        sample = self.session.sample(settings, now)
        active = self.media.timeline.active_index(sample.time)
        smooth = self.state.interpolator.step(max(active, 0), dt)

        self.compositor.render(
            self.canvas,
            sample.time,
            self.media.image,
            self.media.timeline,
            smooth,
            now,
            sample.is_intro,
            sample.title_opacity,
            sample.lyrics_opacity,
            settings,
        )

        if self.session.active:
            try:
                self.capture.push_frame(self.canvas.to_array(), sample.audio_time)
            except CaptureError:
                self.session.abort()
                raise

        self.state.frame_count += 1
        playback = PlaybackState(
            time=sample.time,
            active_index=active,
            smooth_index=smooth,
            absolute_time=now,
            is_intro=sample.is_intro,
            title_opacity=sample.title_opacity,
            lyrics_opacity=sample.lyrics_opacity,
            phase=sample.phase,
        )
        self.state.playback = playback
        return playback
