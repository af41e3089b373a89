"""
Recording session state machine.

    idle --start--> intro --intro elapsed--> recording --stop/end--> idle

During the intro the music is paused and a silent source keeps the capture's
audio track alive; the title card fades out over the last half second. When
the intro has elapsed the music starts and the lyrics fade in.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable

from lyricflow.config import VisualSettings
from lyricflow.core.scroll import ScrollInterpolator
from lyricflow.core.timeline import LyricTimeline
from lyricflow.exceptions import AudioError, CaptureError, RecordingStartError
from lyricflow.io.audio import AudioRoute, AudioTransport, SilenceSource
from lyricflow.io.encoder import CaptureSink

logger = logging.getLogger(__name__)

FADE_DURATION = 0.5
START_FAILURE_MESSAGE = "Could not start recording. Please check permissions and try again."


class RecordingPhase(str, Enum):
    IDLE = "idle"
    INTRO = "intro"
    RECORDING = "recording"


@dataclass(frozen=True)
class TickSample:
    """The single time sample a tick works from."""

    time: float
    is_intro: bool
    title_opacity: float
    lyrics_opacity: float
    audio_time: float | None  # music position fed to the capture; None = silence
    phase: RecordingPhase


class RecordingSessionController:
    """
    Owns the recording phase and its side effects.

    Args:
        transport: Audio player; only read for position, plus play/pause/seek
            on phase transitions.
        capture: Capture sink fed by the engine while a session is active.
        interpolator: Scroll interpolator to reset when a session starts.
        clock: Animation clock used to time the intro.
        silence_factory: Builds the silent keep-alive source for each session.
    """

    def __init__(
        self,
        transport: AudioTransport,
        capture: CaptureSink | None,
        interpolator: ScrollInterpolator,
        clock: Callable[[], float],
        silence_factory: Callable[[], SilenceSource] = SilenceSource,
    ):
        self.transport = transport
        self.capture = capture
        self.interpolator = interpolator
        self.clock = clock
        self.silence_factory = silence_factory

        self.phase = RecordingPhase.IDLE
        self.last_artifact: Path | None = None
        self._intro_start = 0.0
        self._silence: SilenceSource | None = None

    @property
    def active(self) -> bool:
        return self.phase is not RecordingPhase.IDLE

    @property
    def silence(self) -> SilenceSource | None:
        return self._silence

    def can_start(self, timeline: LyricTimeline) -> bool:
        """Recording needs audio, at least one cue and somewhere to capture to."""
        return self.capture is not None and self.transport.loaded and len(timeline) > 0

    def start(self, timeline: LyricTimeline, width: int, height: int) -> bool:
        """
        Enter the intro phase and begin capturing.

        Returns:
            False if a session is already active or recording is not allowed
            with what is loaded; True once the intro has started.

        Raises:
            RecordingStartError: The audio output or the capture could not be
                started. The controller stays idle.
        """
        if self.active or not self.can_start(timeline):
            return False

        silence = self.silence_factory()
        try:
            self.transport.prepare()
            silence.start()
            self.capture.start(width, height, AudioRoute(self.transport.source, silence))
            self.transport.seek(0.0)
            self.transport.pause()
        except (AudioError, CaptureError) as e:
            if self.capture.active:
                self.capture.abort()
            silence.release()
            logger.warning("Recording start failed: %s", e)
            raise RecordingStartError(START_FAILURE_MESSAGE) from e

        self._silence = silence
        self.interpolator.reset(0.0)
        self._intro_start = self.clock()
        self._set_phase(RecordingPhase.INTRO)
        return True

    def sample(self, settings: VisualSettings, now: float | None = None) -> TickSample:
        """
        Sample time and fades for this tick.

        Ends the intro (starting the music) when it has run its course; that
        tick is then sampled as a recording tick, so a zero-length intro
        never shows the title. Lyrics only fade in at the start of a
        recording; outside a session they are fully visible.

        Args:
            settings: Settings snapshot for this tick.
            now: The tick's animation clock reading. Read from the clock if
                not given.
        """
        if self.phase is RecordingPhase.INTRO:
            if now is None:
                now = self.clock()
            remaining = settings.intro_duration - (now - self._intro_start)
            if remaining > 0:
                title_opacity = min(1.0, remaining / FADE_DURATION)
                return TickSample(0.0, True, title_opacity, 0.0, None, self.phase)

            self.transport.play()
            self._set_phase(RecordingPhase.RECORDING)

        t = self.transport.current_time
        if self.phase is RecordingPhase.RECORDING:
            return TickSample(t, False, 0.0, min(1.0, max(0.0, t / FADE_DURATION)), t, self.phase)
        return TickSample(t, False, 0.0, 1.0, None, self.phase)

    def stop(self) -> Path | None:
        """
        Finalize the capture and return to idle.

        Cleanup happens even if finalizing fails; the error is re-raised.

        Returns:
            The finished artifact, or None if no session was active.
        """
        if not self.active:
            return None

        logger.info("Stopping recording (%s)", self.phase.value)
        try:
            artifact = self.capture.stop()
        finally:
            self._teardown()

        self.last_artifact = artifact
        return artifact

    def abort(self):
        """Drop the session without producing an artifact."""
        if not self.active:
            return
        try:
            self.capture.abort()
        finally:
            self._teardown()

    def on_audio_ended(self) -> Path | None:
        """Natural end of the music stops an active recording."""
        if self.phase is not RecordingPhase.RECORDING:
            return None
        logger.info("Audio ended, finalizing recording")
        return self.stop()

    def _teardown(self):
        if self._silence is not None:
            self._silence.stop()
            self._silence.release()
            self._silence = None
        self.transport.pause()
        self._set_phase(RecordingPhase.IDLE)

    def _set_phase(self, phase: RecordingPhase):
        if phase is not self.phase:
            logger.info("Recording phase: %s -> %s", self.phase.value, phase.value)
        self.phase = phase
