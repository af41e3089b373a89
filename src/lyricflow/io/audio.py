"""
Audio clocks and sources.

The engine only ever reads the audio position; these classes own it.
``VirtualTransport`` is a deterministic stand-in driven by the frame
scheduler (offline renders, tests). ``PygameTransport`` plays the file
through ``pygame.mixer`` for the live preview.
"""

import logging
import math
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import librosa
import numpy as np
import pygame

from lyricflow.exceptions import AudioError, MediaError

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_RATE = 48000


class AudioTransport(Protocol):
    """What the engine needs from an audio player."""

    @property
    def loaded(self) -> bool: ...

    @property
    def source(self) -> Path | None: ...

    @property
    def duration(self) -> float: ...

    @property
    def current_time(self) -> float: ...

    @property
    def is_playing(self) -> bool: ...

    @property
    def ended(self) -> bool: ...

    def prepare(self) -> None: ...

    def play(self) -> None: ...

    def pause(self) -> None: ...

    def seek(self, position: float) -> None: ...


class VirtualTransport:
    """
    Deterministic audio clock.

    Position only moves when ``advance`` is called, which makes every
    recording sample-exact and reproducible.
    """

    def __init__(self, source: Path | None = None, duration: float = 0.0):
        self._source = Path(source) if source is not None else None
        self._duration = max(0.0, float(duration))
        self._position = 0.0
        self._playing = False
        self._ended = False

    @classmethod
    def for_file(cls, path: Path) -> "VirtualTransport":
        return cls(path, probe_duration(path))

    @property
    def loaded(self) -> bool:
        return self._source is not None

    @property
    def source(self) -> Path | None:
        return self._source

    @property
    def duration(self) -> float:
        return self._duration

    @property
    def current_time(self) -> float:
        return self._position

    @property
    def is_playing(self) -> bool:
        return self._playing

    @property
    def ended(self) -> bool:
        return self._ended

    def prepare(self):
        if not self.loaded:
            raise AudioError("No audio loaded")

    def play(self):
        if self._position >= self._duration:
            self._position = 0.0
        self._playing = True
        self._ended = False

    def pause(self):
        self._playing = False

    def seek(self, position: float):
        self._position = min(max(0.0, float(position)), self._duration)
        self._ended = False

    def advance(self, dt: float):
        """Move the clock forward by ``dt`` seconds if playing."""
        if not self._playing:
            return
        self._position += dt
        if self._position >= self._duration:
            self._position = self._duration
            self._playing = False
            self._ended = True


class PygameTransport:
    """
    Real-time playback through ``pygame.mixer.music``.

    ``get_pos`` ignores seek offsets, so the offset of the last ``play``
    call is tracked here.
    """

    def __init__(self, source: Path, sample_rate: int = 44100):
        self._source = Path(source)
        self._sample_rate = sample_rate
        self._duration = probe_duration(self._source)
        self._offset = 0.0
        self._playing = False
        self._started = False
        self._ended = False
        self._ready = False

    @property
    def loaded(self) -> bool:
        return self._source.exists()

    @property
    def source(self) -> Path:
        return self._source

    @property
    def duration(self) -> float:
        return self._duration

    @property
    def current_time(self) -> float:
        if not self._started:
            return self._offset
        pos_ms = pygame.mixer.music.get_pos()
        if pos_ms < 0:
            return self._offset
        return min(self._offset + pos_ms / 1000.0, self._duration)

    @property
    def is_playing(self) -> bool:
        return self._playing

    @property
    def ended(self) -> bool:
        return self._ended

    def prepare(self):
        """Initialise the mixer and load the track (the 'context resume')."""
        if self._ready:
            return
        try:
            if not pygame.mixer.get_init():
                pygame.mixer.init(frequency=self._sample_rate)
            pygame.mixer.music.load(str(self._source))
        except pygame.error as e:
            raise AudioError(f"Could not open audio output: {e}") from e
        self._ready = True

    def play(self):
        self.prepare()
        if self._started and not self._playing and not self._ended:
            pygame.mixer.music.unpause()
        else:
            if self._ended:
                self._offset = 0.0
            self._play_from(self._offset)
        self._playing = True
        self._ended = False

    def pause(self):
        if self._playing:
            pygame.mixer.music.pause()
        self._playing = False

    def seek(self, position: float):
        self.prepare()
        self._offset = min(max(0.0, float(position)), self._duration)
        self._ended = False
        self._play_from(self._offset)
        if not self._playing:
            pygame.mixer.music.pause()

    def _play_from(self, position: float):
        try:
            pygame.mixer.music.play(start=position)
        except pygame.error as e:
            raise AudioError(f"Could not play {self._source.name} from {position:.2f}s: {e}") from e
        self._started = True

    def poll_end(self) -> bool:
        """
        Confirm a mixer end event.

        Restarting playback for a seek can also fire the event, so the end is
        only accepted once the mixer has really gone quiet.
        """
        if self._playing and not pygame.mixer.music.get_busy():
            self.mark_ended()
        return self._ended

    def mark_ended(self):
        """Treat the track as finished."""
        self._offset = self._duration
        self._playing = False
        self._started = False
        self._ended = True


class SilenceSource:
    """
    Silent keep-alive signal for the capture audio track.

    A zero-gain oscillator: during the title intro the music is paused, but
    the capture still needs a live audio signal, so this produces real
    (silent) samples at the capture's sample rate.
    """

    def __init__(self, sample_rate: int = DEFAULT_SAMPLE_RATE, channels: int = 2, frequency: float = 440.0):
        self.sample_rate = sample_rate
        self.channels = channels
        self.frequency = frequency
        self.gain = 0.0
        self.running = False
        self.released = False
        self._phase = 0

    def start(self):
        if self.released:
            raise AudioError("Silence source already released")
        self.running = True

    def stop(self):
        self.running = False

    def release(self):
        self.running = False
        self.released = True

    def render(self, n_samples: int) -> np.ndarray:
        """Next ``n_samples`` frames as (n, channels) float32."""
        n = max(0, int(n_samples))
        t = (np.arange(n, dtype=np.float64) + self._phase) / self.sample_rate
        self._phase += n
        wave = (np.sin(2 * math.pi * self.frequency * t) * self.gain).astype(np.float32)
        return np.repeat(wave[:, np.newaxis], self.channels, axis=1)


@dataclass
class AudioRoute:
    """Audio feeding a capture: the music file plus the silence keep-alive."""

    track: Path
    silence: SilenceSource


class FrameClock:
    """Deterministic animation clock advanced by the scheduler."""

    def __init__(self, start: float = 0.0):
        self.now = float(start)

    def __call__(self) -> float:
        return self.now

    def advance(self, dt: float):
        self.now += dt


class MonotonicClock:
    """Wall clock for live playback."""

    def __init__(self):
        self._origin = time.monotonic()

    def __call__(self) -> float:
        return time.monotonic() - self._origin


def probe_duration(path: Path) -> float:
    """Duration of an audio file in seconds."""
    path = Path(path)
    if not path.exists():
        raise MediaError(f"Audio file not found: {path}")
    try:
        return float(librosa.get_duration(path=str(path)))
    except Exception as e:
        raise MediaError(f"Could not read audio {path}: {e}") from e


def load_track(path: Path, sample_rate: int = DEFAULT_SAMPLE_RATE) -> np.ndarray:
    """
    Decode an audio file to stereo float32.

    Returns:
        (n_samples, 2) array at ``sample_rate``.
    """
    try:
        y, _ = librosa.load(str(path), sr=sample_rate, mono=False)
    except Exception as e:
        raise MediaError(f"Could not decode audio {path}: {e}") from e

    if y.ndim == 1:
        y = np.stack([y, y])
    elif y.shape[0] > 2:
        y = y[:2]
    elif y.shape[0] == 1:
        y = np.concatenate([y, y])
    logger.debug("Decoded %s: %d samples @ %dHz", Path(path).name, y.shape[1], sample_rate)
    return np.ascontiguousarray(y.T, dtype=np.float32)
