"""
FFmpeg capture sink.

Pipes raw RGB frames to ffmpeg via stdin while a session records, then
builds the audio track from the per-frame audio positions and muxes both
into one WebM (VP9 video, Opus audio). Frames go straight from numpy arrays
to the encoder; only the finished audio track touches disk before muxing.
"""

import logging
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import numpy as np
import soundfile as sf

from lyricflow.exceptions import CaptureError
from lyricflow.io.audio import DEFAULT_SAMPLE_RATE, AudioRoute, SilenceSource, load_track

logger = logging.getLogger(__name__)

# Quality presets: (deadline, cpu-used)
QUALITY_PRESETS = {
    "high": ("good", "1"),
    "medium": ("good", "3"),
    "fast": ("realtime", "8"),
}

DEFAULT_BITRATE = "8M"


class CaptureSink(Protocol):
    """What the recording controller needs from a capture backend."""

    @property
    def active(self) -> bool: ...

    def start(self, width: int, height: int, route: AudioRoute) -> None: ...

    def push_frame(self, frame: np.ndarray, audio_time: float | None) -> None: ...

    def stop(self) -> Path: ...

    def abort(self) -> None: ...


@dataclass
class AudioRun:
    """Consecutive frames fed by one audio source."""

    start_frame: int
    n_frames: int
    offset: float | None  # music position of the first frame; None = silence


class CaptureAudioTrack:
    """
    Audio timeline of a capture, recorded one video frame at a time.

    Each frame carries the music position it was rendered at, or None while
    the silence source feeds the capture. Frames whose position continues
    the previous one join its run; a seek, stall or source switch starts a
    new run. Rendering slices the music per run, so the audio always lines
    up with the frame count regardless of how the clock behaved.
    """

    def __init__(self, fps: float, tolerance_frames: float = 3.0):
        self.fps = float(fps)
        self.tolerance = tolerance_frames / self.fps
        self.runs: list[AudioRun] = []
        self.n_frames = 0

    @property
    def uses_music(self) -> bool:
        return any(run.offset is not None for run in self.runs)

    def append(self, audio_time: float | None):
        last = self.runs[-1] if self.runs else None

        if audio_time is None:
            if last is not None and last.offset is None:
                last.n_frames += 1
            else:
                self.runs.append(AudioRun(self.n_frames, 1, None))
        else:
            continuing = False
            if last is not None and last.offset is not None:
                expected = last.offset + last.n_frames / self.fps
                continuing = abs(audio_time - expected) <= self.tolerance
            if continuing:
                last.n_frames += 1
            else:
                self.runs.append(AudioRun(self.n_frames, 1, float(audio_time)))

        self.n_frames += 1

    def render(
        self,
        music: np.ndarray | None,
        silence: SilenceSource,
        sample_rate: int,
    ) -> np.ndarray:
        """
        Assemble the audio track.

        Args:
            music: Decoded music as (n, channels) float32, or None.
            silence: Source for the silent runs.
            sample_rate: Sample rate of ``music`` and of the output.

        Returns:
            (n, channels) float32 covering exactly ``n_frames / fps`` seconds.
        """
        spf = sample_rate / self.fps
        channels = music.shape[1] if music is not None else silence.channels
        out = np.zeros((int(round(self.n_frames * spf)), channels), dtype=np.float32)

        for run in self.runs:
            s0 = int(round(run.start_frame * spf))
            s1 = int(round((run.start_frame + run.n_frames) * spf))
            n = s1 - s0
            if run.offset is None or music is None:
                block = silence.render(n)
            else:
                a = int(round(run.offset * sample_rate))
                block = music[a:a + n]
            out[s0:s0 + len(block)] = block[:, :channels]

        return out


class FfmpegCaptureSession:
    """
    Capture sink backed by an ffmpeg subprocess.

    One instance records one session at a time; it can be reused after
    ``stop`` or ``abort``.
    """

    def __init__(
        self,
        output_path: Path,
        fps: int = 60,
        quality: str = "high",
        bitrate: str = DEFAULT_BITRATE,
        sample_rate: int = DEFAULT_SAMPLE_RATE,
        ffmpeg: str = "ffmpeg",
    ):
        self.output_path = Path(output_path)
        self.fps = fps
        self.quality = quality
        self.bitrate = bitrate
        self.sample_rate = sample_rate
        self.ffmpeg = ffmpeg

        self._proc: subprocess.Popen | None = None
        self._temp_dir: Path | None = None
        self._route: AudioRoute | None = None
        self._audio: CaptureAudioTrack | None = None
        self._size = (0, 0)

    @property
    def active(self) -> bool:
        return self._proc is not None

    @property
    def frame_count(self) -> int:
        return self._audio.n_frames if self._audio else 0

    def start(self, width: int, height: int, route: AudioRoute):
        """
        Spawn the video encoder.

        Raises:
            CaptureError: ffmpeg missing, already running, or failed to spawn.
        """
        if self.active:
            raise CaptureError("Capture already running")
        exe = shutil.which(self.ffmpeg)
        if exe is None:
            raise CaptureError(f"{self.ffmpeg} not found on PATH")

        deadline, cpu_used = QUALITY_PRESETS.get(self.quality, QUALITY_PRESETS["high"])
        self._temp_dir = Path(tempfile.mkdtemp(prefix="lyricflow_capture_"))
        video_path = self._temp_dir / "video.webm"

        cmd = [
            exe, "-y",
            "-loglevel", "error",
            # Raw video input from pipe
            "-f", "rawvideo",
            "-pix_fmt", "rgb24",
            "-s", f"{width}x{height}",
            "-r", str(self.fps),
            "-i", "pipe:0",
            "-an",
            # Video encoding
            "-c:v", "libvpx-vp9",
            "-b:v", self.bitrate,
            "-deadline", deadline,
            "-cpu-used", cpu_used,
            "-row-mt", "1",
            "-pix_fmt", "yuv420p",
            str(video_path),
        ]

        try:
            self._proc = subprocess.Popen(
                cmd,
                stdin=subprocess.PIPE,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
            )
        except OSError as e:
            self._cleanup()
            raise CaptureError(f"Could not start ffmpeg: {e}") from e

        self._route = route
        self._audio = CaptureAudioTrack(self.fps)
        self._size = (int(width), int(height))
        logger.info("Capture started: %dx%d @ %sfps -> %s", width, height, self.fps, self.output_path)

    def push_frame(self, frame: np.ndarray, audio_time: float | None = None):
        """Encode one frame and note which audio it belongs to."""
        if not self.active:
            raise CaptureError("Capture not started")
        w, h = self._size
        if frame.shape != (h, w, 3):
            raise CaptureError(f"Frame shape {frame.shape} does not match capture size {w}x{h}")

        try:
            self._proc.stdin.write(np.ascontiguousarray(frame, dtype=np.uint8).tobytes())
        except BrokenPipeError as e:
            message = self._read_error()
            self.abort()
            raise CaptureError(f"ffmpeg closed the video pipe: {message}") from e

        self._audio.append(audio_time)

    def stop(self) -> Path:
        """
        Finalize: close the video, build and mux the audio track.

        Returns:
            Path to the finished WebM.
        """
        if not self.active:
            raise CaptureError("Capture not started")

        proc, self._proc = self._proc, None
        audio, route = self._audio, self._route
        try:
            if proc.stdin:
                proc.stdin.close()
            proc.wait()
            if proc.returncode != 0:
                raise CaptureError(_ffmpeg_error(proc.returncode, proc.stderr.read()))
            if audio.n_frames == 0:
                raise CaptureError("No frames were captured")

            music = load_track(route.track, self.sample_rate) if audio.uses_music else None
            samples = audio.render(music, route.silence, self.sample_rate)
            audio_path = self._temp_dir / "audio.wav"
            sf.write(str(audio_path), samples, self.sample_rate)

            muxed = self._temp_dir / "final.webm"
            self._mux(self._temp_dir / "video.webm", audio_path, muxed)

            self.output_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(muxed), str(self.output_path))
        finally:
            self._cleanup()

        logger.info(
            "Capture finalized: %d frames (%.2fs) -> %s",
            audio.n_frames, audio.n_frames / self.fps, self.output_path,
        )
        return self.output_path

    def abort(self):
        """Kill the encoder and discard everything recorded so far."""
        proc, self._proc = self._proc, None
        if proc is not None:
            proc.kill()
            proc.wait()
            logger.info("Capture aborted")
        self._cleanup()

    def _mux(self, video_path: Path, audio_path: Path, output_path: Path):
        cmd = [
            shutil.which(self.ffmpeg) or self.ffmpeg, "-y",
            "-loglevel", "error",
            "-i", str(video_path),
            "-i", str(audio_path),
            "-map", "0:v:0",
            "-map", "1:a:0",
            "-c:v", "copy",
            "-c:a", "libopus",
            "-b:a", "192k",
            "-shortest",
            str(output_path),
        ]
        result = subprocess.run(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.PIPE)
        if result.returncode != 0:
            raise CaptureError(_ffmpeg_error(result.returncode, result.stderr))

    def _read_error(self) -> str:
        if self._proc is None or self._proc.stderr is None:
            return ""
        try:
            self._proc.wait(timeout=5)
        except subprocess.TimeoutExpired:
            return ""
        return self._proc.stderr.read().decode("utf-8", errors="replace")[-500:]

    def _cleanup(self):
        if self._temp_dir is not None:
            shutil.rmtree(self._temp_dir, ignore_errors=True)
        self._temp_dir = None
        self._route = None
        self._audio = None


def _ffmpeg_error(returncode: int, stderr: bytes) -> str:
    text = stderr.decode("utf-8", errors="replace") if stderr else ""
    # Filter out common non-error ffmpeg messages
    error_lines = [
        line for line in text.split("\n")
        if "error" in line.lower() or "invalid" in line.lower()
    ]
    error_msg = "\n".join(error_lines[-5:]) if error_lines else text[-500:]
    return f"ffmpeg exited with code {returncode}: {error_msg}"
