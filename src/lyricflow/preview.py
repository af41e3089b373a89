"""
Live preview window.

Usage:
    lyricflow-preview <audio_file> <lyrics.lrc> [options]

Keys:
    Space       play / pause (stops an active recording)
    R           start / stop recording
    Left/Right  seek -5s / +5s
    Esc         quit

Plays the audio through pygame's mixer and renders at the configured video
size, scaled to fit the window. Recordings are written as WebM next to the
audio file.
"""

import argparse
import logging
import sys
from pathlib import Path

import pygame

from lyricflow.cli import add_settings_arguments, resolve_settings
from lyricflow.core.engine import LyricEngine
from lyricflow.core.scheduler import AUDIO_ENDED, STOP, FrameScheduler
from lyricflow.core.timeline import LyricTimeline
from lyricflow.exceptions import CaptureError, LyricFlowError, RecordingStartError
from lyricflow.io.audio import PygameTransport
from lyricflow.io.encoder import QUALITY_PRESETS, FfmpegCaptureSession
from lyricflow.io.media import MediaState

logger = logging.getLogger(__name__)

SEEK_STEP = 5.0
MUSIC_END = pygame.USEREVENT + 1


def _fit(size: tuple[int, int], bounds: tuple[int, int]) -> tuple[int, int]:
    """Largest size with the aspect ratio of ``size`` that fits ``bounds``."""
    scale = min(bounds[0] / size[0], bounds[1] / size[1], 1.0)
    return max(1, int(size[0] * scale)), max(1, int(size[1] * scale))


def _report(engine: LyricEngine):
    artifact = engine.session.last_artifact
    if artifact is not None:
        print(f"Saved recording: {artifact}", flush=True)


def _toggle_recording(engine: LyricEngine, scheduler: FrameScheduler):
    if engine.recording:
        scheduler.post(STOP)
        return
    try:
        if not engine.start_recording():
            print("Load audio and lyrics before recording.", file=sys.stderr)
    except RecordingStartError as e:
        print(f"Error: {e}", file=sys.stderr)


def _handle_key(key: int, engine: LyricEngine, scheduler: FrameScheduler):
    transport = engine.transport
    if key == pygame.K_ESCAPE:
        scheduler.cancel()
    elif key == pygame.K_SPACE:
        if engine.recording:
            scheduler.post(STOP)
        elif transport.is_playing:
            transport.pause()
        else:
            transport.play()
    elif key == pygame.K_r:
        _toggle_recording(engine, scheduler)
    elif key in (pygame.K_LEFT, pygame.K_RIGHT) and not engine.recording:
        step = SEEK_STEP if key == pygame.K_RIGHT else -SEEK_STEP
        transport.seek(transport.current_time + step)


def run_preview(args: argparse.Namespace):
    for path, label in ((args.audio, "Audio"), (args.lyrics, "Lyrics")):
        if not path.exists():
            raise LyricFlowError(f"{label} file not found: {path}")

    timeline = LyricTimeline.from_file(args.lyrics)
    settings = resolve_settings(args, args.audio.stem)
    output = args.output or MediaState.for_audio(args.audio).default_output

    pygame.init()
    try:
        info = pygame.display.Info()
        bounds = (int(info.current_w * 0.8), int(info.current_h * 0.8))
        window_size = _fit((settings.video_width, settings.video_height), bounds)
        screen = pygame.display.set_mode(window_size)
        pygame.display.set_caption(f"lyricflow - {settings.song_title}")

        transport = PygameTransport(args.audio)
        transport.prepare()
        pygame.mixer.music.set_endevent(MUSIC_END)

        capture = FfmpegCaptureSession(output, fps=args.fps, quality=args.quality)
        engine = LyricEngine(transport, capture, settings)
        engine.load_timeline(timeline)
        if args.cover is not None:
            engine.load_cover(args.cover)

        scheduler = FrameScheduler(engine, fps=args.fps)
        scheduler.on(STOP, lambda: _report(engine))
        scheduler.on(AUDIO_ENDED, lambda: _report(engine))

        clock = pygame.time.Clock()
        try:
            while not scheduler.cancelled:
                for event in pygame.event.get():
                    if event.type == pygame.QUIT:
                        scheduler.cancel()
                    elif event.type == MUSIC_END:
                        transport.poll_end()
                    elif event.type == pygame.KEYDOWN:
                        _handle_key(event.key, engine, scheduler)

                try:
                    state = scheduler.tick()
                except CaptureError as e:
                    print(f"Error: recording failed: {e}", file=sys.stderr)
                    state = None

                if state is not None:
                    frame = pygame.image.frombuffer(engine.canvas.tobytes(), engine.canvas.size, "RGB")
                    if frame.get_size() != window_size:
                        frame = pygame.transform.smoothscale(frame, window_size)
                    screen.blit(frame, (0, 0))
                    pygame.display.flip()

                clock.tick(args.fps)
        finally:
            if engine.recording:
                logger.info("Window closed during recording, finalizing")
                engine.stop_recording()
                _report(engine)
    finally:
        pygame.quit()


def main(argv: list[str] | None = None):
    parser = argparse.ArgumentParser(
        prog="lyricflow-preview",
        description="Live lyric video preview with recording",
    )
    parser.add_argument("audio", type=Path, help="Input audio file (wav, mp3, flac, ogg)")
    parser.add_argument("lyrics", type=Path, help="Time-tagged lyrics (.lrc)")
    parser.add_argument("--cover", type=Path, default=None, help="Cover art image")
    parser.add_argument(
        "-o", "--output",
        type=Path,
        default=None,
        help="Recording output path (default: <audio>.webm next to the audio)",
    )
    add_settings_arguments(parser)
    parser.add_argument(
        "-q", "--quality", type=str, default="fast",
        choices=list(QUALITY_PRESETS),
        help="Recording encoder preset (default: fast, keeps up in real time)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        run_preview(args)
    except LyricFlowError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
