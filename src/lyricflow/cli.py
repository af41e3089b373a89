"""
CLI entry point for offline lyric video rendering.

Usage:
    lyricflow-render <audio_file> <lyrics.lrc> [options]

Renders the title intro plus the whole song frame by frame on a virtual
clock, so the output is deterministic and frame accurate regardless of how
fast the machine renders.
"""

import argparse
import dataclasses
import logging
import sys
import time
from pathlib import Path

from lyricflow.config import VisualSettings, load_settings
from lyricflow.core.engine import LyricEngine
from lyricflow.core.scheduler import FrameScheduler
from lyricflow.core.timeline import LyricTimeline
from lyricflow.exceptions import LyricFlowError
from lyricflow.io.audio import FrameClock, VirtualTransport
from lyricflow.io.encoder import QUALITY_PRESETS, FfmpegCaptureSession


def _progress_bar(current: int, total: int, width: int = 35):
    """Print a progress bar to stdout."""
    pct = min(current / max(total, 1), 1.0) * 100
    filled = int(width * min(current, total) / max(total, 1))
    bar = "#" * filled + "-" * (width - filled)
    if sys.stdout.isatty():
        sys.stdout.write(f"\r[{bar}] {pct:5.1f}%  frame {current}/{total}")
        sys.stdout.flush()
        if current >= total:
            sys.stdout.write("\n")
    else:
        if current % max(1, total // 20) == 0 or current >= total:
            print(f"{pct:5.1f}%  frame {current}/{total}", flush=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lyricflow-render",
        description="Render a synced lyric video (WebM) from audio, LRC lyrics and cover art",
    )

    parser.add_argument("audio", type=Path, help="Input audio file (wav, mp3, flac, ogg)")
    parser.add_argument("lyrics", type=Path, help="Time-tagged lyrics (.lrc)")
    parser.add_argument("--cover", type=Path, default=None, help="Cover art image")
    parser.add_argument(
        "-o", "--output",
        type=Path,
        default=None,
        help="Output WebM path (default: <audio>.webm next to the audio)",
    )
    add_settings_arguments(parser)

    # Encoding
    parser.add_argument(
        "-q", "--quality", type=str, default="high",
        choices=list(QUALITY_PRESETS),
        help="Encoding speed/quality trade-off (default: high)",
    )
    parser.add_argument(
        "--max-duration", type=float, default=None,
        help="Stop recording after N seconds of audio",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    return parser


def add_settings_arguments(parser: argparse.ArgumentParser):
    """Options shared by the render and preview front ends."""
    parser.add_argument(
        "--config", type=Path, default=None,
        help="JSON settings file (camelCase keys, as exported by the studio)",
    )

    # Resolution
    parser.add_argument("--width", type=int, default=None, help="Video width (default: 1920)")
    parser.add_argument("--height", type=int, default=None, help="Video height (default: 1080)")
    parser.add_argument("-f", "--fps", type=int, default=60, help="Frames per second (default: 60)")

    # Visual
    parser.add_argument("--title", type=str, default=None, help="Song title (default: audio file name)")
    parser.add_argument("--intro", type=float, default=None, help="Title intro length in seconds (0-10)")
    parser.add_argument("--primary-color", type=str, default=None, help="Active lyric color (hex)")
    parser.add_argument("--secondary-color", type=str, default=None, help="Inactive lyric color (hex)")
    parser.add_argument("--background-color", type=str, default=None, help="Background color (hex)")
    parser.add_argument("--font-size", type=float, default=None, help="Lyric font size in px (30-80)")
    parser.add_argument("--glow", type=float, default=None, help="Glow intensity (0-50)")
    parser.add_argument("--offset", type=float, default=None, help="Lyrics x offset, %% of width (30-70)")

    # Bokeh
    parser.add_argument("--bokeh", action="store_true", help="Enable the bokeh light overlay")
    parser.add_argument("--bokeh-color", type=str, default=None, help="Fixed bokeh color (disables auto color)")
    parser.add_argument("--bokeh-scale", type=float, default=None, help="Fixed bokeh size 0-100 (disables auto size)")


def resolve_settings(args: argparse.Namespace, default_title: str) -> VisualSettings:
    """Settings from the config file (if any) overridden by explicit flags."""
    settings = load_settings(args.config) if args.config else VisualSettings()

    overrides = {
        "video_width": args.width,
        "video_height": args.height,
        "song_title": args.title,
        "intro_duration": args.intro,
        "primary_color": args.primary_color,
        "secondary_color": args.secondary_color,
        "background_color": args.background_color,
        "font_size": args.font_size,
        "glow_intensity": args.glow,
        "lyrics_x_offset": args.offset,
    }
    settings = dataclasses.replace(settings, **{k: v for k, v in overrides.items() if v is not None})

    bokeh = settings.bokeh
    if args.bokeh:
        bokeh = dataclasses.replace(bokeh, enabled=True)
    if args.bokeh_color is not None:
        bokeh = dataclasses.replace(bokeh, color=args.bokeh_color, auto_color=False)
    if args.bokeh_scale is not None:
        bokeh = dataclasses.replace(bokeh, scale=args.bokeh_scale, auto_size=False)
    settings = dataclasses.replace(settings, bokeh=bokeh)

    if not settings.song_title:
        settings = dataclasses.replace(settings, song_title=default_title)
    return settings.clamped()


def render(args: argparse.Namespace) -> Path:
    for path, label in ((args.audio, "Audio"), (args.lyrics, "Lyrics")):
        if not path.exists():
            raise LyricFlowError(f"{label} file not found: {path}")

    timeline = LyricTimeline.from_file(args.lyrics)
    if len(timeline) == 0:
        raise LyricFlowError(f"No timed lyric lines found in {args.lyrics}")

    transport = VirtualTransport.for_file(args.audio)
    settings = resolve_settings(args, args.audio.stem)
    output = args.output or args.audio.with_name(f"{args.audio.stem}.webm")

    capture = FfmpegCaptureSession(output, fps=args.fps, quality=args.quality)
    engine = LyricEngine(transport, capture, settings, clock=FrameClock())
    engine.load_timeline(timeline)
    if args.cover is not None:
        engine.load_cover(args.cover)

    duration = transport.duration
    if args.max_duration is not None:
        duration = min(duration, args.max_duration)
    total_frames = int(round((settings.intro_duration + duration) * args.fps))

    print(f"Audio: {args.audio} ({transport.duration:.1f}s)")
    print(f"Lyrics: {len(timeline)} lines")
    print(f"\nRendering {total_frames} frames at {settings.video_width}x{settings.video_height} @ {args.fps}fps")
    print(f"  Title: {settings.song_title!r}, Intro: {settings.intro_duration:.1f}s, Quality: {args.quality}")

    scheduler = FrameScheduler(engine, fps=args.fps, offline=True)

    t0 = time.time()
    if not engine.start_recording():
        raise LyricFlowError("Recording could not be started")

    frames = 0
    while engine.recording:
        scheduler.tick()
        frames += 1
        if frames <= total_frames:
            _progress_bar(frames, total_frames)
        if (
            engine.recording
            and args.max_duration is not None
            and transport.current_time >= args.max_duration
        ):
            engine.stop_recording()

    elapsed = time.time() - t0
    artifact = engine.session.last_artifact
    file_size_mb = artifact.stat().st_size / 1024 / 1024

    print(f"\nDone! {file_size_mb:.1f} MB")
    print(f"  Render+encode took {elapsed:.1f}s ({frames / max(elapsed, 0.01):.1f} fps)")
    print(f"  Output: {artifact}")
    return artifact


def main(argv: list[str] | None = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        render(args)
    except LyricFlowError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
