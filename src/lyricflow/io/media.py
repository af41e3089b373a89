"""Loaded media: audio path, cover art, lyric timeline."""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from lyricflow.core.timeline import LyricTimeline
from lyricflow.exceptions import MediaError

logger = logging.getLogger(__name__)


@dataclass
class MediaState:
    """
    What is currently loaded.

    ``file_name`` is the audio file's stem; it names the default output
    file and the default song title.
    """

    audio_path: Path | None = None
    image: Image.Image | None = None
    timeline: LyricTimeline = field(default_factory=LyricTimeline)
    file_name: str = ""

    @classmethod
    def for_audio(cls, audio_path: Path | None) -> "MediaState":
        if audio_path is None:
            return cls()
        audio_path = Path(audio_path)
        return cls(audio_path=audio_path, file_name=audio_path.stem)

    @property
    def default_output(self) -> Path:
        """``<file_name>.webm`` next to the audio file."""
        name = f"{self.file_name or 'lyric-video'}.webm"
        if self.audio_path is None:
            return Path(name)
        return self.audio_path.with_name(name)


def load_cover(path: Path) -> Image.Image:
    """
    Open a cover image as RGB.

    Raises:
        MediaError: File missing or not a readable image.
    """
    path = Path(path)
    if not path.exists():
        raise MediaError(f"Cover image not found: {path}")
    try:
        with Image.open(path) as img:
            image = img.convert("RGB")
    except (OSError, UnidentifiedImageError) as e:
        raise MediaError(f"Could not read image {path}: {e}") from e

    logger.info("Loaded cover %s (%dx%d)", path.name, image.width, image.height)
    return image
