"""
Time-tagged lyric parsing and lookup.

Parses LRC-style text (``[mm:ss.xx]`` or ``[mm:ss:xxx]`` tags) into an
immutable, time-ordered cue list and answers "which cue is active at t".
"""

import bisect
import logging
import math
import re
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path

from lyricflow.exceptions import MediaError

logger = logging.getLogger(__name__)

TIME_TAG = re.compile(r"\[(\d{2}):(\d{2})[.:](\d{2,3})\]")


@dataclass(frozen=True)
class LyricLine:
    """One cue: a timestamp in seconds and its text."""

    time: float
    text: str


def parse_lrc(raw_text: str) -> list[LyricLine]:
    """
    Parse LRC text into cues sorted by time.

    Only the first time tag of a line is used. Lines without a valid tag or
    with no text after it are dropped; nothing here raises on bad input.

    Args:
        raw_text: Full lyric file contents.

    Returns:
        Cues in ascending time order (stable for equal timestamps).
    """
    cues = []
    dropped = 0

    for line in raw_text.lstrip("\ufeff").splitlines():
        match = TIME_TAG.search(line)
        if not match:
            if line.strip():
                dropped += 1
            continue

        minutes, seconds, fraction = match.groups()
        divisor = 1000 if len(fraction) == 3 else 100
        total = int(minutes) * 60 + int(seconds) + int(fraction) / divisor

        text = (line[:match.start()] + line[match.end():]).strip()
        if not text:
            dropped += 1
            continue

        cues.append(LyricLine(time=total, text=text))

    if dropped:
        logger.debug("Dropped %d lyric line(s) without a usable time tag", dropped)

    return sorted(cues, key=lambda cue: cue.time)


class LyricTimeline(Sequence):
    """
    Immutable, time-ordered sequence of lyric cues.

    Loading a new lyric file builds a new timeline; an existing one is never
    edited in place.
    """

    def __init__(self, lines: Sequence[LyricLine] = ()):
        self._lines = tuple(sorted(lines, key=lambda cue: cue.time))
        self._times = [cue.time for cue in self._lines]

    @classmethod
    def from_lrc(cls, raw_text: str) -> "LyricTimeline":
        return cls(parse_lrc(raw_text))

    @classmethod
    def from_file(cls, path: Path) -> "LyricTimeline":
        """Read and parse a UTF-8 lyric file."""
        path = Path(path)
        try:
            raw = path.read_text(encoding="utf-8-sig", errors="replace")
        except OSError as e:
            raise MediaError(f"Could not read lyrics {path}: {e}") from e
        timeline = cls.from_lrc(raw)
        logger.info("Loaded %d lyric cue(s) from %s", len(timeline), path.name)
        return timeline

    def __len__(self) -> int:
        return len(self._lines)

    def __getitem__(self, index):
        return self._lines[index]

    def __iter__(self) -> Iterator[LyricLine]:
        return iter(self._lines)

    def __repr__(self) -> str:
        return f"LyricTimeline({len(self)} cues)"

    @property
    def duration(self) -> float:
        """Timestamp of the last cue (0 for an empty timeline)."""
        return self._times[-1] if self._times else 0.0

    def active_index(self, time: float) -> int:
        """
        Index of the last cue whose time is <= ``time``.

        Returns 0 before the first cue and -1 when the timeline is empty.
        """
        if not self._lines:
            return -1
        idx = bisect.bisect_right(self._times, time) - 1
        return max(idx, 0)

    def window(self, center: float, radius: float) -> range:
        """Indices of cues within ``radius`` of a (fractional) index."""
        if not self._lines:
            return range(0)
        start = max(0, math.floor(center - radius))
        end = min(len(self._lines) - 1, math.ceil(center + radius))
        return range(start, end + 1)
