"""
Visual settings for the lyric renderer.

Settings are plain frozen snapshots. The UI (or a CLI) replaces the whole
snapshot between ticks; the engine never mutates it.
"""

import json
import math
import re
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

from lyricflow.exceptions import MediaError


@dataclass(frozen=True)
class BokehSettings:
    """Ambient light-spot overlay configuration."""

    enabled: bool = False
    auto_color: bool = True
    color: str = "#38bdf8"
    auto_size: bool = True
    scale: float = 50.0  # 0-100, maps to a 50-450 px base radius


@dataclass(frozen=True)
class VisualSettings:
    """Everything the compositor reads for one frame."""

    primary_color: str = "#38bdf8"     # active lyric
    secondary_color: str = "#94a3b8"   # inactive lyrics
    background_color: str = "#0f172a"
    font_size: float = 42.0            # px, 30-80
    glow_intensity: float = 20.0       # 0-50
    lyrics_x_offset: float = 45.0      # % of frame width, 30-70
    intro_duration: float = 3.0        # seconds, 0-10 in 0.5 steps
    song_title: str = ""
    video_width: int = 1920
    video_height: int = 1080
    bokeh: BokehSettings = field(default_factory=BokehSettings)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VisualSettings":
        """
        Build settings from a config dict.

        Accepts the camelCase keys of exported studio configs
        (``primaryColor``, ``bokehEnabled`` ...) as well as snake_case.
        Unknown keys are ignored and numeric values are clamped.
        """
        flat = {_snake(k): v for k, v in data.items()}
        nested = flat.pop("bokeh", None)
        if isinstance(nested, dict):
            for key, value in nested.items():
                flat[f"bokeh_{_snake(key)}"] = value

        bokeh_kwargs = {}
        for f in fields(BokehSettings):
            key = f"bokeh_{f.name}"
            if key in flat:
                bokeh_kwargs[f.name] = flat.pop(key)

        kwargs = {
            f.name: flat[f.name]
            for f in fields(cls)
            if f.name != "bokeh" and f.name in flat
        }
        return cls(bokeh=BokehSettings(**bokeh_kwargs), **kwargs).clamped()

    def to_dict(self) -> dict[str, Any]:
        """Flat camelCase dict, the inverse of ``from_dict``."""
        out = {}
        for key, value in asdict(self).items():
            if key == "bokeh":
                for sub_key, sub_value in value.items():
                    out[_camel(f"bokeh_{sub_key}")] = sub_value
            else:
                out[_camel(key)] = value
        return out

    def clamped(self) -> "VisualSettings":
        """
        Return a copy with every numeric field forced into its range.

        Raises:
            MediaError: A field holds a value that is not a number (or, for
                flags, not a boolean).
        """
        bokeh = BokehSettings(
            enabled=_flag("bokehEnabled", self.bokeh.enabled),
            auto_color=_flag("bokehAutoColor", self.bokeh.auto_color),
            color=str(self.bokeh.color),
            auto_size=_flag("bokehAutoSize", self.bokeh.auto_size),
            scale=_clamp(_number("bokehScale", self.bokeh.scale), 0.0, 100.0),
        )
        intro = _clamp(_number("introDuration", self.intro_duration), 0.0, 10.0)
        return VisualSettings(
            primary_color=str(self.primary_color),
            secondary_color=str(self.secondary_color),
            background_color=str(self.background_color),
            font_size=_clamp(_number("fontSize", self.font_size), 30.0, 80.0),
            glow_intensity=_clamp(_number("glowIntensity", self.glow_intensity), 0.0, 50.0),
            lyrics_x_offset=_clamp(_number("lyricsXOffset", self.lyrics_x_offset), 30.0, 70.0),
            intro_duration=round(intro * 2) / 2,
            song_title=str(self.song_title or ""),
            video_width=max(1, int(_number("videoWidth", self.video_width))),
            video_height=max(1, int(_number("videoHeight", self.video_height))),
            bokeh=bokeh,
        )


def load_settings(path: Path) -> VisualSettings:
    """Load a JSON settings file."""
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise MediaError(f"Could not read settings file {path}: {e}") from e
    if not isinstance(data, dict):
        raise MediaError(f"Settings file {path} must contain a JSON object")
    return VisualSettings.from_dict(data)


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def _snake(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


_TRUE = {"true", "yes", "on", "1"}
_FALSE = {"false", "no", "off", "0", ""}


def _number(key: str, value: Any) -> float:
    if isinstance(value, bool):
        raise MediaError(f"Setting {key!r} must be a number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise MediaError(f"Setting {key!r} must be a number, got {value!r}") from e
    if math.isnan(number) or math.isinf(number):
        raise MediaError(f"Setting {key!r} must be a finite number, got {value!r}")
    return number


def _flag(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    if isinstance(value, str) and value.strip().lower() in _TRUE | _FALSE:
        return value.strip().lower() in _TRUE
    raise MediaError(f"Setting {key!r} must be true or false, got {value!r}")
