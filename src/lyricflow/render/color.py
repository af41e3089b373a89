"""
Easing, color and text helpers.

Pure functions shared by the compositor and the bokeh overlay.
"""

import colorsys
import math
import re
from typing import Callable, Sequence, Union

RGB = tuple[int, int, int]
ColorLike = Union[str, Sequence[int]]

_SHORT_HEX = re.compile(r"^#?([a-f\d])([a-f\d])([a-f\d])$", re.IGNORECASE)
_LONG_HEX = re.compile(r"^#?([a-f\d]{2})([a-f\d]{2})([a-f\d]{2})$", re.IGNORECASE)

WHITE: RGB = (255, 255, 255)


def hex_to_rgb(value: str) -> RGB:
    """
    Parse a 3- or 6-digit hex color, with or without ``#``.

    Invalid input falls back to white instead of raising.
    """
    if not isinstance(value, str):
        return WHITE
    value = value.strip()
    short = _SHORT_HEX.match(value)
    if short:
        value = "".join(c * 2 for c in short.groups())
    match = _LONG_HEX.match(value)
    if not match:
        return WHITE
    r, g, b = (int(part, 16) for part in match.groups())
    return (r, g, b)


def to_rgb(color: ColorLike) -> RGB:
    """Accept a hex string or an RGB sequence."""
    if isinstance(color, str):
        return hex_to_rgb(color)
    r, g, b = color[:3]
    return (int(r), int(g), int(b))


def interpolate_color(color_a: ColorLike, color_b: ColorLike, factor: float) -> RGB:
    """
    Per-channel linear blend between two colors.

    Args:
        color_a: Color at factor 0.
        color_b: Color at factor 1.
        factor: Blend amount, clamped to [0, 1].

    Returns:
        Rounded (r, g, b) tuple.
    """
    a = to_rgb(color_a)
    b = to_rgb(color_b)
    f = max(0.0, min(1.0, factor))
    return tuple(int(round(ca + (cb - ca) * f)) for ca, cb in zip(a, b))


def cosine_ease(distance: float) -> float:
    """Smooth bell falloff: 1 at distance 0, 0 at distance >= 1."""
    d = min(abs(distance), 1.0)
    return (1 + math.cos(math.pi * d)) / 2


def hsl_to_rgb(hue_deg: float, saturation: float, lightness: float) -> RGB:
    """HSL (degrees, 0-1, 0-1) to an 8-bit RGB tuple."""
    r, g, b = colorsys.hls_to_rgb((hue_deg % 360) / 360.0, lightness, saturation)
    return (int(round(r * 255)), int(round(g * 255)), int(round(b * 255)))


def wrap_text(
    measure: Callable[[str], float],
    text: str,
    max_width: float,
) -> list[str]:
    """
    Greedy word wrap.

    A word joins the current line only while the measured candidate stays
    strictly below ``max_width``. Words are never split, so a single word
    wider than ``max_width`` ends up alone on its line.

    Args:
        measure: Returns the rendered width of a string.
        text: Text to wrap.
        max_width: Available width in the same units as ``measure``.

    Returns:
        Wrapped lines, in order.
    """
    words = text.split()
    if not words:
        return [text.strip()]

    lines = []
    current = words[0]
    for word in words[1:]:
        candidate = f"{current} {word}"
        if measure(candidate) < max_width:
            current = candidate
        else:
            lines.append(current)
            current = word
    lines.append(current)
    return lines
