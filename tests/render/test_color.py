"""Tests for color, easing and wrapping helpers."""

import pytest

from lyricflow.render.color import (
    cosine_ease,
    hex_to_rgb,
    hsl_to_rgb,
    interpolate_color,
    wrap_text,
)


def _char_measure(text: str) -> float:
    """Monospace stand-in: 10 units per character."""
    return len(text) * 10.0


class TestHexToRgb:
    def test_long_form(self):
        assert hex_to_rgb("#38bdf8") == (56, 189, 248)

    def test_without_hash(self):
        assert hex_to_rgb("0f172a") == (15, 23, 42)

    def test_short_form(self):
        assert hex_to_rgb("#fa0") == (255, 170, 0)
        assert hex_to_rgb("FA0") == (255, 170, 0)

    @pytest.mark.parametrize("bad", ["", "#12", "#12345", "zzzzzz", "#1234567", None])
    def test_invalid_defaults_to_white(self, bad):
        assert hex_to_rgb(bad) == (255, 255, 255)


class TestInterpolateColor:
    def test_same_color_is_fixed_point(self):
        for f in (0.0, 0.3, 0.5, 1.0):
            assert interpolate_color("#94a3b8", "#94a3b8", f) == (148, 163, 184)

    def test_endpoints(self):
        a, b = (10, 20, 30), (200, 100, 0)
        assert interpolate_color(a, b, 0) == a
        assert interpolate_color(a, b, 1) == b

    def test_factor_clamped(self):
        a, b = (0, 0, 0), (100, 100, 100)
        assert interpolate_color(a, b, -2) == a
        assert interpolate_color(a, b, 7) == b

    def test_midpoint_rounds(self):
        assert interpolate_color((0, 0, 0), (255, 1, 3), 0.5) == (128, 0, 2)


class TestEase:
    def test_ease_endpoints(self):
        assert cosine_ease(0.0) == pytest.approx(1.0)
        assert cosine_ease(1.0) == pytest.approx(0.0)
        assert cosine_ease(0.5) == pytest.approx(0.5)

    def test_ease_saturates(self):
        assert cosine_ease(4.0) == pytest.approx(0.0)

    def test_hsl(self):
        assert hsl_to_rgb(0, 1.0, 0.5) == (255, 0, 0)
        assert hsl_to_rgb(360 + 120, 1.0, 0.5) == (0, 255, 0)


class TestWrapText:
    def test_fits_on_one_line(self):
        assert wrap_text(_char_measure, "short line", 200) == ["short line"]

    def test_wraps_greedily(self):
        lines = wrap_text(_char_measure, "aa bb cc dd", 60)
        assert lines == ["aa bb", "cc dd"]

    def test_width_is_exclusive(self):
        # "aa bb" measures exactly 50, which is not below 50
        assert wrap_text(_char_measure, "aa bb", 50) == ["aa", "bb"]

    def test_long_word_kept_whole(self):
        lines = wrap_text(_char_measure, "a supercalifragilistic b", 50)
        assert lines == ["a", "supercalifragilistic", "b"]

    def test_no_line_exceeds_width_unless_single_word(self):
        text = "the quick brown fox jumps over the extraordinarily lazy dog again and again"
        for max_width in (30, 55, 80, 130):
            for line in wrap_text(_char_measure, text, max_width):
                assert _char_measure(line) < max_width or " " not in line

    def test_words_preserved_in_order(self):
        text = "one two three four five six"
        assert " ".join(wrap_text(_char_measure, text, 90)) == text

    def test_empty_text(self):
        assert wrap_text(_char_measure, "", 100) == [""]
