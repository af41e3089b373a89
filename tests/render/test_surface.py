"""Tests for the raster drawing surface."""

import numpy as np
import pytest
from PIL import Image

from lyricflow.render.surface import Canvas, FontBook, blurred_backdrop, cover_sprite


@pytest.fixture
def fonts():
    return FontBook()


@pytest.fixture
def checker():
    """64x32 red/blue image, handy for cover-fit checks."""
    img = Image.new("RGB", (64, 32), (255, 0, 0))
    img.paste((0, 0, 255), (32, 0, 64, 32))
    return img


class TestCanvas:
    def test_size_and_validity(self):
        canvas = Canvas(320, 180)
        assert canvas.size == (320, 180)
        assert canvas.is_valid
        assert not Canvas(0, 180).is_valid

    def test_resize(self):
        canvas = Canvas(10, 10)
        canvas.resize(40, 20)
        assert canvas.to_array().shape == (20, 40, 3)

    def test_gradient_corners(self):
        canvas = Canvas(100, 50)
        canvas.fill_linear_gradient((200, 100, 0), (0, 0, 100))
        pixels = canvas.to_array()
        assert tuple(int(v) for v in pixels[0, 0]) == pytest.approx((200, 100, 0), abs=2)
        assert tuple(int(v) for v in pixels[-1, -1]) == pytest.approx((0, 0, 100), abs=6)

    def test_clear(self):
        canvas = Canvas(8, 8)
        canvas.fill_linear_gradient((255, 255, 255), (255, 255, 255))
        canvas.clear()
        assert canvas.to_array().max() == 0

    def test_radial_gradient_center_and_edge(self):
        canvas = Canvas(101, 101)
        canvas.radial_gradient(50.5, 50.5, 40, (255, 255, 255), 0.5)
        pixels = canvas.to_array()
        assert int(pixels[50, 50, 0]) == pytest.approx(127, abs=3)
        assert pixels[50, 95, 0] == 0
        assert pixels[0, 0, 0] == 0

    def test_radial_gradient_offscreen_is_noop(self):
        canvas = Canvas(50, 50)
        canvas.radial_gradient(-500, -500, 40, (255, 255, 255), 1.0)
        assert canvas.to_array().max() == 0

    def test_screen_never_darkens(self):
        canvas = Canvas(40, 40)
        canvas.fill_linear_gradient((180, 180, 180), (180, 180, 180))
        canvas.radial_gradient(20, 20, 30, (10, 10, 10), 1.0, mode="screen")
        assert canvas.to_array().min() >= 180

    def test_draw_image_alpha(self):
        canvas = Canvas(10, 10)
        canvas.draw_image(Image.new("RGB", (10, 10), (200, 200, 200)), 0, 0, alpha=0.5)
        assert int(canvas.to_array()[5, 5, 0]) == pytest.approx(100, abs=1)

    def test_draw_image_negative_offset(self):
        canvas = Canvas(10, 10)
        canvas.draw_image(Image.new("RGB", (20, 20), (9, 9, 9)), -5, -5)
        assert (canvas.to_array() == 9).all()

    def test_rounded_rect_corners_transparent(self):
        canvas = Canvas(40, 40)
        canvas.fill_rounded_rect(0, 0, 40, 40, 12, (255, 255, 255, 255))
        pixels = canvas.to_array()
        assert pixels[0, 0, 0] == 0
        assert pixels[20, 20, 0] == 255

    def test_draw_text_marks_pixels(self, fonts):
        canvas = Canvas(200, 60)
        canvas.draw_text("Hello", 10, 30, fonts.get(32, 700), (255, 255, 255))
        assert canvas.to_array().max() > 200

    def test_glow_spreads_further(self, fonts):
        plain = Canvas(200, 80)
        plain.draw_text("Hi", 60, 40, fonts.get(32), (255, 255, 255))
        glowing = Canvas(200, 80)
        glowing.draw_text("Hi", 60, 40, fonts.get(32), (255, 255, 255), glow_color=(255, 0, 0), glow=20)
        assert (glowing.to_array() > 0).sum() > (plain.to_array() > 0).sum()

    def test_transparent_text_not_drawn(self, fonts):
        canvas = Canvas(100, 40)
        canvas.draw_text("gone", 5, 20, fonts.get(24), (255, 255, 255), alpha=0.0)
        assert canvas.to_array().max() == 0

    def test_measure_grows_with_text(self, fonts):
        font = fonts.get(30)
        assert Canvas.measure("wide text", font) > Canvas.measure("w", font) > 0

    def test_draw_cover_sprite(self, checker):
        canvas = Canvas(120, 120)
        sprite, pad = cover_sprite(checker, 60, 4, shadow=(0, 0, 0, 0), border_width=0)
        canvas.draw_image(sprite, 30 - pad, 30 - pad)
        pixels = canvas.to_array().astype(int)
        # Cover fit crops the wide image around its center seam
        assert tuple(pixels[60, 35]) == pytest.approx((255, 0, 0), abs=2)
        assert tuple(pixels[60, 85]) == pytest.approx((0, 0, 255), abs=2)

    def test_draw_blurred_backdrop(self, checker):
        canvas = Canvas(64, 32)
        canvas.draw_image(blurred_backdrop(checker, (64, 32), blur=8, saturation=1.0), 0, 0)
        pixels = canvas.to_array().astype(int)
        # The seam gets mixed
        assert pixels[16, 32, 0] > 0 and pixels[16, 32, 2] > 0


class TestHelpers:
    def test_backdrop_size(self, checker):
        assert blurred_backdrop(checker, (200, 100)).size == (200, 100)

    def test_cover_sprite_padding(self, checker):
        sprite, pad = cover_sprite(checker, 50, 8)
        assert sprite.mode == "RGBA"
        assert sprite.size == (50 + 2 * pad, 50 + 2 * pad)
        assert pad > 0

    def test_font_cache(self, fonts):
        assert fonts.get(40, 700) is fonts.get(40.2, 800)
        assert fonts.get(40, 400) is not fonts.get(40, 700)

    def test_missing_font_falls_back(self):
        book = FontBook(regular_path="/nonexistent/font.ttf")
        assert Canvas.measure("x", book.get(20)) > 0


def test_tobytes_matches_array():
    canvas = Canvas(4, 3)
    canvas.fill_linear_gradient((1, 2, 3), (4, 5, 6))
    assert canvas.tobytes() == np.ascontiguousarray(canvas.to_array()).tobytes()
