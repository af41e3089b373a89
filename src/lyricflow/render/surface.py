"""
Raster drawing surface.

A small 2D canvas over a Pillow RGB image exposing the primitives the
compositor needs: gradient fills, blurred and cover-fitted image draws,
screen-blended radial light spots and glowing text. Pixel math that Pillow
has no primitive for is done in numpy.
"""

import logging
import math

import numpy as np
from PIL import Image, ImageDraw, ImageEnhance, ImageFilter, ImageFont, ImageOps

logger = logging.getLogger(__name__)

RGB = tuple[int, int, int]
RGBA = tuple[int, int, int, int]


class FontBook:
    """
    Resolves (size, weight) to a Pillow font, with caching.

    Weights of 700 and above use the bold face. When no TrueType file can be
    found Pillow's bundled scalable default font is used.
    """

    REGULAR_CANDIDATES = (
        "DejaVuSans.ttf",
        "LiberationSans-Regular.ttf",
        "Arial.ttf",
        "arial.ttf",
    )
    BOLD_CANDIDATES = (
        "DejaVuSans-Bold.ttf",
        "LiberationSans-Bold.ttf",
        "Arial Bold.ttf",
        "arialbd.ttf",
    )

    def __init__(self, regular_path: str | None = None, bold_path: str | None = None):
        self._regular = ([str(regular_path)] if regular_path else []) + list(self.REGULAR_CANDIDATES)
        self._bold = ([str(bold_path)] if bold_path else []) + list(self.BOLD_CANDIDATES)
        self._cache: dict[tuple[int, bool], ImageFont.FreeTypeFont] = {}

    def get(self, size: float, weight: int = 400):
        px = max(1, int(round(size)))
        bold = weight >= 700
        key = (px, bold)
        if key not in self._cache:
            self._cache[key] = self._load(px, bold)
        return self._cache[key]

    def _load(self, px: int, bold: bool):
        for name in self._bold if bold else self._regular:
            try:
                return ImageFont.truetype(name, px)
            except OSError:
                continue
        logger.debug("No TrueType font found, using Pillow default at %dpx", px)
        return ImageFont.load_default(size=px)


def blurred_backdrop(
    image: Image.Image,
    size: tuple[int, int],
    blur: float = 60.0,
    saturation: float = 1.5,
    downsample: int = 4,
) -> Image.Image:
    """
    Stretch, heavily blur and saturate an image for use as an ambient layer.

    The blur runs on a downsampled copy; at this radius the result is
    visually the same and an order of magnitude cheaper.
    """
    w, h = max(1, int(size[0])), max(1, int(size[1]))
    ds = max(1, int(downsample))
    small = image.convert("RGB").resize(
        (max(1, w // ds), max(1, h // ds)), Image.BILINEAR
    )
    if blur > 0:
        small = small.filter(ImageFilter.GaussianBlur(radius=blur / ds))
    if saturation != 1.0:
        small = ImageEnhance.Color(small).enhance(saturation)
    return small.resize((w, h), Image.BILINEAR)


def rounded_mask(size: tuple[int, int], radius: float) -> Image.Image:
    mask = Image.new("L", size, 0)
    ImageDraw.Draw(mask).rounded_rectangle(
        (0, 0, size[0] - 1, size[1] - 1), radius=radius, fill=255
    )
    return mask


def cover_sprite(
    image: Image.Image,
    size: int,
    radius: float,
    shadow: RGBA = (0, 0, 0, 153),
    shadow_blur: float = 40.0,
    shadow_offset: float = 20.0,
    border: RGBA = (255, 255, 255, 38),
    border_width: int = 4,
) -> tuple[Image.Image, int]:
    """
    Build the cover-art panel as one RGBA sprite.

    The image is cover-fitted into a ``size`` square with rounded corners,
    a soft drop shadow below and a thin translucent border on top.

    Returns:
        (sprite, pad) where ``pad`` is how far the sprite extends past the
        panel's top-left corner.
    """
    size = max(1, int(size))
    pad = int(math.ceil(shadow_blur * 1.5 + abs(shadow_offset))) + border_width
    full = size + 2 * pad
    sprite = Image.new("RGBA", (full, full), shadow[:3] + (0,))

    if shadow[3] > 0:
        off = int(round(shadow_offset))
        shadow_layer = Image.new("RGBA", (full, full), shadow[:3] + (0,))
        ImageDraw.Draw(shadow_layer).rounded_rectangle(
            (pad, pad + off, pad + size - 1, pad + off + size - 1),
            radius=radius,
            fill=shadow,
        )
        # shadowBlur is twice the gaussian sigma
        sprite = shadow_layer.filter(ImageFilter.GaussianBlur(radius=shadow_blur / 2))

    fitted = ImageOps.fit(image.convert("RGB"), (size, size), Image.LANCZOS).convert("RGBA")
    fitted.putalpha(rounded_mask((size, size), radius))
    sprite.alpha_composite(fitted, dest=(pad, pad))

    if border_width > 0:
        ImageDraw.Draw(sprite).rounded_rectangle(
            (pad, pad, pad + size - 1, pad + size - 1),
            radius=radius,
            outline=border,
            width=border_width,
        )
    return sprite, pad


class Canvas:
    """
    Opaque RGB drawing surface of a fixed pixel size.

    All coordinates are in pixels, origin top-left.
    """

    def __init__(self, width: int, height: int):
        self.width = int(width)
        self.height = int(height)
        self.image = Image.new("RGB", (max(self.width, 1), max(self.height, 1)))
        self._gradient_key = None
        self._gradient: Image.Image | None = None

    @property
    def size(self) -> tuple[int, int]:
        return (self.width, self.height)

    @property
    def is_valid(self) -> bool:
        return self.width > 0 and self.height > 0

    def resize(self, width: int, height: int):
        """Reallocate the backing image if the frame size changed."""
        if (int(width), int(height)) == self.size:
            return
        self.width = int(width)
        self.height = int(height)
        self.image = Image.new("RGB", (max(self.width, 1), max(self.height, 1)))
        self._gradient_key = None
        self._gradient = None

    def clear(self):
        self.image.paste((0, 0, 0), (0, 0, self.image.width, self.image.height))

    # --- fills ---

    def fill_linear_gradient(self, start: RGB, end: RGB):
        """Fill with a diagonal gradient from the top-left to the bottom-right corner."""
        key = (self.size, tuple(start), tuple(end))
        if key != self._gradient_key:
            w, h = self.width, self.height
            x = np.arange(w, dtype=np.float32)
            y = np.arange(h, dtype=np.float32)
            # Projection of each pixel onto the (0,0)->(w,h) axis
            t = (x[np.newaxis, :] * w + y[:, np.newaxis] * h) / float(w * w + h * h)
            t = np.clip(t, 0.0, 1.0)[:, :, np.newaxis]
            a = np.asarray(start, dtype=np.float32)
            b = np.asarray(end, dtype=np.float32)
            rgb = a * (1.0 - t) + b * t
            self._gradient = Image.fromarray(np.round(rgb).astype(np.uint8))
            self._gradient_key = key
        self.image.paste(self._gradient, (0, 0))

    def fill_rounded_rect(
        self,
        x: float,
        y: float,
        width: float,
        height: float,
        radius: float,
        fill: RGBA,
    ):
        w, h = max(1, int(round(width))), max(1, int(round(height)))
        layer = Image.new("RGBA", (w, h), fill[:3] + (0,))
        ImageDraw.Draw(layer).rounded_rectangle((0, 0, w - 1, h - 1), radius=radius, fill=fill)
        self.draw_image(layer, x, y)

    def radial_gradient(
        self,
        cx: float,
        cy: float,
        radius: float,
        color: RGB,
        alpha: float,
        mode: str = "screen",
    ):
        """
        Draw a soft spot fading linearly from ``alpha`` at the center to 0.

        Args:
            mode: "screen" lightens what is underneath; "normal" paints over.
        """
        if radius <= 0 or alpha <= 0:
            return
        x0 = max(0, int(math.floor(cx - radius)))
        y0 = max(0, int(math.floor(cy - radius)))
        x1 = min(self.width, int(math.ceil(cx + radius)))
        y1 = min(self.height, int(math.ceil(cy + radius)))
        if x0 >= x1 or y0 >= y1:
            return

        region = np.asarray(self.image.crop((x0, y0, x1, y1)), dtype=np.float32) / 255.0
        xs = np.arange(x0, x1, dtype=np.float32) + 0.5 - cx
        ys = np.arange(y0, y1, dtype=np.float32) + 0.5 - cy
        dist = np.sqrt(xs[np.newaxis, :] ** 2 + ys[:, np.newaxis] ** 2)
        a = (np.clip(1.0 - dist / radius, 0.0, 1.0) * min(alpha, 1.0))[:, :, np.newaxis]

        c = np.asarray(color, dtype=np.float32) / 255.0
        if mode == "screen":
            # Screen blend: 1 - (1-a)(1-b)
            target = 1.0 - (1.0 - region) * (1.0 - c)
        else:
            target = np.broadcast_to(c, region.shape)
        out = region + (target - region) * a

        self.image.paste(
            Image.fromarray(np.round(out * 255.0).astype(np.uint8)),
            (x0, y0),
        )

    # --- images ---

    def draw_image(self, layer: Image.Image, x: float, y: float, alpha: float = 1.0):
        """Composite an RGB or RGBA image at (x, y) with a global alpha."""
        if alpha <= 0:
            return
        if layer.mode == "RGBA":
            mask = layer.getchannel("A")
            if alpha < 1.0:
                mask = mask.point(lambda v: int(round(v * alpha)))
            rgb = layer.convert("RGB")
        else:
            rgb = layer.convert("RGB")
            mask = None if alpha >= 1.0 else Image.new("L", rgb.size, int(round(alpha * 255)))
        self.image.paste(rgb, (int(round(x)), int(round(y))), mask)

    # --- text ---

    @staticmethod
    def measure(text: str, font) -> float:
        return float(font.getlength(text))

    def draw_text(
        self,
        text: str,
        x: float,
        y: float,
        font,
        color: RGB,
        alpha: float = 1.0,
        anchor: str = "lm",
        blur: float = 0.0,
        glow_color: RGB | None = None,
        glow: float = 0.0,
    ):
        """
        Draw one line of text.

        Args:
            anchor: Pillow text anchor; "lm" is left/middle, "mm" centered.
            blur: Gaussian blur applied to the rendered text, in pixels.
            glow_color: Color of a soft halo drawn behind the text.
            glow: Halo size, same units as a canvas ``shadowBlur``.
        """
        if not text or alpha <= 0:
            return

        left, top, right, bottom = font.getbbox(text, anchor=anchor)
        halo = glow if glow_color is not None else 0.0
        pad = int(math.ceil(max(blur * 3.0, halo * 1.5))) + 2
        size = (int(right - left) + 2 * pad, int(bottom - top) + 2 * pad)
        origin = (pad - left, pad - top)

        layer = Image.new("RGBA", size, tuple(color) + (0,))
        ImageDraw.Draw(layer).text(origin, text, font=font, fill=tuple(color) + (255,), anchor=anchor)

        if halo > 0:
            halo_layer = Image.new("RGBA", size, tuple(glow_color) + (0,))
            ImageDraw.Draw(halo_layer).text(
                origin, text, font=font, fill=tuple(glow_color) + (255,), anchor=anchor
            )
            halo_layer = halo_layer.filter(ImageFilter.GaussianBlur(radius=halo / 2))
            layer = Image.alpha_composite(halo_layer, layer)

        if blur > 0:
            layer = layer.filter(ImageFilter.GaussianBlur(radius=blur))

        self.draw_image(layer, x + left - pad, y + top - pad, alpha)

    # --- export ---

    def to_array(self) -> np.ndarray:
        """(H, W, 3) uint8 copy of the current pixels."""
        return np.array(self.image, dtype=np.uint8)

    def tobytes(self) -> bytes:
        return self.image.tobytes()

