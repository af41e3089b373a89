"""
Frame compositor.

Draws one complete frame from time, cover image, lyric timeline, smoothed
index and settings:

    background gradient -> blurred cover backdrop -> bokeh -> cover panel
    -> intro title OR scrolling lyric stack

Every position is derived from the frame size and the lyrics offset, so the
same settings render the same layout at any resolution.
"""

from dataclasses import dataclass

from PIL import Image

from lyricflow.config import VisualSettings
from lyricflow.core.timeline import LyricTimeline
from lyricflow.render.bokeh import BokehField
from lyricflow.render.color import (
    RGB,
    cosine_ease,
    hex_to_rgb,
    interpolate_color,
    wrap_text,
)
from lyricflow.render.surface import Canvas, FontBook, blurred_backdrop, cover_sprite

# Layout is designed at 1080p; fixed pixel constants scale with height.
DESIGN_HEIGHT = 1080.0

BACKGROUND_END = (2, 6, 23)  # #020617
FALLBACK_TITLE = "Unknown Track"
PLACEHOLDER_LABEL = "No Cover Art"

VISIBLE_RADIUS = 5
LINE_HEIGHT = 2.2
WRAP_LINE_SPACING = 1.1
TITLE_SCALE = 1.5
TITLE_LINE_SPACING = 1.8
ACTIVE_SCALE_BOOST = 0.15
COLOR_BLEND_DISTANCE = 0.6
COLOR_BLEND_RATE = 1.667
FADE_START = 2.0
FADE_RATE = 0.4
BLUR_START = 1.2
BLUR_RATE = 2.0
GLOW_DISTANCE = 0.4
MIN_ALPHA = 0.01


@dataclass(frozen=True)
class Layout:
    """Panel geometry for one frame size."""

    width: int
    height: int
    unit: float
    left_panel_width: float
    right_panel_start: float
    right_panel_width: float
    vertical_center: float
    cover_size: float
    cover_x: float
    cover_y: float

    @classmethod
    def for_frame(cls, width: int, height: int, lyrics_x_offset: float) -> "Layout":
        unit = height / DESIGN_HEIGHT
        left = width * 0.4
        start = width * (lyrics_x_offset / 100.0)
        cover = min(left * 0.75, height * 0.55)
        return cls(
            width=width,
            height=height,
            unit=unit,
            left_panel_width=left,
            right_panel_start=start,
            right_panel_width=width - start - 50 * unit,
            vertical_center=height / 2,
            cover_size=cover,
            cover_x=(left - cover) / 2 + 60 * unit,
            cover_y=(height - cover) / 2,
        )


@dataclass(frozen=True)
class LineStyle:
    """Visual treatment of a lyric line at a given distance from the center."""

    scale: float
    color: RGB
    alpha: float
    blur: float
    glow: float
    weight: int


@dataclass(frozen=True)
class LyricPlacement:
    """A lyric cue resolved to draw positions."""

    index: int
    distance: float
    y: float
    style: LineStyle
    lines: tuple[str, ...]
    line_ys: tuple[float, ...]


def line_style(distance: float, settings: VisualSettings, lyrics_opacity: float = 1.0) -> LineStyle:
    """
    Scale, color, alpha, blur and glow for a line ``distance`` rows away.

    Args:
        distance: Signed offset from the smoothed index.
        settings: Current visual settings.
        lyrics_opacity: Global lyric fade factor (0-1).
    """
    d = abs(distance)

    scale = 1.0
    if d < 1.0:
        scale = 1.0 + ACTIVE_SCALE_BOOST * cosine_ease(d)

    color = hex_to_rgb(settings.secondary_color)
    if d < COLOR_BLEND_DISTANCE:
        color = interpolate_color(settings.primary_color, settings.secondary_color, d * COLOR_BLEND_RATE)

    alpha = 1.0
    if d > FADE_START:
        alpha = max(0.0, 1.0 - (d - FADE_START) * FADE_RATE)
    alpha *= lyrics_opacity

    blur = (d - BLUR_START) * BLUR_RATE if d > BLUR_START else 0.0

    glow = 0.0
    weight = 600
    if d < GLOW_DISTANCE:
        glow = settings.glow_intensity * (1 - d / GLOW_DISTANCE)
        weight = 700

    return LineStyle(scale=scale, color=color, alpha=alpha, blur=blur, glow=glow, weight=weight)


class FrameCompositor:
    """
    Renders frames into a Canvas.

    Holds only caches (fonts, blurred backdrop, cover sprite); the output of
    ``render`` depends on its arguments alone.
    """

    def __init__(self, fonts: FontBook | None = None, bokeh: BokehField | None = None):
        self.fonts = fonts or FontBook()
        self.bokeh = bokeh or BokehField()
        self._backdrop_cache: tuple | None = None
        self._cover_cache: tuple | None = None

    # --- layout (pure) ---

    def layout_lyrics(
        self,
        timeline: LyricTimeline,
        smooth_index: float,
        settings: VisualSettings,
        lyrics_opacity: float = 1.0,
        layout: Layout | None = None,
    ) -> list[LyricPlacement]:
        """
        Resolve visible cues to positions and styles.

        Cues whose alpha ends up at or below 0.01 are left out.
        """
        layout = layout or Layout.for_frame(
            settings.video_width, settings.video_height, settings.lyrics_x_offset
        )
        base = settings.font_size
        line_height = base * LINE_HEIGHT
        placements = []

        for i in timeline.window(smooth_index, VISIBLE_RADIUS):
            distance = i - smooth_index
            style = line_style(distance, settings, lyrics_opacity)
            if style.alpha <= MIN_ALPHA:
                continue

            y = layout.vertical_center + distance * line_height
            font = self.fonts.get(base, style.weight)
            lines = wrap_text(
                lambda s: Canvas.measure(s, font),
                timeline[i].text,
                layout.right_panel_width / style.scale,
            )

            # Wrapped rows are stacked symmetrically around the cue position
            spacing = base * WRAP_LINE_SPACING
            top = -(len(lines) - 1) * spacing / 2
            line_ys = tuple(y + (top + k * spacing) * style.scale for k in range(len(lines)))

            placements.append(LyricPlacement(
                index=i,
                distance=distance,
                y=y,
                style=style,
                lines=tuple(lines),
                line_ys=line_ys,
            ))

        return placements

    def layout_title(self, settings: VisualSettings, layout: Layout) -> list[tuple[str, float]]:
        """Wrapped intro title rows with their y positions."""
        size = settings.font_size * TITLE_SCALE
        font = self.fonts.get(size, 700)
        title = settings.song_title or FALLBACK_TITLE
        lines = wrap_text(lambda s: Canvas.measure(s, font), title, layout.right_panel_width)
        n = len(lines)
        return [
            (line, layout.vertical_center + (k - (n - 1) / 2) * (settings.font_size * TITLE_LINE_SPACING))
            for k, line in enumerate(lines)
        ]

    # --- drawing ---

    def render(
        self,
        canvas: Canvas,
        time: float,
        image: Image.Image | None,
        timeline: LyricTimeline,
        smooth_index: float,
        absolute_time: float,
        is_intro: bool,
        title_opacity: float,
        lyrics_opacity: float,
        settings: VisualSettings,
    ) -> Canvas:
        """
        Draw one full frame.

        Args:
            canvas: Target surface, resized to the settings' video size.
            time: Logical playback time in seconds.
            image: Cover art or None for the placeholder tile.
            timeline: Lyric cues.
            smooth_index: Smoothed (fractional) active index.
            absolute_time: Wall-clock animation time, drives the bokeh.
            is_intro: Draw the title card instead of lyrics.
            title_opacity: Title fade factor (0-1).
            lyrics_opacity: Lyric stack fade factor (0-1).
            settings: Visual settings snapshot.

        Returns:
            The canvas, for chaining.
        """
        canvas.resize(settings.video_width, settings.video_height)
        width, height = canvas.size
        layout = Layout.for_frame(width, height, settings.lyrics_x_offset)

        canvas.clear()
        canvas.fill_linear_gradient(hex_to_rgb(settings.background_color), BACKGROUND_END)

        if image is not None:
            self._draw_backdrop(canvas, image)

        if settings.bokeh.enabled:
            self.bokeh.draw(canvas, absolute_time, settings.bokeh)

        self._draw_cover(canvas, image, layout)

        if is_intro:
            self._draw_title(canvas, settings, layout, title_opacity)
        else:
            self._draw_lyrics(canvas, timeline, smooth_index, settings, layout, lyrics_opacity)

        return canvas

    def _draw_backdrop(self, canvas: Canvas, image: Image.Image):
        w, h = canvas.size
        size = (int(w * 1.4), int(h * 1.4))
        cached = self._backdrop_cache
        if cached is None or cached[0] is not image or cached[1] != size:
            layer = blurred_backdrop(image, size, blur=60.0, saturation=1.5)
            self._backdrop_cache = (image, size, layer)
        canvas.draw_image(self._backdrop_cache[2], -w * 0.2, -h * 0.2, alpha=0.15)

    def _draw_cover(self, canvas: Canvas, image: Image.Image | None, layout: Layout):
        u = layout.unit
        radius = 24 * u

        if image is None:
            canvas.fill_rounded_rect(
                layout.cover_x, layout.cover_y, layout.cover_size, layout.cover_size,
                radius, (255, 255, 255, 13),
            )
            canvas.draw_text(
                PLACEHOLDER_LABEL,
                layout.cover_x + layout.cover_size / 2,
                layout.cover_y + layout.cover_size / 2,
                self.fonts.get(32 * u, 500),
                (255, 255, 255),
                alpha=0.3,
                anchor="mm",
            )
            return

        size = int(round(layout.cover_size))
        cached = self._cover_cache
        if cached is None or cached[0] is not image or cached[1] != (size, u):
            sprite, pad = cover_sprite(
                image,
                size,
                radius,
                shadow_blur=40 * u,
                shadow_offset=20 * u,
                border_width=max(1, int(round(4 * u))),
            )
            self._cover_cache = (image, (size, u), sprite, pad)
        _, _, sprite, pad = self._cover_cache
        canvas.draw_image(sprite, layout.cover_x - pad, layout.cover_y - pad)

    def _draw_title(self, canvas: Canvas, settings: VisualSettings, layout: Layout, opacity: float):
        if opacity <= MIN_ALPHA:
            return
        color = hex_to_rgb(settings.primary_color)
        font = self.fonts.get(settings.font_size * TITLE_SCALE, 700)
        for line, y in self.layout_title(settings, layout):
            canvas.draw_text(
                line,
                layout.right_panel_start,
                y,
                font,
                color,
                alpha=opacity,
                glow_color=color,
                glow=settings.glow_intensity * 1.5,
            )

    def _draw_lyrics(
        self,
        canvas: Canvas,
        timeline: LyricTimeline,
        smooth_index: float,
        settings: VisualSettings,
        layout: Layout,
        lyrics_opacity: float,
    ):
        glow_color = hex_to_rgb(settings.primary_color)
        for placement in self.layout_lyrics(timeline, smooth_index, settings, lyrics_opacity, layout):
            style = placement.style
            font = self.fonts.get(settings.font_size * style.scale, style.weight)
            for text, y in zip(placement.lines, placement.line_ys):
                canvas.draw_text(
                    text,
                    layout.right_panel_start,
                    y,
                    font,
                    style.color,
                    alpha=style.alpha,
                    blur=style.blur,
                    glow_color=glow_color if style.glow > 0 else None,
                    glow=style.glow,
                )
