"""Frame rendering: colors, bokeh overlay, drawing surface, compositor."""

from lyricflow.render.bokeh import BokehField
from lyricflow.render.compositor import FrameCompositor
from lyricflow.render.surface import Canvas, FontBook

__all__ = ["BokehField", "FrameCompositor", "Canvas", "FontBook"]
