"""
Procedural bokeh light spots.

Fifteen soft, drifting light spots seeded only by their index, so the same
(width, height, time, settings) always gives the same frame. Motion runs on
the wall-clock animation time and keeps going while audio is paused.
"""

import math
from dataclasses import dataclass

from lyricflow.config import BokehSettings
from lyricflow.render.color import RGB, hex_to_rgb, hsl_to_rgb

PARTICLE_COUNT = 15


@dataclass(frozen=True)
class BokehParticle:
    """One draw command: a radial gradient spot."""

    x: float
    y: float
    radius: float
    alpha: float
    color: RGB


class BokehField:
    """Deterministic generator and painter for the light-spot overlay."""

    def __init__(self, count: int = PARTICLE_COUNT):
        self.count = count

    @staticmethod
    def seed(index: int) -> int:
        return (index * 1337) % 1000

    def generate(
        self,
        width: int,
        height: int,
        absolute_time: float,
        config: BokehSettings,
    ) -> list[BokehParticle]:
        """
        Compute all particles for one frame.

        Args:
            width: Frame width in pixels.
            height: Frame height in pixels.
            absolute_time: Monotonic animation time in seconds.
            config: Bokeh settings (color and size modes).

        Returns:
            ``count`` particles in draw order.
        """
        time_ms = absolute_time * 1000.0
        particles = []

        for i in range(self.count):
            seed = self.seed(i)
            speed = 0.0002 + (seed % 100) * 0.00001
            t = time_ms * speed + seed

            # Alternate left/right to keep the text column clear
            side = -1 if i % 2 == 0 else 1
            x = width / 2 + (width / 2.5) * side + math.sin(t) * (width * 0.2)
            y = height * (0.2 + ((seed % 10) / 10) * 0.8) + math.cos(t * 1.3) * (height * 0.15)

            if config.auto_size:
                radius = 150 + math.sin(t * 2) * 80 + (seed % 100)
            else:
                base = 50 + config.scale * 4  # 0-100 -> 50-450 px
                radius = base + math.sin(t * 3) * 20

            alpha = 0.15 + math.sin(t * 1.7) * 0.05

            if config.auto_color:
                color = hsl_to_rgb((t * 50 + seed) % 360, 0.8, 0.6)
            else:
                color = hex_to_rgb(config.color)

            particles.append(BokehParticle(x=x, y=y, radius=radius, alpha=alpha, color=color))

        return particles

    def draw(self, canvas, absolute_time: float, config: BokehSettings):
        """Paint the overlay onto ``canvas`` with screen blending."""
        for p in self.generate(canvas.width, canvas.height, absolute_time, config):
            canvas.radial_gradient(p.x, p.y, p.radius, p.color, p.alpha, mode="screen")
