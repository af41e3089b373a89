"""
Smoothed scroll position for the lyric stack.
"""

import math

# Per-tick damping at the nominal 60 Hz cadence.
DAMPING = 0.1
NOMINAL_RATE = 60.0
# Continuous decay rate that reproduces DAMPING for a 1/60 s step.
DECAY_RATE = -math.log(1.0 - DAMPING) * NOMINAL_RATE

SEEK_SNAP = 10.0
SETTLE_SNAP = 0.001


class ScrollInterpolator:
    """
    Turns the discrete active lyric index into a lagging float position.

    Large jumps (a seek) snap instantly; tiny residuals snap to stop
    float drift; everything in between decays exponentially.
    """

    def __init__(self, smooth_index: float = 0.0):
        self.smooth_index = float(smooth_index)

    def reset(self, value: float = 0.0):
        self.smooth_index = float(value)

    @staticmethod
    def damping_for(dt: float | None) -> float:
        """Blend factor for a tick of ``dt`` seconds (fixed 0.1 if None)."""
        if dt is None:
            return DAMPING
        if dt <= 0:
            return 0.0
        return 1.0 - math.exp(-DECAY_RATE * dt)

    def step(self, active_index: int, dt: float | None = None) -> float:
        """
        Advance one tick toward ``active_index``.

        Args:
            active_index: Current discrete index from the timeline.
            dt: Seconds since the previous tick. None keeps the fixed
                per-tick factor that assumes a steady 60 Hz.

        Returns:
            The new smoothed index.
        """
        diff = active_index - self.smooth_index
        if abs(diff) > SEEK_SNAP or abs(diff) < SETTLE_SNAP:
            self.smooth_index = float(active_index)
        else:
            self.smooth_index += diff * self.damping_for(dt)
        return self.smooth_index
