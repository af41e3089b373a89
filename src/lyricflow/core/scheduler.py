"""
Frame scheduler.

Drives ``LyricEngine.tick`` at a fixed cadence and routes external events
(end of audio, stop requests) between ticks. In offline mode it also owns
time: after every frame the animation clock and the virtual audio transport
move forward by exactly one frame interval, which makes renders
deterministic and frame accurate.
"""

import logging
import time
from collections import defaultdict, deque
from typing import Callable

from lyricflow.core.engine import LyricEngine, PlaybackState

logger = logging.getLogger(__name__)

AUDIO_ENDED = "audio_ended"
STOP = "stop"


class FrameScheduler:
    """
    Cooperative tick loop around one engine.

    Args:
        engine: Engine to tick.
        fps: Target frame rate.
        offline: Advance the engine's clock and transport by ``1/fps`` after
            each tick instead of following the wall clock. Requires a clock
            and transport with an ``advance(dt)`` method
            (``FrameClock`` / ``VirtualTransport``).
    """

    def __init__(self, engine: LyricEngine, fps: int = 60, offline: bool = False):
        if offline and not (hasattr(engine.clock, "advance") and hasattr(engine.transport, "advance")):
            raise ValueError("Offline scheduling needs a FrameClock and a VirtualTransport")

        self.engine = engine
        self.fps = fps
        self.frame_interval = 1.0 / fps
        self.offline = offline

        self._handlers: dict[str, list[Callable[[], object]]] = defaultdict(list)
        self._events: deque[str] = deque()
        self._cancelled = False
        self._was_ended = engine.transport.ended

        self.on(AUDIO_ENDED, engine.on_audio_ended)
        self.on(STOP, engine.stop_recording)

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def on(self, event: str, handler: Callable[[], object]):
        """Register ``handler`` to run when ``event`` is dispatched."""
        self._handlers[event].append(handler)

    def post(self, event: str):
        """Queue an event; it is handled at the next tick boundary."""
        self._events.append(event)

    def cancel(self):
        """Stop ``run`` after the current tick."""
        self._cancelled = True

    def tick(self) -> PlaybackState | None:
        """Handle queued events, draw one frame, then handle what it caused."""
        self._dispatch()
        state = self.engine.tick()

        if self.offline:
            self.engine.clock.advance(self.frame_interval)
            self.engine.transport.advance(self.frame_interval)

        ended = self.engine.transport.ended
        if ended and not self._was_ended:
            self.post(AUDIO_ENDED)
        self._was_ended = ended

        self._dispatch()
        return state

    def run(
        self,
        max_frames: int | None = None,
        until: Callable[[], bool] | None = None,
    ) -> int:
        """
        Tick until cancelled, ``max_frames`` is reached or ``until()`` is true.

        Online runs sleep between ticks to hold the frame rate.

        Returns:
            Number of frames ticked.
        """
        frames = 0
        next_deadline = time.monotonic()

        while not self._cancelled:
            if max_frames is not None and frames >= max_frames:
                break
            if until is not None and until():
                break

            self.tick()
            frames += 1

            if not self.offline:
                next_deadline += self.frame_interval
                delay = next_deadline - time.monotonic()
                if delay > 0:
                    time.sleep(delay)
                else:
                    next_deadline = time.monotonic()

        logger.debug("Scheduler ran %d frames", frames)
        return frames

    def _dispatch(self):
        while self._events:
            event = self._events.popleft()
            handlers = self._handlers.get(event, [])
            if not handlers:
                logger.debug("No handler for event %r", event)
            for handler in handlers:
                handler()
