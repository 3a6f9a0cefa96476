"""
Frame Scheduler

Drives frame production at a fixed logical rate. Cadence comes from
an injectable clock so tests can run without real time passing.
"""

import logging
import time
from typing import Callable, Iterator, Optional

from .errors import AbortedByCaller, InvalidConfig
from .models import FRAME_RATE, AnimationConfig, FrameState

logger = logging.getLogger(__name__)


class ImmediateClock:
    """Offline clock: every frame is due immediately."""

    def wait_for_frame(self, frame_index: int) -> None:
        return None


class RealtimeClock:
    """
    Paces frames against wall-clock time at ``fps``.

    Args:
        fps: Target frames per second
        monotonic: Time source (seconds)
        sleep: Sleep function
    """

    def __init__(
        self,
        fps: int = FRAME_RATE,
        monotonic: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.fps = fps
        self._monotonic = monotonic
        self._sleep = sleep
        self._start: Optional[float] = None

    def wait_for_frame(self, frame_index: int) -> None:
        if self._start is None:
            self._start = self._monotonic()
        due = self._start + frame_index / self.fps
        delay = due - self._monotonic()
        if delay > 0:
            self._sleep(delay)


class FrameScheduler:
    """
    Produces FrameStates 0..N-1 strictly in order.

    Args:
        fps: Logical frame rate
        clock: Object with ``wait_for_frame(frame_index)``
    """

    def __init__(self, fps: int = FRAME_RATE, clock=None):
        if fps <= 0:
            raise InvalidConfig(f"Frame rate must be positive, got {fps}")
        self.fps = fps
        self.clock = clock or ImmediateClock()

    def total_frames(self, config: AnimationConfig) -> int:
        return config.total_frames(self.fps)

    def frames(
        self,
        config: AnimationConfig,
        should_abort: Optional[Callable[[], bool]] = None,
    ) -> Iterator[FrameState]:
        """
        Lazily yield each frame of the clip.

        The generator is finite and single-use; a new run calls
        ``frames()`` again. The next frame is not produced until the
        consumer asks for it.

        Raises:
            AbortedByCaller: If ``should_abort`` returns True before a frame
        """
        total = self.total_frames(config)
        if total <= 0:
            raise InvalidConfig(f"Clip has no frames (duration={config.duration_seconds})")

        for frame_index in range(total):
            if should_abort is not None and should_abort():
                logger.info(f"Frame production aborted at frame {frame_index}/{total}")
                raise AbortedByCaller(f"Aborted at frame {frame_index} of {total}")
            self.clock.wait_for_frame(frame_index)
            yield FrameState(frame_index=frame_index, total_frames=total)

    def run(
        self,
        config: AnimationConfig,
        on_frame: Callable[[FrameState], None],
        on_complete: Callable[[], None],
        should_abort: Optional[Callable[[], bool]] = None,
    ) -> int:
        """
        Invoke ``on_frame`` for every frame, then ``on_complete`` once.

        Returns:
            Number of frames produced

        Raises:
            AbortedByCaller: If aborted; ``on_complete`` is not called
        """
        produced = 0
        for state in self.frames(config, should_abort=should_abort):
            on_frame(state)
            produced += 1
        on_complete()
        return produced
