"""
Per-player countdown clock.

The clock does not own a thread or a timer itself: it asks a Scheduler for a periodic callback, and every `tick()`
takes one interval off the active color's remaining time. Reaching zero stops the clock and reports the color that
ran out of time.
"""

import asyncio
import logging
import math
from collections.abc import Callable
from typing import Any, Optional, Protocol

from chessync.core.exceptions import ClockUnavailableError
from chessync.core.shared_types import Color

logger = logging.getLogger(__name__)

TickCallback = Callable[[float, float], None]
TimeoutCallback = Callable[[Color], None]


class Cancellable(Protocol):
    def cancel(self) -> Any: ...


class Scheduler(Protocol):
    """Anything that can call `callback` every `interval` seconds until cancelled"""

    def call_every(self, interval: float, callback: Callable[[], None]) -> Cancellable: ...


class AsyncioScheduler:
    """Periodic callbacks as asyncio tasks (on the running loop unless a loop is given)."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    def call_every(self, interval: float, callback: Callable[[], None]) -> asyncio.Task:
        loop = self._loop
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError as exc:
                raise ClockUnavailableError("The timer needs a running asyncio event loop.") from exc

        async def _repeat() -> None:
            while True:
                await asyncio.sleep(interval)
                callback()

        task = loop.create_task(_repeat())
        task.add_done_callback(_log_failure)
        return task


def _log_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Periodic callback failed: %s", exc, exc_info=exc)


def format_time(seconds: float) -> str:
    """m:ss, partial seconds round up"""
    minutes, secs = divmod(math.ceil(max(0.0, seconds)), 60)
    return f"{minutes}:{secs:02d}"


class GameClock:
    def __init__(
        self,
        scheduler: Scheduler,
        time_per_player: int,
        interval: float = 1.0,
        on_tick: Optional[TickCallback] = None,
        on_timeout: Optional[TimeoutCallback] = None,
    ) -> None:
        self.scheduler = scheduler
        self.time_per_player = time_per_player
        self.interval = interval
        self.on_tick = on_tick
        self.on_timeout = on_timeout
        self.remaining: dict[Color, float] = {}
        self.active_color = Color.WHITE
        self._task: Optional[Cancellable] = None
        self.reset()

    @property
    def is_running(self) -> bool:
        return self._task is not None

    def reset(self, time_per_player: Optional[int] = None) -> None:
        """Stop, and give both players their full time again."""
        self.stop()
        if time_per_player is not None:
            self.time_per_player = time_per_player
        self.remaining = {color: float(self.time_per_player) for color in Color}
        self.active_color = Color.WHITE

    def start(self, active_color: Color) -> None:
        # never two live tasks: a second start replaces the first
        self.stop()
        self.active_color = active_color
        self._task = self.scheduler.call_every(self.interval, self.tick)
        logger.debug("Clock started, %s to move", active_color)

    def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        self._task = None
        logger.debug("Clock stopped")

    def switch_to(self, color: Color) -> None:
        self.active_color = color

    def tick(self) -> None:
        if not self.is_running:
            return

        color = self.active_color
        self.remaining[color] = max(0.0, round(self.remaining[color] - self.interval, 6))
        try:
            if self.on_tick is not None:
                self.on_tick(self.remaining[Color.WHITE], self.remaining[Color.BLACK])

            if self.remaining[color] <= 0:
                self.stop()
                logger.info("%s ran out of time", color)
                if self.on_timeout is not None:
                    self.on_timeout(color)
        except Exception:
            # failing callbacks stop the clock
            self.stop()
            raise
