"""
Redraw Scheduler
================

The single consumer loop. It takes broker events, feeds each line to its
source's content tree and redraws at most once per ``min_refresh`` seconds.

Per cycle the scheduler is either IDLE or REDRAW_OWED. An event arriving
inside the refresh interval leaves a redraw owed and arms a short timer; the
timer firing performs it. Bursts of lines therefore collapse into one frame,
and an owed frame is always drawn eventually.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from enum import Enum
from typing import Callable, Optional, Sequence

from .broker import Broker, LineEvent
from .patterns import PatternSet
from .sources import Source

logger = logging.getLogger(__name__)

DEFAULT_MIN_REFRESH = 0.004
FORCED_EXIT_STATUS = 130


class DrawMode(Enum):
    ONGOING = "ongoing"
    FINAL = "final"


class SchedulerState(Enum):
    IDLE = "idle"
    REDRAW_OWED = "redraw-owed"


def _hard_exit() -> None:
    os._exit(FORCED_EXIT_STATUS)


class InterruptToken:
    """
    Counts interrupt signals.

    The first one requests a graceful stop; the second calls ``force_exit``
    (by default an immediate process exit). Any later ones are ignored.
    """

    def __init__(self, force_exit: Optional[Callable[[], None]] = None):
        self._count = 0
        self._stop = asyncio.Event()
        self._force_exit = force_exit or _hard_exit

    @property
    def count(self) -> int:
        return self._count

    @property
    def stop_requested(self) -> bool:
        return self._stop.is_set()

    def interrupt(self) -> None:
        self._count += 1
        if self._count == 1:
            logger.debug("interrupt received, stopping")
            self._stop.set()
        elif self._count == 2:
            logger.warning("interrupted again during shutdown, exiting immediately")
            self._force_exit()

    async def wait(self) -> None:
        await self._stop.wait()


class RedrawScheduler:
    def __init__(
        self,
        sources: Sequence[Source],
        patterns: PatternSet,
        broker: Broker,
        interrupt: InterruptToken,
        draw: Optional[Callable[[DrawMode], None]] = None,
        min_refresh: float = DEFAULT_MIN_REFRESH,
        interline_delay: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.sources = sources
        self.patterns = patterns
        self.broker = broker
        self.interrupt = interrupt
        self.draw = draw
        self.min_refresh = min_refresh
        self.interline_delay = interline_delay
        self.clock = clock

        self.state = SchedulerState.IDLE
        self.last_draw: Optional[float] = None
        self.frames = 0
        self.lines = 0

    # -- state transitions --------------------------------------------------

    def handle(self, event: LineEvent) -> None:
        source = self.sources[event.source_id]
        if event.ok:
            assert event.line is not None
            source.append_line(event.line, self.patterns)
            self.lines += 1
        else:
            logger.warning("read error on %s: %s", source.description, event.error)
            source.read_error = event.error

    def _until_due(self) -> float:
        if self.last_draw is None:
            return 0.0
        return max(self.last_draw + self.min_refresh - self.clock(), 0.0)

    def _redraw(self, mode: DrawMode) -> None:
        assert self.draw is not None
        self.draw(mode)
        self.last_draw = self.clock()
        self.frames += 1
        self.state = SchedulerState.IDLE

    def after_event(self) -> None:
        if self.draw is None:
            return
        if self._until_due() <= 0:
            self._redraw(DrawMode.ONGOING)
        else:
            self.state = SchedulerState.REDRAW_OWED

    def on_timer(self) -> None:
        if self.state is SchedulerState.REDRAW_OWED and self._until_due() <= 0:
            self._redraw(DrawMode.ONGOING)

    # -- loop ---------------------------------------------------------------

    async def _pause(self, stop: asyncio.Future[None]) -> None:
        """Sleep for the interline delay, or less when a stop arrives meanwhile."""
        pause = asyncio.ensure_future(asyncio.sleep(self.interline_delay))
        try:
            await asyncio.wait({pause, stop}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            pause.cancel()

    async def run(self) -> bool:
        """
        Consume events until the broker is exhausted or an interrupt arrives,
        then draw the final frame. Returns True when stopped by an interrupt.
        """
        next_event = asyncio.ensure_future(self.broker.next())
        stop = asyncio.ensure_future(self.interrupt.wait())
        interrupted = False
        try:
            while True:
                waiters = {next_event, stop}
                timer = None
                if self.state is SchedulerState.REDRAW_OWED:
                    timer = asyncio.ensure_future(asyncio.sleep(self._until_due()))
                    waiters.add(timer)
                try:
                    done, _ = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
                finally:
                    if timer is not None and not timer.done():
                        timer.cancel()

                if stop in done:
                    interrupted = True
                    break

                if next_event in done:
                    event = next_event.result()
                    if event is None:
                        break
                    self.handle(event)
                    self.after_event()
                    next_event = asyncio.ensure_future(self.broker.next())
                    if self.interline_delay > 0:
                        await self._pause(stop)
                elif timer is not None and timer in done:
                    self.on_timer()
        finally:
            for task in (next_event, stop):
                if not task.done():
                    task.cancel()
            await asyncio.gather(next_event, stop, return_exceptions=True)

        if self.draw is not None:
            self._redraw(DrawMode.FINAL)
        return interrupted
