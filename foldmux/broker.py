"""
Broker
======

Fans lines from every source stream into one ordered queue.

Each stream gets its own reader task. A task pushes ``LineEvent`` objects onto
the shared unbounded queue and stops on end of stream, on the first read error
(forwarded once as an event) or when its private cancel event is set. Lines of
one stream keep their order; streams interleave in arrival order.

Usage:
    broker = Broker()
    broker.add_reader(0, proc.stdout, "stdout")
    broker.close()                      # no more readers from here on
    while (event := await broker.next()) is not None:
        ...
    await broker.shutdown()
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol

logger = logging.getLogger(__name__)


class LineStream(Protocol):
    async def readline(self) -> bytes: ...


class BrokerClosed(RuntimeError):
    """A reader was added after the broker stopped accepting producers."""


@dataclass(frozen=True)
class LineEvent:
    source_id: int
    line: Optional[str] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class ReaderHandle:
    source_id: int
    name: str
    cancel: asyncio.Event = field(default_factory=asyncio.Event)
    task: Optional["asyncio.Task[None]"] = None

    @property
    def live(self) -> bool:
        return self.task is not None and not self.task.done()

    def stop(self) -> None:
        self.cancel.set()


def decode_line(raw: bytes) -> str:
    if raw.endswith(b"\n"):
        raw = raw[:-1]
        if raw.endswith(b"\r"):
            raw = raw[:-1]
    return raw.decode("utf-8", errors="replace")


class Broker:
    def __init__(self) -> None:
        self._queue: asyncio.Queue[Optional[LineEvent]] = asyncio.Queue()
        self._readers: list[ReaderHandle] = []
        self._live = 0
        self._closed = False
        self._end_queued = False
        self._drained = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def readers(self) -> tuple[ReaderHandle, ...]:
        return tuple(self._readers)

    @property
    def live_readers(self) -> int:
        return self._live

    # -- producers ----------------------------------------------------------

    def add_reader(self, source_id: int, stream: LineStream, name: str = "") -> ReaderHandle:
        """Start a reader task for ``stream``. Must run inside the event loop."""
        if self._closed:
            raise BrokerClosed(f"cannot add reader {name or source_id!r} to a closed broker")
        handle = ReaderHandle(source_id, name)
        self._live += 1
        handle.task = asyncio.get_running_loop().create_task(self._read_loop(handle, stream))
        self._readers.append(handle)
        return handle

    async def _read_loop(self, handle: ReaderHandle, stream: LineStream) -> None:
        cancelled = asyncio.ensure_future(handle.cancel.wait())
        reason = "end of stream"
        try:
            while True:
                read = asyncio.ensure_future(stream.readline())
                done, _ = await asyncio.wait(
                    {read, cancelled}, return_when=asyncio.FIRST_COMPLETED
                )
                if cancelled in done:
                    read.cancel()
                    await asyncio.gather(read, return_exceptions=True)
                    reason = "cancelled"
                    break

                try:
                    raw = read.result()
                except (OSError, ValueError) as exc:
                    self._queue.put_nowait(LineEvent(handle.source_id, error=exc))
                    reason = f"read error: {exc}"
                    break

                if not raw:
                    break
                self._queue.put_nowait(LineEvent(handle.source_id, decode_line(raw)))
        finally:
            cancelled.cancel()
            await asyncio.gather(cancelled, return_exceptions=True)
            logger.debug("reader %s/%s stopped: %s", handle.source_id, handle.name, reason)
            self._live -= 1
            self._queue_end_if_exhausted()

    def _queue_end_if_exhausted(self) -> None:
        if self._closed and self._live == 0 and not self._end_queued:
            self._end_queued = True
            self._queue.put_nowait(None)

    # -- consumer -----------------------------------------------------------

    def close(self) -> None:
        """Stop accepting readers. ``next`` returns None once all of them finish."""
        self._closed = True
        self._queue_end_if_exhausted()

    async def next(self) -> Optional[LineEvent]:
        """Next event, or None when the broker is closed and every reader has stopped."""
        if self._drained:
            return None
        event = await self._queue.get()
        if event is None:
            self._drained = True
        return event

    async def shutdown(self) -> None:
        """Close, signal every live reader to stop and wait for all of them."""
        self.close()
        live = [h for h in self._readers if h.live]
        logger.debug("stopping %d live reader(s)", len(live))
        for handle in live:
            handle.stop()
        await asyncio.gather(*(h.task for h in self._readers if h.task is not None))
