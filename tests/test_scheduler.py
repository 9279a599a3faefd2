import asyncio
import time

from foldmux.broker import Broker, LineEvent
from foldmux.content import Closed, PlainRun
from foldmux.scheduler import DrawMode, InterruptToken, RedrawScheduler, SchedulerState
from foldmux.sources import Source


class Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def make_scheduler(patterns, draw, sources=None, clock=None, **kwargs):
    scheduler = RedrawScheduler(
        sources or [Source("s0")],
        patterns,
        broker=None,
        interrupt=InterruptToken(force_exit=lambda: None),
        draw=draw,
        clock=clock or Clock(),
        **kwargs,
    )
    return scheduler


# -- interrupt token ---------------------------------------------------------

def test_first_interrupt_stops_second_forces_exit_once():
    forced = []
    token = InterruptToken(force_exit=lambda: forced.append(True))
    assert not token.stop_requested

    token.interrupt()
    assert token.stop_requested
    assert forced == []

    token.interrupt()
    token.interrupt()
    assert forced == [True]
    assert token.count == 3


# -- state machine -----------------------------------------------------------

def test_redraw_is_owed_inside_the_refresh_interval(patterns):
    frames = []
    clock = Clock()
    scheduler = make_scheduler(patterns, frames.append, clock=clock, min_refresh=0.004)

    scheduler.after_event()
    assert frames == [DrawMode.ONGOING]
    assert scheduler.state is SchedulerState.IDLE

    clock.now = 0.001
    scheduler.after_event()
    assert scheduler.state is SchedulerState.REDRAW_OWED
    assert len(frames) == 1

    clock.now = 0.002
    scheduler.on_timer()
    assert scheduler.state is SchedulerState.REDRAW_OWED

    clock.now = 0.005
    scheduler.on_timer()
    assert scheduler.state is SchedulerState.IDLE
    assert len(frames) == 2


def test_timer_without_owed_redraw_does_nothing(patterns):
    frames = []
    scheduler = make_scheduler(patterns, frames.append)
    scheduler.on_timer()
    assert frames == []


def test_events_mutate_their_source(patterns):
    sources = [Source("a"), Source("b")]
    scheduler = make_scheduler(patterns, None, sources=sources)
    for event in [
        LineEvent(1, "BEGIN(x)"),
        LineEvent(0, "plain"),
        LineEvent(1, "END(y)"),
    ]:
        scheduler.handle(event)
    assert sources[0].content.nodes == [PlainRun(["plain"])]
    assert sources[1].content.nodes[0].state == Closed("y", "END(y)")
    assert scheduler.lines == 3


def test_error_event_is_recorded_on_its_source(patterns):
    sources = [Source("a")]
    scheduler = make_scheduler(patterns, None, sources=sources)
    error = OSError("gone")
    scheduler.handle(LineEvent(0, error=error))
    assert sources[0].read_error is error
    assert sources[0].content.nodes == []


# -- loop --------------------------------------------------------------------

def run_loop(patterns, data, min_refresh, draw, interrupt_after=None, eof=True, **kwargs):
    async def scenario():
        broker = Broker()
        stream = asyncio.StreamReader()
        stream.feed_data(data)
        if eof:
            stream.feed_eof()
        broker.add_reader(0, stream, "stdout")
        broker.close()
        token = InterruptToken(force_exit=lambda: None)
        source = Source("s")
        scheduler = RedrawScheduler(
            [source], patterns, broker, token, draw, min_refresh=min_refresh, **kwargs
        )
        if interrupt_after is not None:
            asyncio.get_running_loop().call_later(interrupt_after, token.interrupt)
        interrupted = await scheduler.run()
        await broker.shutdown()
        return interrupted, source, scheduler

    return asyncio.run(scenario())


def test_burst_collapses_into_one_frame_then_final(patterns):
    frames = []
    interrupted, source, scheduler = run_loop(
        patterns, b"".join(b"line %d\n" % i for i in range(50)), 3600, frames.append
    )
    assert not interrupted
    assert frames == [DrawMode.ONGOING, DrawMode.FINAL]
    assert scheduler.lines == 50
    assert len(source.content.nodes[0].lines) == 50


def test_owed_redraw_fires_after_the_interval(patterns):
    frames = []
    interrupted, _, _ = run_loop(
        patterns, b"a\nb\n", 0.01, frames.append, interrupt_after=0.3, eof=False
    )
    assert interrupted
    assert frames == [DrawMode.ONGOING, DrawMode.ONGOING, DrawMode.FINAL]


def test_interrupt_stops_loop_with_final_frame(patterns):
    frames = []
    interrupted, _, _ = run_loop(patterns, b"", 0.004, frames.append, interrupt_after=0.01, eof=False)
    assert interrupted
    assert frames == [DrawMode.FINAL]


def test_debug_mode_draws_nothing(patterns):
    interrupted, source, scheduler = run_loop(patterns, b"BEGIN(t)\nx\n", 0.004, None)
    assert not interrupted
    assert scheduler.frames == 0
    assert source.content.nodes[0].start_title == "t"


def test_interrupt_cuts_the_interline_delay_short(patterns):
    frames = []
    started = time.monotonic()
    interrupted, source, _ = run_loop(
        patterns, b"a\nb\n", 0.004, frames.append,
        interrupt_after=0.05, eof=False, interline_delay=30,
    )
    assert interrupted
    assert time.monotonic() - started < 5
    assert source.content.nodes == [PlainRun(["a"])]
    assert frames[-1] is DrawMode.FINAL
