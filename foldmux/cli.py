"""
foldmux CLI -- run programs and watch their output folded into regions.

Usage:
    foldmux -s 'BEGIN\\((.*)\\)' -e 'END\\((.*)\\)' make -j8 -/- ./run-tests.sh
    some-build | foldmux -s '>>> (.*)' -e '<<< (.*)'
    foldmux -p commands.txt -f patterns.txt --replay
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys
from contextlib import contextmanager
from typing import IO, Iterator, Optional, Sequence

from rich.console import Console
from rich.markup import escape

from .broker import Broker
from .config import Settings, configure_logging, parse_settings
from .errors import ConfigError, RenderError
from .patterns import PatternSet, build_pattern_set
from .render import Renderer, terminal_size
from .replay import replay_lines, trace_lines
from .scheduler import FORCED_EXIT_STATUS, InterruptToken, RedrawScheduler
from .sources import Source, build_sources

logger = logging.getLogger(__name__)

RENDER_ERROR_STATUS = 1
CONFIG_ERROR_STATUS = 2


@contextmanager
def _interrupt_signals(token: InterruptToken) -> Iterator[None]:
    loop = asyncio.get_running_loop()
    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, token.interrupt)
        except NotImplementedError:
            logger.debug("no asyncio signal handler support for %s", sig.name)
            continue
        installed.append(sig)
    try:
        yield
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)


@contextmanager
def _alternate_screen(console: Console, enabled: bool) -> Iterator[None]:
    if not enabled:
        yield
        return
    console.set_alt_screen(True)
    try:
        yield
    finally:
        console.set_alt_screen(False)


def emit_completion(sources: Sequence[Source], debug: bool, out: IO[str]) -> None:
    """Print every source's full output, or its structure when ``debug``."""
    for source in sources:
        lines = trace_lines(source.content) if debug else replay_lines(source.content)
        for line in lines:
            print(line, file=out)


def forced_exit(console: Console) -> None:
    """Hand the terminal back in a usable state, then exit without cleanup."""
    if console.is_alt_screen:
        console.set_alt_screen(False)
    console.show_cursor(True)
    os._exit(FORCED_EXIT_STATUS)


async def session(settings: Settings, patterns: PatternSet, console: Console) -> bool:
    """Run the sources to completion or interrupt. Returns True when interrupted."""
    if not settings.debug:
        terminal_size(console)

    broker = Broker()
    sources = await build_sources(
        settings.programs, settings.programs_file, settings.shell, broker
    )
    # every reader is registered; the broker ends once they all stop
    broker.close()

    interrupt = InterruptToken(lambda: forced_exit(console))
    renderer = Renderer(console, sources, settings.final_shrink)
    scheduler = RedrawScheduler(
        sources,
        patterns,
        broker,
        interrupt,
        draw=None if settings.debug else renderer.redraw,
        min_refresh=settings.min_refresh,
        interline_delay=settings.interline_delay,
    )

    # children are terminated unless the loop ends normally
    interrupted = True
    with _interrupt_signals(interrupt):
        try:
            if settings.debug:
                interrupted = await scheduler.run()
            else:
                with _alternate_screen(console, settings.replay):
                    renderer.begin()
                    try:
                        interrupted = await scheduler.run()
                    finally:
                        renderer.end()
        finally:
            logger.debug("consumer stopped after %d line(s), %d frame(s)",
                         scheduler.lines, scheduler.frames)
            await broker.shutdown()
            for source in sources:
                await source.stop_process(terminate=interrupted)

    if settings.debug or settings.replay:
        emit_completion(sources, settings.debug, console.file)
    return interrupted


def run(settings: Settings, console: Optional[Console] = None) -> int:
    console = console or Console(highlight=False)
    try:
        patterns = build_pattern_set(
            settings.match_begin, settings.match_end, settings.match_pairs_file
        )
        asyncio.run(session(settings, patterns, console))
    except ConfigError as exc:
        Console(stderr=True).print(f"[bold red]error:[/] {escape(str(exc))}")
        return CONFIG_ERROR_STATUS
    except RenderError as exc:
        Console(stderr=True).print(f"[bold red]error:[/] {escape(str(exc))}")
        return RENDER_ERROR_STATUS
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    settings = parse_settings(argv)
    configure_logging(settings.log_level, settings.log_file)
    return run(settings)


if __name__ == "__main__":
    sys.exit(main())
