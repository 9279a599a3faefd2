"""
Sources
=======

A source is one running line producer: a spawned program (stdout and stderr
both feed it) or standard input. Each owns its content tree, which only the
consumer loop mutates.
"""

from __future__ import annotations

import asyncio
import logging
import re
import shlex
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Any, Optional, Sequence

from .broker import Broker, ReaderHandle
from .content import ContentTree
from .errors import NoPrograms, SpawnError
from .layout import DisplayLine, describe_source
from .patterns import Match, PatternSet

logger = logging.getLogger(__name__)

STDIN_DESCRIPTION = "<<stdin>>"
PROGRAM_SEPARATOR = "-/-"
LINE_LIMIT = 1 << 20
STOP_TIMEOUT = 10.0

_SEPARATOR_ARG = re.compile(r"^-(/+)-$")


@dataclass
class Source:
    description: str
    content: ContentTree = field(default_factory=ContentTree)
    readers: list[ReaderHandle] = field(default_factory=list)
    process: Optional[asyncio.subprocess.Process] = None
    read_error: Optional[BaseException] = None

    def append_line(self, line: str, patterns: PatternSet) -> Match | None:
        return self.content.append_line(line, patterns)

    def describe(self, column_width: int, allowed_extra: int = 0) -> list[DisplayLine]:
        return describe_source(
            self.description, self.content, column_width, allowed_extra, self.read_error
        )

    async def stop_process(self, terminate: bool, timeout: float = STOP_TIMEOUT) -> Optional[int]:
        """Reap the child, terminating it first when asked; kill it if it outlives ``timeout``."""
        proc = self.process
        if proc is None:
            return None
        if terminate and proc.returncode is None:
            try:
                proc.terminate()
            except ProcessLookupError:
                pass
        try:
            return await asyncio.wait_for(proc.wait(), timeout)
        except asyncio.TimeoutError:
            logger.warning("%s did not exit within %.0fs, killing it", self.description, timeout)
            proc.kill()
            return await proc.wait()


# ---------------------------------------------------------------------------
# Program enumeration
# ---------------------------------------------------------------------------

def split_program_args(args: Sequence[str]) -> list[list[str]]:
    """
    Split positional arguments into program argv lists on ``-/-``.

    ``-//-`` stands for a literal ``-/-`` argument, ``-///-`` for ``-//-``,
    and so on.
    """
    programs: list[list[str]] = []
    current: list[str] = []
    for arg in args:
        m = _SEPARATOR_ARG.match(arg)
        if m is None:
            current.append(arg)
        elif len(m.group(1)) == 1:
            if current:
                programs.append(current)
            current = []
        else:
            current.append("-" + "/" * (len(m.group(1)) - 1) + "-")
    if current:
        programs.append(current)
    return programs


def describe_argv(argv: Sequence[str]) -> str:
    return shlex.join(argv)


def read_programs_file(path: str, stdin: Optional[IO[str]] = None) -> list[str]:
    """One shell line per program; ``-`` reads them from standard input."""
    if path == "-":
        text = (stdin or sys.stdin).read()
    else:
        text = Path(path).read_text(encoding="utf-8")
    return [line for line in text.splitlines() if line.strip()]


# ---------------------------------------------------------------------------
# Spawning
# ---------------------------------------------------------------------------

async def _spawn(description: str, argv: Sequence[str], source_id: int, broker: Broker) -> Source:
    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            limit=LINE_LIMIT,
        )
    except OSError as exc:
        raise SpawnError(description, exc.strerror or str(exc)) from exc

    assert proc.stdout is not None and proc.stderr is not None
    logger.debug("spawned source %d (pid %s): %s", source_id, proc.pid, description)
    source = Source(description, process=proc)
    source.readers.append(broker.add_reader(source_id, proc.stdout, "stdout"))
    source.readers.append(broker.add_reader(source_id, proc.stderr, "stderr"))
    return source


async def spawn_argv(argv: Sequence[str], source_id: int, broker: Broker) -> Source:
    return await _spawn(describe_argv(argv), argv, source_id, broker)


async def spawn_shell_line(line: str, shell: str, source_id: int, broker: Broker) -> Source:
    return await _spawn(line, [shell, "-c", line], source_id, broker)


class _BlockingLines:
    """Line reader for a regular file, which the event loop cannot watch."""

    def __init__(self, file: Any):
        self._file = file

    async def readline(self) -> bytes:
        return await asyncio.to_thread(self._file.readline)


async def attach_stdin(source_id: int, broker: Broker, file: Optional[IO[Any]] = None) -> Source:
    file = file if file is not None else sys.stdin
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader(limit=LINE_LIMIT)
    try:
        await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), file)
        stream: Any = reader
    except ValueError:
        stream = _BlockingLines(getattr(file, "buffer", file))

    source = Source(STDIN_DESCRIPTION)
    source.readers.append(broker.add_reader(source_id, stream, "stdin"))
    return source


async def build_sources(
    programs: Sequence[Sequence[str]],
    programs_file: Optional[str],
    shell: str,
    broker: Broker,
) -> list[Source]:
    """
    Start every configured program, or read standard input when none is given.

    Raises NoPrograms when a programs file was given but names nothing.
    """
    sources: list[Source] = []

    try:
        if programs_file is not None:
            for line in read_programs_file(programs_file):
                sources.append(await spawn_shell_line(line, shell, len(sources), broker))

        for argv in programs:
            sources.append(await spawn_argv(argv, len(sources), broker))
    except SpawnError:
        await broker.shutdown()
        for source in sources:
            await source.stop_process(terminate=True)
        raise

    if not sources:
        if programs_file is not None:
            raise NoPrograms(programs_file)
        sources.append(await attach_stdin(0, broker))

    return sources
