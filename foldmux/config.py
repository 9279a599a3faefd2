"""
Configuration
=============

Command-line flags and environment defaults, collected into ``Settings``.

Environment:
    FOLDMUX_SHELL       shell for programs-file lines (default /bin/sh)
    FOLDMUX_LOG_LEVEL   default log level (default WARNING)
"""

from __future__ import annotations

import argparse
import logging
import os
from dataclasses import dataclass, field
from typing import Optional, Sequence

from rich.console import Console
from rich.logging import RichHandler

from .render import DEFAULT_FINAL_SHRINK
from .scheduler import DEFAULT_MIN_REFRESH
from .sources import PROGRAM_SEPARATOR, split_program_args

DEFAULT_SHELL = "/bin/sh"
DEFAULT_LOG_LEVEL = "WARNING"
LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


@dataclass
class Settings:
    programs: list[list[str]] = field(default_factory=list)
    programs_file: Optional[str] = None
    shell: str = DEFAULT_SHELL
    match_begin: list[str] = field(default_factory=list)
    match_end: list[str] = field(default_factory=list)
    match_pairs_file: Optional[str] = None
    replay: bool = False
    final_shrink: int = DEFAULT_FINAL_SHRINK
    interline_delay: float = 0.0
    min_refresh: float = DEFAULT_MIN_REFRESH
    debug: bool = False
    log_level: str = DEFAULT_LOG_LEVEL
    log_file: Optional[str] = None


def _non_negative(value: str) -> int:
    n = int(value)
    if n < 0:
        raise argparse.ArgumentTypeError(f"expected a non-negative number, got {value}")
    return n


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="foldmux",
        description="Run programs side by side and fold their output into titled regions",
        epilog=f"Separate programs with {PROGRAM_SEPARATOR}; with no program, standard input is read.",
    )
    ap.add_argument("programs", nargs=argparse.REMAINDER,
                    help=f"programs to run, separated by {PROGRAM_SEPARATOR}")
    ap.add_argument("-s", "--match-begin", action="append", default=[], metavar="REGEX",
                    help="pattern for a region's first line (repeatable)")
    ap.add_argument("-e", "--match-end", action="append", default=[], metavar="REGEX",
                    help="pattern for a region's last line, paired by position (repeatable)")
    ap.add_argument("-f", "--match-pairs-file", metavar="PATH",
                    help="load more begin/end pairs, one pair per two lines")
    ap.add_argument("-p", "--programs-file", metavar="PATH",
                    help="run each line of PATH as a shell command ('-' for stdin)")
    ap.add_argument("--shell", default=os.environ.get("FOLDMUX_SHELL", DEFAULT_SHELL),
                    help="shell for programs-file lines (default $FOLDMUX_SHELL or /bin/sh)")
    ap.add_argument("-r", "--replay", action="store_true",
                    help="draw in the alternate screen, then print the full output")
    ap.add_argument("-x", "--final-shrink", type=_non_negative, default=DEFAULT_FINAL_SHRINK,
                    help="rows left free under the final frame (default 2)")
    ap.add_argument("-D", "--interline-delay", type=_non_negative, default=0, metavar="MS",
                    help="pause after each line, in milliseconds")
    ap.add_argument("--min-refresh", type=_non_negative,
                    default=int(DEFAULT_MIN_REFRESH * 1000), metavar="MS",
                    help="minimum time between frames, in milliseconds (default 4)")
    ap.add_argument("-d", "--debug", action="store_true",
                    help="draw nothing; print the structure of every source at exit")
    ap.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    ap.add_argument("--log-file", metavar="PATH", help="write log records to PATH")
    return ap


def parse_settings(argv: Optional[Sequence[str]] = None) -> Settings:
    args = build_parser().parse_args(argv)
    if args.verbose:
        level = "DEBUG"
    else:
        level = os.environ.get("FOLDMUX_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper()
        if not isinstance(logging.getLevelName(level), int):
            level = DEFAULT_LOG_LEVEL
    return Settings(
        programs=split_program_args(args.programs),
        programs_file=args.programs_file,
        shell=args.shell,
        match_begin=list(args.match_begin),
        match_end=list(args.match_end),
        match_pairs_file=args.match_pairs_file,
        replay=args.replay,
        final_shrink=args.final_shrink,
        interline_delay=args.interline_delay / 1000,
        min_refresh=args.min_refresh / 1000,
        debug=args.debug,
        log_level=level,
        log_file=args.log_file,
    )


def configure_logging(level: str = DEFAULT_LOG_LEVEL, log_file: Optional[str] = None) -> None:
    """Log to ``log_file`` when given, else through rich on stderr."""
    if log_file:
        logging.basicConfig(filename=log_file, level=level, format=LOG_FORMAT, force=True)
        return
    handler = RichHandler(console=Console(stderr=True), show_path=False)
    logging.basicConfig(level=level, format="%(message)s", handlers=[handler], force=True)
