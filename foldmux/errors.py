"""
Errors
======

Every failure foldmux reports before it starts reading streams is a
``ConfigError``; the CLI turns them into a one-line message and exit status 2.
A ``RenderError`` stops a running session with exit status 1.
"""

from __future__ import annotations


class FoldmuxError(Exception):
    """Base class for errors surfaced to the user."""


class ConfigError(FoldmuxError):
    """Fatal setup error, raised before any stream processing starts."""


class PatternCountMismatch(ConfigError):
    def __init__(self, starts: int, ends: int):
        super().__init__(f"Start and end pattern counts don't match: {starts} != {ends}")
        self.starts = starts
        self.ends = ends


class MissingCaptureGroup(ConfigError):
    def __init__(self, pattern: str):
        super().__init__(f"No capture group in pattern {pattern!r}")
        self.pattern = pattern


class AmbiguousCaptureGroups(ConfigError):
    def __init__(self, pattern: str):
        super().__init__(f"Multiple capture groups and none named M in pattern {pattern!r}")
        self.pattern = pattern


class InvalidPattern(ConfigError):
    def __init__(self, pattern: str, reason: str):
        super().__init__(f"Invalid pattern {pattern!r}: {reason}")
        self.pattern = pattern


class UnpairedPatternFile(ConfigError):
    def __init__(self, path: str, pattern: str):
        super().__init__(
            f"Unpaired pattern {pattern!r} in file {path} (odd number of lines in it?)"
        )
        self.path = path
        self.pattern = pattern


class NoPrograms(ConfigError):
    def __init__(self, path: str):
        super().__init__(f"No programs specified in {path}")
        self.path = path


class SpawnError(ConfigError):
    def __init__(self, description: str, reason: str):
        super().__init__(f"Cannot start {description}: {reason}")
        self.description = description


class RenderError(FoldmuxError):
    """The terminal cannot be drawn to; fatal, a half-drawn frame is never retried."""
