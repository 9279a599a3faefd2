"""
Match Patterns
==============

Begin/end pattern pairs that delimit encapsulated regions in a source's output.

Each pattern must match a whole line and declare at least one capture group;
the group supplies the region title. With more than one group, the one named
``M`` is the title. Which group to read is decided once, when the pattern is
compiled, and stored as a ``TitleRule``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import NamedTuple, Sequence, Union

from .errors import (
    AmbiguousCaptureGroups,
    InvalidPattern,
    MissingCaptureGroup,
    PatternCountMismatch,
    UnpairedPatternFile,
)

logger = logging.getLogger(__name__)

TITLE_GROUP = "M"

_NAMED_GROUP = re.compile(r"\(\?P<\w+>")
_BACKREF = re.compile(r"\(\?P=|\\[1-9]|\\g<")


# ---------------------------------------------------------------------------
# Title rules
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PositionalGroup:
    """Title is the pattern's sole capture group."""

    def extract(self, m: re.Match[str]) -> str:
        return m.group(1) or ""


@dataclass(frozen=True)
class NamedGroup:
    """Title is the group with the given name."""

    name: str = TITLE_GROUP

    def extract(self, m: re.Match[str]) -> str:
        return m.group(self.name) or ""


TitleRule = Union[PositionalGroup, NamedGroup]


@dataclass(frozen=True)
class Pattern:
    source: str
    regex: re.Pattern[str]
    title_rule: TitleRule

    def title_of(self, line: str) -> str | None:
        """Return the title when the whole line matches, else None."""
        m = self.regex.fullmatch(line)
        if m is None:
            return None
        return self.title_rule.extract(m)


def compile_pattern(source: str) -> Pattern:
    try:
        regex = re.compile(source)
    except re.error as exc:
        raise InvalidPattern(source, str(exc)) from exc

    if regex.groups == 0:
        raise MissingCaptureGroup(source)

    if regex.groups == 1:
        rule: TitleRule = PositionalGroup()
    elif TITLE_GROUP in regex.groupindex:
        rule = NamedGroup(TITLE_GROUP)
    else:
        raise AmbiguousCaptureGroups(source)

    return Pattern(source, regex, rule)


# ---------------------------------------------------------------------------
# Pairs and the compiled set
# ---------------------------------------------------------------------------

class Side(Enum):
    START = "start"
    END = "end"


class Match(NamedTuple):
    pair_id: int
    side: Side
    title: str


@dataclass(frozen=True)
class MatchPair:
    pair_id: int
    start: Pattern
    end: Pattern


def _combined(pairs: Sequence[MatchPair]) -> re.Pattern[str] | None:
    sources = [p.source for pair in pairs for p in (pair.start, pair.end)]
    if not sources or any(_BACKREF.search(s) for s in sources):
        return None
    alternation = "|".join(f"(?:{_NAMED_GROUP.sub('(', s)})" for s in sources)
    try:
        return re.compile(alternation)
    except re.error:
        logger.debug("combined pattern does not compile, testing pairs one by one")
        return None


class PatternSet:
    """
    The configured pairs plus a combined pattern used to reject most lines
    with a single test.

    Example:
        >>> ps = build_pattern_set([r"BEGIN\\((.*)\\)"], [r"END\\((.*)\\)"])
        >>> ps.classify("BEGIN(x)")
        Match(pair_id=0, side=<Side.START: 'start'>, title='x')
    """

    def __init__(self, pairs: Sequence[MatchPair]):
        self.pairs: tuple[MatchPair, ...] = tuple(pairs)
        self.prefilter = _combined(self.pairs)

    def __len__(self) -> int:
        return len(self.pairs)

    def classify(self, line: str) -> Match | None:
        """First pair whose start, then end, pattern matches ``line`` wins."""
        if not self.pairs:
            return None
        if self.prefilter is not None and self.prefilter.fullmatch(line) is None:
            return None
        for pair in self.pairs:
            title = pair.start.title_of(line)
            if title is not None:
                return Match(pair.pair_id, Side.START, title)
            title = pair.end.title_of(line)
            if title is not None:
                return Match(pair.pair_id, Side.END, title)
        return None


def load_pattern_file(path: str | Path) -> list[tuple[str, str]]:
    """Read (begin, end) pattern sources from a file, two lines per pair."""
    lines = Path(path).read_text(encoding="utf-8").splitlines()
    if len(lines) % 2:
        raise UnpairedPatternFile(str(path), lines[-1])
    return list(zip(lines[0::2], lines[1::2]))


def build_pattern_set(
    begins: Sequence[str],
    ends: Sequence[str],
    pairs_file: str | Path | None = None,
) -> PatternSet:
    if len(begins) != len(ends):
        raise PatternCountMismatch(len(begins), len(ends))

    sources = list(zip(begins, ends))
    if pairs_file is not None:
        sources.extend(load_pattern_file(pairs_file))

    pairs = [
        MatchPair(pair_id, compile_pattern(start), compile_pattern(end))
        for pair_id, (start, end) in enumerate(sources)
    ]
    logger.debug("compiled %d match pair(s)", len(pairs))
    return PatternSet(pairs)
