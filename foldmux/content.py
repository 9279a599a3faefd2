"""
Content Tree
============

Per-source tree of output nodes, built one raw line at a time.

A node is either a ``PlainRun`` of text lines or an ``Encapsulation`` opened by
a start-pattern line. Only the chain of trailing open encapsulations can take
new content, so the tree keeps that chain as an explicit stack (``open_path``)
and every insert or close is a lookup on its top instead of a walk down the
tree.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Union

from .patterns import Match, PatternSet, Side


@dataclass
class PlainRun:
    lines: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class Open:
    pass


@dataclass(frozen=True)
class Closed:
    end_title: str
    end_line: str


OPEN = Open()

State = Union[Open, Closed]


@dataclass
class Encapsulation:
    pair_id: int
    start_title: str
    start_line: str
    state: State = OPEN
    content: List["Node"] = field(default_factory=list)

    @property
    def is_open(self) -> bool:
        return isinstance(self.state, Open)

    @property
    def end_title(self) -> str | None:
        return self.state.end_title if isinstance(self.state, Closed) else None

    @property
    def end_line(self) -> str | None:
        return self.state.end_line if isinstance(self.state, Closed) else None


Node = Union[PlainRun, Encapsulation]


class ContentTree:
    """
    Ordered output nodes for one source.

    Invariant: every Encapsulation in ``open_path`` is open and is the last
    node of its parent's content (the parent of ``open_path[0]`` is the root
    list). Nodes are never reordered.
    """

    def __init__(self) -> None:
        self.nodes: list[Node] = []
        self._open: list[Encapsulation] = []

    def __iter__(self) -> Iterator[Node]:
        return iter(self.nodes)

    def __len__(self) -> int:
        return len(self.nodes)

    @property
    def open_path(self) -> tuple[Encapsulation, ...]:
        """Open encapsulations, outermost first."""
        return tuple(self._open)

    def _target(self) -> list[Node]:
        return self._open[-1].content if self._open else self.nodes

    # -- mutation -----------------------------------------------------------

    def append_line(self, line: str, patterns: PatternSet) -> Match | None:
        """Classify ``line`` and insert it. Returns the pattern match, if any."""
        match = patterns.classify(line)
        if match is None:
            self.push_text(line)
        elif match.side is Side.START:
            self.push_start(match.pair_id, match.title, line)
        else:
            self.push_end(match.title, line)
        return match

    def push_text(self, line: str) -> None:
        target = self._target()
        if target and isinstance(target[-1], PlainRun):
            target[-1].lines.append(line)
        else:
            target.append(PlainRun([line]))

    def push_start(self, pair_id: int, title: str, line: str) -> Encapsulation:
        encapsulation = Encapsulation(pair_id, title, line)
        self._target().append(encapsulation)
        self._open.append(encapsulation)
        return encapsulation

    def push_end(self, title: str, line: str) -> Encapsulation | None:
        """
        Close the innermost open encapsulation, whatever pair opened it.

        Returns the closed node, or None when nothing is open; the line is then
        dropped without producing a node.
        """
        if not self._open:
            return None
        encapsulation = self._open.pop()
        encapsulation.state = Closed(title, line)
        return encapsulation
