"""
Replay
======

Walks a finished content tree, either back into the literal lines it was
built from or into a structural trace for debugging.
"""

from __future__ import annotations

from typing import Iterable, Iterator

from .content import Node, PlainRun

TRACE_INDENT = 4


def replay_lines(content: Iterable[Node]) -> Iterator[str]:
    """Yield the original lines in order; dropped end lines stay dropped."""
    for node in content:
        if isinstance(node, PlainRun):
            yield from node.lines
            continue
        yield node.start_line
        yield from replay_lines(node.content)
        if node.end_line is not None:
            yield node.end_line


def trace_lines(content: Iterable[Node], depth: int = 0) -> Iterator[str]:
    pad = " " * (TRACE_INDENT * depth)
    for node in content:
        if isinstance(node, PlainRun):
            for line in node.lines:
                yield f"{pad}Line: {line}"
            continue
        yield f"{pad}StartLine: {node.start_line}"
        yield f"{pad}StartTitle: {node.start_title}"
        yield from trace_lines(node.content, depth + 1)
        yield f"{pad}EndLine: {node.end_line!r}"
        yield f"{pad}EndTitle: {node.end_title!r}"
