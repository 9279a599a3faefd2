"""
Layout
======

Flattens a source's content tree into width-fitted display lines.

Long plain runs are minimized to their first line, a cut marker and their
tail. The run at the end of the trailing spine (last node at every level) may
show ``allowed_extra`` more lines; that is where the space allocator hands out
unused terminal rows. Every line is cut to a single row with an ellipsis,
never wrapped.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterable, List, Sequence

from .content import Encapsulation, Node, PlainRun

BASE_THRESHOLD = 3
INDENT_STEP = 4
TAB_SIZE = 8
ELLIPSIS = "..."

TEXT_PREFIX = "⫼ "
CUT_PREFIX = "+" + "-" * 37
TITLE_PREFIX = "└── "
WHOLE_CUT_PREFIX = "⋯"


class DisplayKind(Enum):
    SOURCE_TITLE = "source-title"
    TITLE = "title"
    TEXT = "text"
    MIDDLE_CUT = "middle-cut"
    WHOLE_CUT = "whole-cut"


@dataclass
class DisplayLine:
    """
    One terminal row.

    ``active`` marks open titles and the plain lines (or cut marker) of the
    run on the trailing spine; the renderer highlights them.
    """

    indent: int
    kind: DisplayKind
    prefix: str = ""
    fragments: List[str] = field(default_factory=list)
    active: bool = False

    @property
    def text(self) -> str:
        return "".join(self.fragments)

    @property
    def width(self) -> int:
        return self.indent + len(self.prefix) + len(self.text)


# ---------------------------------------------------------------------------
# Width fitting
# ---------------------------------------------------------------------------

def expand_tabs(fragments: Iterable[str], tab_size: int = TAB_SIZE) -> list[str]:
    """Expand tabs to the next multiple of ``tab_size``, counting columns across fragments."""
    out = []
    column = 0
    for fragment in fragments:
        if "\t" in fragment:
            pieces = []
            for i, chunk in enumerate(fragment.split("\t")):
                if i:
                    pad = tab_size - column % tab_size
                    pieces.append(" " * pad)
                    column += pad
                pieces.append(chunk)
                column += len(chunk)
            fragment = "".join(pieces)
        else:
            column += len(fragment)
        out.append(fragment)
    return out


def fit_line(line: DisplayLine, width: int) -> DisplayLine:
    """
    Return ``line`` cut to fit ``width`` columns.

    When the text overflows the room left after indent and prefix, the
    overflowing fragment is sliced so that it plus the ellipsis fill that room
    exactly, and later fragments are dropped. Indent and prefix are clipped
    too when they alone are wider than ``width``.
    """
    indent = min(line.indent, max(width, 0))
    prefix = line.prefix[: max(width - indent, 0)]
    line = replace(line, indent=indent, prefix=prefix)

    avail = width - indent - len(prefix)
    fragments = expand_tabs(line.fragments)
    if sum(len(f) for f in fragments) <= avail:
        return replace(line, fragments=fragments)

    keep = max(avail - len(ELLIPSIS), 0)
    fitted = []
    used = 0
    for fragment in fragments:
        if used + len(fragment) > keep:
            fitted.append(fragment[: keep - used])
            break
        fitted.append(fragment)
        used += len(fragment)
    fitted.append(ELLIPSIS[: max(avail, 0)])
    return replace(line, fragments=fitted)


# ---------------------------------------------------------------------------
# Tree layout
# ---------------------------------------------------------------------------

def _run_lines(
    lines: Sequence[str],
    width: int,
    indent: int,
    threshold: int,
    active: bool,
) -> list[DisplayLine]:
    def text(s: str) -> DisplayLine:
        return fit_line(DisplayLine(indent, DisplayKind.TEXT, TEXT_PREFIX, [s], active), width)

    if len(lines) <= threshold:
        return [text(s) for s in lines]

    tail = lines[len(lines) - (threshold - 2):]
    cut = fit_line(DisplayLine(indent, DisplayKind.MIDDLE_CUT, CUT_PREFIX, [], active), width)
    return [text(lines[0]), cut] + [text(s) for s in tail]


def _title_line(node: Encapsulation, width: int, indent: int) -> DisplayLine:
    fragments = [node.start_title]
    if node.end_title:
        fragments += [" ", node.end_title]
    return fit_line(
        DisplayLine(indent, DisplayKind.TITLE, TITLE_PREFIX, fragments, node.is_open),
        width,
    )


def _layout_into(
    out: list[DisplayLine],
    content: Sequence[Node],
    width: int,
    allowed_extra: int,
    on_spine: bool,
    indent: int,
) -> None:
    last = len(content) - 1
    for i, node in enumerate(content):
        trailing = on_spine and i == last
        if isinstance(node, PlainRun):
            threshold = BASE_THRESHOLD + (allowed_extra if trailing else 0)
            out.extend(_run_lines(node.lines, width, indent, threshold, trailing))
            continue

        out.append(_title_line(node, width, indent))
        # closed regions stay folded to their title line
        if node.is_open:
            _layout_into(out, node.content, width, allowed_extra, trailing, indent + INDENT_STEP)


def layout(
    content: Iterable[Node],
    column_width: int,
    allowed_extra: int = 0,
    on_trailing_spine: bool = True,
    indent: int = 0,
) -> list[DisplayLine]:
    """Lay out ``content`` as display lines no wider than ``column_width``."""
    out: list[DisplayLine] = []
    _layout_into(out, list(content), column_width, allowed_extra, on_trailing_spine, indent)
    return out


def describe_source(
    description: str,
    content: Iterable[Node],
    column_width: int,
    allowed_extra: int = 0,
    read_error: BaseException | None = None,
) -> list[DisplayLine]:
    """Title line for the source followed by the layout of its content."""
    fragments = [description]
    if read_error is not None:
        fragments.append(f" (read error: {read_error})")
    title = fit_line(DisplayLine(0, DisplayKind.SOURCE_TITLE, "", fragments), column_width)
    return [title] + layout(content, column_width, allowed_extra, True)


def reduce_to_count(lines: Sequence[DisplayLine], count: int) -> list[DisplayLine]:
    """
    Shrink a source's lines to ``count`` rows: its title, a whole-source cut
    marker, then as many of its last lines as still fit.
    """
    if count <= 0 or not lines:
        return []
    if count == 1:
        return [lines[0]]

    marker = DisplayLine(0, DisplayKind.WHOLE_CUT, WHOLE_CUT_PREFIX)
    body = lines[1:]
    keep = count - 2
    tail = list(body[max(len(body) - keep, 0):]) if keep else []
    return [lines[0], marker] + tail
