"""
Renderer
========

Draws one frame of all sources with rich. Each frame fills the terminal from
the top-left corner: every row is positioned absolutely, written, then
cleared to its end; rows below the frame are cleared too.
"""

from __future__ import annotations

from typing import Sequence

from rich.console import Console, ConsoleDimensions
from rich.control import Control
from rich.segment import ControlType
from rich.style import Style
from rich.text import Text

from .allocate import allocate_rows
from .errors import RenderError
from .layout import DisplayKind, DisplayLine
from .scheduler import DrawMode
from .sources import Source

DEFAULT_FINAL_SHRINK = 2

HIGHLIGHT = Style(bold=True, color="cyan")
PREFIX = Style(bold=True)

_ERASE_TO_EOL = Control((ControlType.ERASE_IN_LINE, 0))


def terminal_size(console: Console) -> ConsoleDimensions:
    """Size of the terminal behind ``console``; rich's 80x25 fallback is not accepted."""
    if not console.is_terminal:
        raise RenderError("output is not a terminal, its size is unavailable")
    return console.size


def styled(line: DisplayLine) -> Text:
    """Rich text for one display line."""
    on_spine = line.active and line.kind in (DisplayKind.TEXT, DisplayKind.MIDDLE_CUT)
    title = line.kind is DisplayKind.SOURCE_TITLE or (
        line.kind is DisplayKind.TITLE and line.active
    )
    body = HIGHLIGHT if on_spine or title else None

    text = Text(no_wrap=True, end="")
    text.append(" " * line.indent, style=HIGHLIGHT if on_spine else None)
    text.append(line.prefix, style=PREFIX + HIGHLIGHT if on_spine else PREFIX)
    for fragment in line.fragments:
        text.append(fragment, style=body)
    return text


class Renderer:
    def __init__(
        self,
        console: Console,
        sources: Sequence[Source],
        final_shrink: int = DEFAULT_FINAL_SHRINK,
    ):
        self.console = console
        self.sources = sources
        self.final_shrink = final_shrink

    def begin(self) -> None:
        terminal_size(self.console)
        self.console.show_cursor(False)
        self.console.control(Control.clear())

    def end(self) -> None:
        self.console.show_cursor(True)
        self.console.line()

    def frame_lines(self, mode: DrawMode) -> list[DisplayLine]:
        width, height = terminal_size(self.console)
        if mode is DrawMode.FINAL:
            height -= self.final_shrink

        def layout_of(idx: int, extra: int) -> list[DisplayLine]:
            return self.sources[idx].describe(width, extra)

        layouts = allocate_rows(layout_of, len(self.sources), height)
        return [line for lines in layouts for line in lines]

    def redraw(self, mode: DrawMode = DrawMode.ONGOING) -> None:
        """Draw a frame. Write errors propagate; a half-drawn frame is not retried."""
        lines = self.frame_lines(mode)
        _, height = terminal_size(self.console)

        # buffered: the whole frame goes out in one write
        with self.console:
            for row, line in enumerate(lines):
                self.console.control(Control.move_to(0, row))
                self.console.print(styled(line), end="", soft_wrap=True)
                self.console.control(_ERASE_TO_EOL)
            for row in range(len(lines), height):
                self.console.control(Control.move_to(0, row), _ERASE_TO_EOL)
            self.console.control(Control.move_to(0, min(len(lines), max(height - 1, 0))))
