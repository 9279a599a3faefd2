import io

import pytest
from rich.console import Console

from foldmux.errors import RenderError
from foldmux.layout import DisplayKind, DisplayLine, TEXT_PREFIX, TITLE_PREFIX
from foldmux.render import HIGHLIGHT, Renderer, styled
from foldmux.scheduler import DrawMode
from foldmux.sources import Source


def make_console(width=30, height=6):
    return Console(
        file=io.StringIO(),
        force_terminal=True,
        color_system="standard",
        width=width,
        height=height,
    )


def source_with(patterns, description, lines):
    source = Source(description)
    for line in lines:
        source.append_line(line, patterns)
    return source


def test_frame_uses_unused_rows_for_the_trailing_run(patterns):
    source = source_with(patterns, "prog", [f"l{i}" for i in range(10)])
    renderer = Renderer(make_console(height=6), [source])
    lines = renderer.frame_lines(DrawMode.ONGOING)
    assert len(lines) == 6
    assert [l.text for l in lines] == ["prog", "l0", "", "l7", "l8", "l9"]


def test_final_frame_leaves_rows_for_the_prompt(patterns):
    source = source_with(patterns, "prog", [f"l{i}" for i in range(10)])
    renderer = Renderer(make_console(height=6), [source], final_shrink=2)
    assert len(renderer.frame_lines(DrawMode.FINAL)) == 4


def test_frame_is_split_between_sources(patterns):
    sources = [
        source_with(patterns, "a", ["BEGIN(x)"] + [f"a{i}" for i in range(8)]),
        source_with(patterns, "b", [f"b{i}" for i in range(8)]),
        source_with(patterns, "c", []),
    ]
    renderer = Renderer(make_console(height=5), sources)
    lines = renderer.frame_lines(DrawMode.ONGOING)
    assert len(lines) == 5
    assert [l.text for l in lines if l.kind is DisplayKind.SOURCE_TITLE] == ["a", "b", "c"]


def test_redraw_writes_positioned_cleared_rows(patterns):
    console = make_console(width=20, height=4)
    source = source_with(patterns, "prog", ["hello", "BEGIN(section)", "inside"])
    renderer = Renderer(console, [source])
    renderer.begin()
    renderer.redraw(DrawMode.ONGOING)
    renderer.end()

    out = console.file.getvalue()
    assert "\x1b[?25l" in out
    assert "\x1b[?25h" in out
    assert "\x1b[1;1H" in out
    assert "\x1b[4;1H" in out
    assert "\x1b[0K" in out
    assert "hello" in out and "section" in out and "inside" in out


def test_open_titles_and_spine_lines_are_highlighted():
    open_title = styled(DisplayLine(0, DisplayKind.TITLE, TITLE_PREFIX, ["t"], active=True))
    closed_title = styled(DisplayLine(0, DisplayKind.TITLE, TITLE_PREFIX, ["t"], active=False))
    spine = styled(DisplayLine(4, DisplayKind.TEXT, TEXT_PREFIX, ["x"], active=True))
    plain = styled(DisplayLine(4, DisplayKind.TEXT, TEXT_PREFIX, ["x"], active=False))

    def highlighted(text):
        return any(span.style == HIGHLIGHT for span in text.spans)

    assert highlighted(open_title)
    assert not highlighted(closed_title)
    assert highlighted(spine)
    assert not highlighted(plain)
    assert spine.plain == "    " + TEXT_PREFIX + "x"


def test_output_that_is_not_a_terminal_cannot_be_drawn(patterns):
    source = source_with(patterns, "prog", ["hello"])
    renderer = Renderer(Console(file=io.StringIO()), [source])
    with pytest.raises(RenderError):
        renderer.redraw(DrawMode.ONGOING)
    with pytest.raises(RenderError):
        renderer.begin()


def test_rows_never_exceed_a_narrow_terminal(patterns):
    source = source_with(patterns, "prog", [f"l{i}" for i in range(10)])
    renderer = Renderer(make_console(width=12, height=5), [source])
    assert max(l.width for l in renderer.frame_lines(DrawMode.ONGOING)) <= 12
