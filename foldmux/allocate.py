"""
Row Allocation
==============

Fits the layouts of all sources into a fixed number of terminal rows.
"""

from __future__ import annotations

from typing import Callable, List

from .layout import DisplayLine, reduce_to_count

# (source index, allowed extra) -> that source's display lines
LayoutFn = Callable[[int, int], List[DisplayLine]]


def most_equal_divide(total: int, n: int, idx: int) -> int:
    """Share of slot ``idx`` when ``total`` items are split over ``n`` slots as evenly as possible."""
    share, rest = divmod(total, n)
    return share + (1 if idx < rest else 0)


def allocate_rows(layout_of: LayoutFn, count: int, rows: int) -> list[list[DisplayLine]]:
    """
    Lay out ``count`` sources into ``rows`` terminal rows.

    Layouts are first computed without slack. Too many lines: each source is
    reduced to its even share of the rows. Too few: every source is laid out
    again with its even share of the unused rows as allowed extra.
    """
    if count == 0:
        return []
    rows = max(rows, 0)

    layouts: list[list[DisplayLine]] = [layout_of(idx, 0) for idx in range(count)]
    total = sum(len(lines) for lines in layouts)

    if total > rows:
        return [
            reduce_to_count(lines, most_equal_divide(rows, count, idx))
            for idx, lines in enumerate(layouts)
        ]
    if total < rows:
        extra = rows - total
        return [layout_of(idx, most_equal_divide(extra, count, idx)) for idx in range(count)]
    return layouts
