"""Folding ranges inferred from indentation."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from .constants import DEFAULT_TAB_SIZE
from .document import Document
from .models import FoldingRange, FoldingRangeKind


def compute_indent_level(line: str, tab_size: int = DEFAULT_TAB_SIZE) -> int | None:
    """Compute the column width of leading whitespace.

    Tabs advance to the next multiple of `tab_size` columns.

    Args:
        line: Line whose leading whitespace should be measured.
        tab_size: Column width of a tab stop.

    Returns:
        int | None: Number of columns occupied by the leading whitespace, or
            None when the line only consists of whitespace.

    Examples:
        compute_indent_level("    text")  # 4
        compute_indent_level(" \\ttext", tab_size=4)  # 4
        compute_indent_level("   ")  # None
    """
    columns = 0
    for character in line:
        if character == " ":
            columns += 1
            continue
        if character == "\t":
            columns += tab_size - (columns % tab_size)
            continue
        return columns
    return None


@dataclass
class _Block:
    indent: int
    begin: int
    end: int


def resolve_indentation_ranges(
    document: Document,
    existing: Iterable[FoldingRange] = (),
    tab_size: int = DEFAULT_TAB_SIZE,
    off_side: bool = False,
) -> list[FoldingRange]:
    """Infer ranges from indentation depth, bottom to top.

    A line followed by more deeply indented lines opens a range ending on the
    last of them. Lines where an explicit range already starts are left to
    that range.

    Args:
        document: Document to fold.
        existing: Ranges from the explicit pass.
        tab_size: Column width of a tab stop.
        off_side: Attach whitespace-only lines to the block below them.

    Returns:
        list[FoldingRange]: New region ranges, bottom-most first.

    Examples:
        resolve_indentation_ranges(TextDocument("a\\n  b\\n  c\\nd"), tab_size=2)
        # [FoldingRange(0, 2)]
    """
    taken = {folding_range.start for folding_range in existing}
    line_count = document.line_count
    ranges: list[FoldingRange] = []
    blocks = [_Block(indent=-1, begin=line_count, end=line_count)]

    for line in range(line_count - 1, -1, -1):
        indent = compute_indent_level(document.line_text(line), tab_size)
        previous = blocks[-1]

        if indent is None:
            if off_side:
                previous.end = line
            continue

        if previous.indent > indent:
            while previous.indent > indent:
                blocks.pop()
                previous = blocks[-1]

            end = previous.end - 1
            if end - line >= 1 and line not in taken:
                ranges.append(FoldingRange(line, end, FoldingRangeKind.REGION))

        if previous.indent == indent:
            previous.end = line
        else:
            blocks.append(_Block(indent=indent, begin=line, end=line))

    return ranges
