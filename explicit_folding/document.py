"""Read-only access to the text being folded."""

from __future__ import annotations

import re
from collections.abc import Sequence
from typing import Protocol, runtime_checkable

_LINE_BREAK = re.compile(r"\r\n|\r|\n")


@runtime_checkable
class Document(Protocol):
    """What the scanner needs from a document: its lines, by index."""

    @property
    def line_count(self) -> int: ...

    def line_text(self, line: int) -> str: ...


class TextDocument:
    """In-memory document split the way editors count lines.

    A trailing line break yields a final empty line, and empty text is one
    empty line.

    Examples:
        TextDocument("a\\nb\\n").line_count  # 3
    """

    def __init__(self, text: str, uri: str | None = None):
        self.lines: Sequence[str] = _LINE_BREAK.split(text)
        self.uri = uri

    @classmethod
    def from_lines(cls, lines: Sequence[str], uri: str | None = None) -> TextDocument:
        document = cls("", uri)
        document.lines = list(lines)
        return document

    @property
    def line_count(self) -> int:
        return len(self.lines)

    def line_text(self, line: int) -> str:
        return self.lines[line]

    def __repr__(self) -> str:
        return f"TextDocument(uri={self.uri!r}, line_count={self.line_count})"
