"""Data models for explicit-folding."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .patterns import CompiledScope, EndTemplate


class Marker(Enum):
    """Kinds of pattern matches the scanner dispatches on.

    Attributes:
        BEGIN: Opens a region.
        MIDDLE: Splits the innermost region into consecutive sections.
        END: Closes a region.
        DOCSTRING: Same trigger opens and closes a region.
        SEPARATOR: Starts a new contiguous scope, closing the previous one.
        WHILE: Bare while rule; folds a run of matching lines.
    """

    BEGIN = auto()
    MIDDLE = auto()
    END = auto()
    DOCSTRING = auto()
    SEPARATOR = auto()
    WHILE = auto()


class FoldingRangeKind(Enum):
    """Kind reported to the editor for each range."""

    REGION = "region"
    COMMENT = "comment"


@dataclass(frozen=True)
class FoldingRange:
    """A collapsible span of lines.

    Attributes:
        start: Zero-based first line of the range.
        end: Zero-based last line of the range (inclusive).
        kind: Region or comment.
    """

    start: int
    end: int
    kind: FoldingRangeKind = FoldingRangeKind.REGION

    def to_dict(self) -> dict[str, object]:
        return {"startLine": self.start, "endLine": self.end, "kind": self.kind.value}


@dataclass(frozen=True)
class Position:
    """Scan progress marker: a line and an offset within that line."""

    line: int
    offset: int = 0


@dataclass(frozen=True)
class Tag:
    """Decoded identity of a tagged group in a composite pattern.

    Attributes:
        marker: Kind of match.
        rule_index: Index of the rule that contributed the fragment.
        variant: End-pattern variant id for dynamically resolved ends.
    """

    marker: Marker
    rule_index: int
    variant: int | None = None

    @property
    def group_name(self) -> str:
        name = f"_{self.marker.value}_{self.rule_index}"
        if self.variant is not None:
            name += f"_{self.variant}"
        return name


@dataclass(frozen=True)
class CapturePredicate:
    """Boolean option that may depend on which end capture group fired.

    With `per_group` unset the predicate is constant. Otherwise index 0 is
    the fallback and index ``i`` applies when the end pattern's ``i``-th
    capture group took part in the match.

    Examples:
        CapturePredicate(True)()  # True
        CapturePredicate(True, (True, False)).evaluate(match, wrapper_group)
    """

    default: bool
    per_group: tuple[bool, ...] | None = None

    def __call__(self) -> bool:
        return self.default

    def evaluate(self, match: re.Match[str] | None, end_group: int | None) -> bool:
        if self.per_group is None or match is None or end_group is None:
            return self.default
        for index in range(1, len(self.per_group)):
            if match.group(end_group + index) is not None:
                return self.per_group[index]
        return self.per_group[0]


@dataclass(frozen=True, eq=False)
class Rule:
    """A compiled folding rule.

    Rules are created once per configuration load and shared read-only by
    every scan.

    Attributes:
        index: Stable index assigned at compile time.
        begin: Opening pattern (separator trigger for separator rules).
        middle: Optional pattern splitting the region into sections.
        end: Static closing pattern; None when the end is a template.
        while_: Pattern each following line must match (while and
            continuation rules).
        continuation: True for begin/continuation rules.
        consume_end: Whether the end's own line is the last line of the fold.
        fold_last_line: Whether that last line is included in the range.
        fold_bof: Separators only; fold the text before the first trigger.
        fold_eof: Close the region at end of document instead of dropping it.
        nested: Whether other regions may open while this one is innermost.
        strict: Ancestor constraint for ambiguous separator transitions.
        kind: Range kind reported to the editor.
        auto_fold: Ask the host to collapse the range after scanning.
        parents: Indices of enclosing rules (separator hierarchies).
        scope: Private scoped pattern for non-nested begin/end rules.
        end_template: Closing template for capture-driven ends.
        name: Label used in the diagnostic trace for scoped scans.
    """

    index: int
    begin: re.Pattern[str] | None = None
    middle: re.Pattern[str] | None = None
    end: re.Pattern[str] | None = None
    while_: re.Pattern[str] | None = None
    continuation: bool = False
    consume_end: CapturePredicate = CapturePredicate(True)
    fold_last_line: CapturePredicate = CapturePredicate(True)
    fold_bof: bool = False
    fold_eof: bool = False
    nested: bool = True
    strict: bool = True
    kind: FoldingRangeKind = FoldingRangeKind.REGION
    auto_fold: bool = False
    parents: tuple[int, ...] = ()
    scope: CompiledScope | None = None
    end_template: EndTemplate | None = None
    name: str | None = None


@dataclass
class StackItem:
    """An open region during a scan.

    Attributes:
        rule: Rule that opened the region.
        line: Line the region currently starts on (moves on MIDDLE).
        separator: True for separator scopes. Informational only; the
            scanner decides separator transitions from ``rule.parents``.
        variant: End-pattern variant id for capture-driven ends.
    """

    rule: Rule
    line: int
    separator: bool = False
    variant: int | None = None


@dataclass
class FoldingResult:
    """Structured result of folding one document.

    Attributes:
        ranges: Emitted ranges in emission order.
        auto_fold_lines: Opening lines of ranges whose rule asks for auto-fold.
        error: Fault that cut the scan short, or None.
    """

    ranges: list[FoldingRange] = field(default_factory=list)
    auto_fold_lines: list[int] = field(default_factory=list)
    error: Exception | None = None
