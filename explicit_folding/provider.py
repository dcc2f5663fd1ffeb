"""Folding provider: compiled rules plus per-document scan sessions."""

from __future__ import annotations

from collections.abc import Callable, Iterable

from .compiler import compile_rules
from .constants import DEFAULT_MAX_NESTING_DEPTH, DEFAULT_TAB_SIZE
from .document import Document, TextDocument
from .exceptions import ScanError
from .indentation import resolve_indentation_ranges
from .models import FoldingRange, FoldingResult
from .scanner import ScanEngine, ScanSession
from .utils.logger import get_logger

logger = get_logger(__name__)

FoldCommand = Callable[[list[int]], None]


class FoldingProvider:
    """Compute folding ranges for documents from one rule set.

    Rules are compiled once and shared by every call; each call scans with
    its own `ScanSession`, so documents can be folded independently.

    Args:
        rules: Rule configurations (mappings or `RuleConfig`).
        tab_size: Tab width used by the indentation fallback.
        max_nesting_depth: Maximum number of nested scans per document.
        auto_fold_documents: Documents to collapse the first time they are
            folded.
        fold_command: Host callback receiving the lines to collapse.

    Examples:
        provider = FoldingProvider([{"begin": "{", "end": "}"}])
        ranges = provider.provide_folding_ranges(TextDocument("{\\n  x\\n}"))
    """

    def __init__(
        self,
        rules: Iterable[object],
        *,
        tab_size: int = DEFAULT_TAB_SIZE,
        max_nesting_depth: int = DEFAULT_MAX_NESTING_DEPTH,
        auto_fold_documents: Iterable[Document] = (),
        fold_command: FoldCommand | None = None,
    ):
        self.compiled = compile_rules(rules)
        self.engine = ScanEngine(self.compiled, max_nesting_depth)
        self.tab_size = tab_size
        self.fold_command = fold_command
        self._pending_auto_fold: list[Document] = list(auto_fold_documents)

    def add_auto_fold_document(self, document: Document) -> None:
        """Collapse `document`'s auto-fold regions the next time it is folded."""
        if document not in self._pending_auto_fold:
            self._pending_auto_fold.append(document)

    def fold(self, document: Document) -> FoldingResult:
        """Scan `document` and return ranges plus auto-fold lines.

        Never raises for scan faults: the result carries the ranges computed
        before the fault and the error itself.
        """
        logger.debug("[document] %r", document)
        session = ScanSession(document)

        try:
            self.engine.scan(session)
            if self.compiled.use_indentation:
                session.ranges.extend(
                    resolve_indentation_ranges(
                        document, session.ranges, self.tab_size, self.compiled.off_side
                    )
                )
        except ScanError as error:
            logger.error("Folding aborted: %s", error, exc_info=True)
            session.error = error
        except Exception as error:
            logger.error("Folding aborted: %s", error, exc_info=True)
            session.error = ScanError(str(error))
            session.error.__cause__ = error

        logger.debug(
            "[document] foldings: %s", [folding_range.to_dict() for folding_range in session.ranges]
        )
        return session.result()

    def provide_folding_ranges(self, document: Document) -> list[FoldingRange]:
        """Return the ranges for `document`, auto-folding it if pending."""
        result = self.fold(document)

        if document in self._pending_auto_fold:
            self._pending_auto_fold.remove(document)
            if result.auto_fold_lines and self.fold_command is not None:
                self.fold_command(list(result.auto_fold_lines))

        return result.ranges


def fold_document(
    text: str,
    rules: Iterable[object],
    tab_size: int = DEFAULT_TAB_SIZE,
    max_nesting_depth: int = DEFAULT_MAX_NESTING_DEPTH,
) -> FoldingResult:
    """Fold `text` with `rules` in one call.

    Args:
        text: Document text.
        rules: Rule configurations.
        tab_size: Tab width used by the indentation fallback.
        max_nesting_depth: Maximum number of nested scans.

    Returns:
        FoldingResult: Ranges, auto-fold lines and scan error (if any).

    Examples:
        fold_document("{\\n  x\\n}", [{"begin": "{", "end": "}"}]).ranges
        # [FoldingRange(start=0, end=2, kind=FoldingRangeKind.REGION)]
    """
    provider = FoldingProvider(rules, tab_size=tab_size, max_nesting_depth=max_nesting_depth)
    return provider.fold(TextDocument(text))
