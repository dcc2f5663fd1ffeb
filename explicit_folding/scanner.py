"""Line-by-line scanning of a document against compiled rules."""

from __future__ import annotations

import re
from dataclasses import dataclass

from .compiler import CompiledRules
from .constants import DEFAULT_MAX_NESTING_DEPTH
from .document import Document
from .end_cache import EndPatternCache, EndVariant
from .exceptions import NestingTooDeepError, ScanError
from .models import FoldingRange, FoldingResult, Marker, Position, Rule, StackItem, Tag
from .patterns import CompiledScope
from .utils.logger import get_logger

logger = get_logger(__name__)


class ScanSession:
    """Transient state of one document scan.

    Holds the emitted ranges, the auto-fold worklist and the end-pattern
    cache. A session is created per scan and discarded afterwards; it is
    never shared between documents.

    Attributes:
        document: Document being scanned.
        ranges: Ranges emitted so far.
        auto_fold_lines: Opening lines of ranges to collapse after the scan.
        end_patterns: Variants of capture-driven closing patterns.
        error: Fault that cut the scan short, or None.
    """

    def __init__(self, document: Document):
        self.document = document
        self.ranges: list[FoldingRange] = []
        self.auto_fold_lines: list[int] = []
        self.end_patterns = EndPatternCache()
        self.error: ScanError | None = None

    def emit(self, rule: Rule, begin: int, end: int) -> None:
        self.ranges.append(FoldingRange(begin, end, rule.kind))
        if rule.auto_fold:
            self.auto_fold_lines.append(begin)

    def close(self, rule: Rule, begin: int, end: int, fold_last_line: bool) -> None:
        """Emit ``[begin, end]``, or ``[begin, end - 1]`` without the last line.

        Nothing is emitted unless the range folds at least one line.
        """
        if fold_last_line:
            if end > begin:
                self.emit(rule, begin, end)
        elif end > begin + 1:
            self.emit(rule, begin, end - 1)

    def result(self) -> FoldingResult:
        return FoldingResult(
            ranges=list(self.ranges),
            auto_fold_lines=list(self.auto_fold_lines),
            error=self.error,
        )


@dataclass
class _Frame:
    """One level of nested scanning.

    The bottom frame scans with the top-level pattern. A frame is pushed
    when a non-nested or capture-driven region opens, and popped once its
    stack empties or the document ends.
    """

    scope: CompiledScope
    name: str
    stack: list[StackItem]
    nested_scan: bool = False
    owned_variant: EndVariant | None = None
    scoped: bool = False

    def may_open(self) -> bool:
        """Whether a region may open at the current depth.

        The owner of a private scope admits the children whitelisted in it.
        """
        if not self.stack or self.stack[-1].rule.nested:
            return True
        return self.scoped and len(self.stack) == 1


class ScanEngine:
    """Walk a document with the compiled patterns and emit folding ranges.

    Open regions are kept on explicit stacks, innermost last, and nested
    scans on an explicit frame list, so deep nesting never grows the Python
    call stack.

    Args:
        compiled: Output of `compile_rules`.
        max_nesting_depth: Maximum number of nested scan frames.

    Examples:
        engine = ScanEngine(compile_rules(rules))
        session = ScanSession(TextDocument(text))
        engine.scan(session)
    """

    def __init__(
        self, compiled: CompiledRules, max_nesting_depth: int = DEFAULT_MAX_NESTING_DEPTH
    ):
        self.compiled = compiled
        self.rules = compiled.rules
        self.max_nesting_depth = max_nesting_depth

    def scan(self, session: ScanSession) -> None:
        """Run the explicit pass over `session.document`.

        Raises:
            ScanError: If matching fails; ranges emitted before the fault stay
                in the session.
        """
        line_count = session.document.line_count
        frames = [_Frame(self.compiled.main, "main", [])]
        position = Position(0, 0)

        try:
            while True:
                frame = frames[-1]
                if len(frames) > 1 and not frame.stack:
                    self._leave(session, frames.pop())
                    continue
                if position.line >= line_count:
                    break
                position = self._scan_line(session, frames, position)

            # Regions still open, outermost frame first
            for frame in frames:
                self._close_at_eof(session, frame.stack)
            while len(frames) > 1:
                self._leave(session, frames.pop())
        except ScanError:
            raise
        except Exception as error:
            raise ScanError(f"Scanning failed at line {position.line + 1}: {error}") from error

    def _leave(self, session: ScanSession, frame: _Frame) -> None:
        if frame.owned_variant is not None:
            session.end_patterns.release(frame.owned_variant)

    def _push_frame(self, frames: list[_Frame], frame: _Frame, line: int) -> None:
        if len(frames) >= self.max_nesting_depth:
            raise NestingTooDeepError(line, self.max_nesting_depth)
        frames.append(frame)

    def _close_at_eof(self, session: ScanSession, stack: list[StackItem]) -> None:
        end = session.document.line_count
        for item in stack:
            if item.rule.fold_eof and end > item.line + 1:
                session.emit(item.rule, item.line, end - 1)
        stack.clear()

    def _scan_line(
        self, session: ScanSession, frames: list[_Frame], position: Position
    ) -> Position:
        frame = frames[-1]
        line = position.line
        text = session.document.line_text(line)
        offset = position.offset

        while True:
            match = frame.scope.pattern.search(text, offset)
            if match is None or match.end() == match.start():
                break
            offset = match.end()

            decoded = frame.scope.decode(match)
            if decoded is None:
                continue
            tag, group = decoded
            rule = self.rules[tag.rule_index]

            logger.debug(
                "[%s] line: %d, offset: %d, type: %s, match: %r, rule: %d",
                frame.name,
                line + 1,
                position.offset,
                tag.marker.name,
                match.group(0),
                rule.index,
            )

            if tag.marker is Marker.BEGIN:
                next_position = self._on_begin(session, frames, rule, group, match, line, text)
            elif tag.marker is Marker.MIDDLE:
                next_position = self._on_middle(session, frame, rule, line)
            elif tag.marker is Marker.END:
                next_position = self._on_end(session, frame, rule, tag, group, match, line)
            elif tag.marker is Marker.DOCSTRING:
                next_position = self._on_docstring(session, frame, rule, line)
            elif tag.marker is Marker.SEPARATOR:
                next_position = self._on_separator(session, frame, rule, line)
            else:
                next_position = self._consume_while(session, rule, line, continuation=False)

            if next_position is not None:
                return next_position

        return Position(line + 1, 0)

    def _on_begin(
        self,
        session: ScanSession,
        frames: list[_Frame],
        rule: Rule,
        group: int,
        match: re.Match[str],
        line: int,
        text: str,
    ) -> Position | None:
        frame = frames[-1]
        if not frame.may_open():
            return None

        if rule.end_template is not None:
            captures = match.groups()[group : group + rule.begin.groups]
            variant, created = session.end_patterns.resolve(rule, captures, frame.scope)
            self._push_frame(
                frames,
                _Frame(
                    scope=variant.scope if created else frame.scope,
                    name=frame.name,
                    stack=[StackItem(rule, line, variant=variant.variant_id)],
                    nested_scan=True,
                    owned_variant=variant if created else None,
                ),
                line,
            )
            return Position(line, match.end())

        if rule.scope is not None:
            logger.debug("[%s] regex: %s", rule.name, rule.scope.source)
            self._push_frame(
                frames,
                _Frame(
                    scope=rule.scope,
                    name=rule.name,
                    stack=[StackItem(rule, line)],
                    nested_scan=True,
                    scoped=True,
                ),
                line,
            )
            return Position(line, match.end())

        if rule.continuation:
            if not rule.while_.search(text):
                return Position(line + 1, 0)
            return self._consume_while(session, rule, line, continuation=True)

        if rule.while_ is not None:
            return self._consume_while(session, rule, line, continuation=False)

        frame.stack.append(StackItem(rule, line))
        return None

    def _on_middle(
        self, session: ScanSession, frame: _Frame, rule: Rule, line: int
    ) -> Position | None:
        stack = frame.stack
        if stack and stack[-1].rule is rule:
            if line > stack[-1].line + 1:
                session.emit(rule, stack[-1].line, line - 1)
            stack[-1].line = line
        return None

    def _on_end(
        self,
        session: ScanSession,
        frame: _Frame,
        rule: Rule,
        tag: Tag,
        group: int,
        match: re.Match[str],
        line: int,
    ) -> Position | None:
        stack = frame.stack

        # A nested scan always closes the occurrence that started it
        if frame.nested_scan and stack and stack[0].rule is rule:
            outermost = stack[0]
            if outermost.variant is not None and tag.variant != outermost.variant:
                stack.pop(0)
                return Position(line, match.start())

            begin = outermost.line
            end = line if rule.consume_end.evaluate(match, group) else max(line - 1, begin)
            for item in stack[1:]:
                session.close(item.rule, item.line, end, fold_last_line=False)
            stack.clear()
            session.close(rule, begin, end, rule.fold_last_line.evaluate(match, group))
            return Position(line, match.end())

        if stack and stack[-1].rule is rule:
            item = stack.pop()
            end = line if rule.consume_end.evaluate(match, group) else max(line - 1, item.line)
            session.close(rule, item.line, end, rule.fold_last_line.evaluate(match, group))

        return None

    def _on_docstring(
        self, session: ScanSession, frame: _Frame, rule: Rule, line: int
    ) -> Position | None:
        stack = frame.stack
        if stack and stack[-1].rule is rule:
            item = stack.pop()
            session.close(rule, item.line, line, rule.fold_last_line())
        elif frame.may_open():
            stack.append(StackItem(rule, line))
        return None

    def _on_separator(
        self, session: ScanSession, frame: _Frame, rule: Rule, line: int
    ) -> Position | None:
        stack = frame.stack

        if not stack:
            if rule.fold_bof:
                if line > 1:
                    session.emit(rule, 0, line - 1)
                stack.append(StackItem(rule, line, separator=True))
            elif not rule.parents:
                stack.append(StackItem(rule, line, separator=True))
            return None

        # Close descendant scopes of this separator, innermost first
        while stack and rule.index in stack[-1].rule.parents:
            item = stack.pop()
            if line > item.line + 1:
                session.emit(item.rule, item.line, line - 1)

        if not stack:
            if not rule.parents:
                stack.append(StackItem(rule, line, separator=True))
        elif stack[-1].rule is rule:
            if line > stack[-1].line + 1:
                session.emit(rule, stack[-1].line, line - 1)
            stack[-1].line = line
        elif stack[-1].rule.nested or (frame.nested_scan and len(stack) == 1):
            if self._separator_may_open(rule, stack):
                stack.append(StackItem(rule, line, separator=True))

        return None

    def _separator_may_open(self, rule: Rule, stack: list[StackItem]) -> bool:
        if not rule.parents:
            return True

        open_rules = {item.rule.index for item in stack}
        parent = rule.parents[-1]
        parent_rule = self.rules.get(parent)
        if parent_rule is not None and parent_rule.strict:
            return parent in open_rules
        return any(index in open_rules for index in rule.parents)

    def _consume_while(
        self, session: ScanSession, rule: Rule, line: int, continuation: bool
    ) -> Position:
        document = session.document
        begin = line
        fold_last_line = rule.fold_last_line()

        line += 1
        while line < document.line_count:
            if not rule.while_.search(document.line_text(line)):
                end = line if continuation else line - 1
                session.close(rule, begin, end, fold_last_line)
                if fold_last_line:
                    return Position(end + 1, 0)
                return Position(max(end, begin + 1), 0)
            line += 1

        session.close(rule, begin, document.line_count - 1, fold_last_line)
        return Position(document.line_count, 0)
