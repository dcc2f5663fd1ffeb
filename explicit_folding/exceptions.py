"""Package-specific exception types."""

from __future__ import annotations


class FoldingError(ValueError):
    """Base class for folding-related errors."""


class CompileError(FoldingError):
    """Raised when a rule's pattern cannot be used for scanning.

    Covers malformed patterns and patterns that match the empty string.

    Args:
        rule_index: Index the rule would have received.
        reason: Human readable description of the failure.
    """

    def __init__(self, rule_index: int, reason: str):
        self.rule_index = rule_index
        self.reason = reason
        super().__init__(f"Rule {rule_index}: {reason}")


class ScanError(FoldingError):
    """Raised when scanning a document fails unexpectedly.

    Represents faults encountered while matching; the ranges gathered before
    the fault are still returned to the caller.
    """


class NestingTooDeepError(ScanError):
    """Raised when nested scans exceed the configured depth.

    Args:
        line_number: Zero-based line where the limit was hit.
        limit: Maximum number of nested scan frames.
    """

    def __init__(self, line_number: int, limit: int):
        self.line_number = line_number
        self.limit = limit
        super().__init__(f"Nesting deeper than {limit} regions at line {line_number + 1}")
