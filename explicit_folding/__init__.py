"""
explicit-folding: folding ranges from declarative line-matching rules.

This package can be used both as a CLI tool and as a library.

CLI Usage:
    explicit-folding src/main.c --rules c.toml

Library Usage:
    from explicit_folding import FoldingProvider, TextDocument

    provider = FoldingProvider([{"beginRegex": "\\\\{", "endRegex": "\\\\}"}])
    ranges = provider.provide_folding_ranges(TextDocument(text))
"""

from .compiler import CompiledRules, compile_rules
from .config import ConfigError, FoldingConfig, RuleConfig, rule_config_from_mapping
from .document import Document, TextDocument
from .exceptions import CompileError, FoldingError, NestingTooDeepError, ScanError
from .indentation import compute_indent_level, resolve_indentation_ranges
from .models import FoldingRange, FoldingRangeKind, FoldingResult, Marker
from .provider import FoldingProvider, fold_document

__version__ = "0.1.0"

__all__ = [
    # Core functionality
    "FoldingProvider",
    "fold_document",
    "compile_rules",
    "resolve_indentation_ranges",
    "compute_indent_level",
    # Data models
    "CompiledRules",
    "Document",
    "FoldingConfig",
    "FoldingRange",
    "FoldingRangeKind",
    "FoldingResult",
    "Marker",
    "RuleConfig",
    "TextDocument",
    "rule_config_from_mapping",
    # Exceptions
    "CompileError",
    "ConfigError",
    "FoldingError",
    "NestingTooDeepError",
    "ScanError",
    # Version
    "__version__",
]
