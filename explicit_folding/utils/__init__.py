"""Utility helpers for explicit-folding.

Modules:
- logger: get_logger for logging
"""

from explicit_folding.utils.logger import debug_trace, get_logger

__all__ = [
    "debug_trace",
    "get_logger",
]
