"""Constants used across the explicit-folding package."""

from __future__ import annotations

import re

# Tagged group names in composite patterns: _<marker>_<rule>[_<variant>]
TAG_GROUP_PATTERN = re.compile(r"^_(\d+)_(\d+)(?:_(\d+))?$")
RESERVED_GROUP_NAME = re.compile(r"^_\d")

# Back references in end templates; escaped characters are skipped over
BACK_REFERENCE_PATTERN = re.compile(r"\\(?:(\d+)|.)", re.DOTALL)

# Named group syntax from the Oniguruma/JavaScript dialect
NAMED_GROUP_PATTERN = re.compile(
    r"\\k<([A-Za-z_]\w*)>|\\.|\(\?<(?![=!])([A-Za-z_]\w*)>", re.DOTALL
)
LEADING_FLAGS_PATTERN = re.compile(r"^\(\?([aiLmsux]+)\)")

# Pattern that never matches, used for empty scopes
NEVER_MATCH = r"(?!)"

DEFAULT_TAB_SIZE = 4
DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024
DEFAULT_MAX_NESTING_DEPTH = 10_000
