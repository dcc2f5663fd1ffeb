"""Reading documents from disk for the CLI."""

from __future__ import annotations

import os
import stat
from pathlib import Path

from .constants import DEFAULT_MAX_FILE_SIZE
from .document import TextDocument

ENV_PREFIX = "EXPLICIT_FOLDING_"


def env_limit(setting: str, default: int) -> int:
    """Read a positive integer limit from the environment.

    The variable name is `ENV_PREFIX` followed by `setting` in upper case.

    Args:
        setting: Configuration field name, e.g. ``"max_file_size"``.
        default: Value used when the variable is unset.

    Returns:
        int: The limit.

    Raises:
        ValueError: If the variable is set to anything but a positive integer.

    Examples:
        os.environ["EXPLICIT_FOLDING_MAX_NESTING_DEPTH"] = "64"
        env_limit("max_nesting_depth", 10_000)  # 64
    """
    variable = f"{ENV_PREFIX}{setting.upper()}"
    raw_value = os.environ.get(variable)
    if raw_value is None:
        return default

    try:
        value = int(raw_value)
    except ValueError:
        value = 0
    if value <= 0:
        error_message = f"{variable} must be a positive integer, got {raw_value!r}."
        raise ValueError(error_message)
    return value


def resolve_document_path(raw_path: str) -> Path:
    """Expand ``~`` and resolve the path of a document to fold.

    Raises:
        ValueError: If nothing exists at the path or it is not a regular file.
    """
    path = Path(raw_path).expanduser()

    try:
        resolved = path.resolve(strict=True)
    except FileNotFoundError as error:
        raise ValueError(f"{path} does not exist.") from error
    except OSError as error:
        raise ValueError(f"Cannot resolve {path}: {error}") from error

    if not resolved.is_file():
        raise ValueError(f"{resolved} is not a regular file.")
    return resolved


def regular_file_size(filepath: Path) -> int:
    """Size in bytes of `filepath`, which must be a regular file.

    FIFOs, sockets and devices are refused before anything reads from them.

    Raises:
        IOError: If the path cannot be stat'ed or is not a regular file.
    """
    try:
        file_stat = os.stat(filepath)
    except OSError as error:
        raise IOError(f"Cannot access {filepath}: {error}") from error

    if not stat.S_ISREG(file_stat.st_mode):
        raise IOError(f"{filepath} is not a regular file.")
    return file_stat.st_size


def read_document(filepath: Path, max_size: int = DEFAULT_MAX_FILE_SIZE) -> TextDocument:
    """Load `filepath` as a `TextDocument`.

    Line endings are read untranslated so lines are counted the way an
    editor counts them.

    Args:
        filepath: Resolved path of the document.
        max_size: Largest accepted size in bytes.

    Returns:
        TextDocument: The document, with its ``file://`` URI.

    Raises:
        IOError: If the file is not regular, exceeds `max_size`, cannot be
            read, or is not valid UTF-8.
    """
    size = regular_file_size(filepath)
    if size > max_size:
        raise IOError(f"{filepath} is {size} bytes, over the {max_size} byte limit.")

    try:
        with open(filepath, encoding="utf-8", newline="") as stream:
            content = stream.read()
    except UnicodeDecodeError as error:
        raise IOError(f"{filepath} is not valid UTF-8: {error}") from error
    except OSError as error:
        raise IOError(f"Cannot read {filepath}: {error}") from error

    return TextDocument(content, uri=filepath.as_uri())
