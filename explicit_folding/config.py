"""Configuration loading and management."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
import tomllib

from .constants import DEFAULT_MAX_FILE_SIZE, DEFAULT_MAX_NESTING_DEPTH, DEFAULT_TAB_SIZE
from .exceptions import FoldingError


class ConfigError(FoldingError):
    """Exception raised when configuration values are invalid.

    Attributes:
        args: Arguments provided to the underlying `ValueError`.

    Examples:
        raise ConfigError("`tab_size` must be a positive integer")
    """


@dataclass(frozen=True)
class RuleConfig:
    """One folding rule as written by the user.

    Exactly one shape is selected from the populated fields, in this order:
    docstring (begin equals end), begin/end(/middle), begin/continuation,
    begin/while, bare while, separator, indentation directive. Literal fields
    (``begin``, ``end``...) are matched verbatim; ``*_regex`` fields are
    patterns.

    Attributes:
        name: Label for the diagnostic trace.
        nested: True/False, or the child rules permitted inside the region.
        strict: Ancestor constraint for separators; ``"never"`` disables it
            for this rule and its children.
        fold_bof: Separators only; fold the text before the first trigger.
        fold_eof: Fold a region still open at end of document.
        fold_last_line: Include the closing line, or one flag per end
            capture group (index 0 is the fallback).
        consume_end: Fold up to the end's own line rather than the line
            before it; same array form as `fold_last_line`.
        auto_fold: Collapse the region once the document is first folded.
        kind: ``"comment"`` or ``"region"``.
        descendants: Child rules of a separator.
        indentation: Enable the indentation fallback.
        off_side: Attach blank lines to the block below them.

    Examples:
        RuleConfig(begin="{", end="}")
        RuleConfig(begin_regex=r"^def\\b", while_regex=r"^\\s")
    """

    name: str | None = None

    begin: str | None = None
    begin_regex: str | None = None
    middle: str | None = None
    middle_regex: str | None = None
    end: str | None = None
    end_regex: str | None = None
    continuation: str | None = None
    continuation_regex: str | None = None
    while_: str | None = None
    while_regex: str | None = None
    separator: str | None = None
    separator_regex: str | None = None

    nested: bool | tuple[RuleConfig, ...] | None = None
    strict: bool | str | None = None
    fold_bof: bool | None = None
    fold_eof: bool | None = None
    fold_last_line: bool | tuple[bool, ...] | None = None
    consume_end: bool | tuple[bool, ...] | None = None
    auto_fold: bool = False
    kind: str | None = None
    descendants: tuple[RuleConfig, ...] | None = None

    indentation: bool = False
    off_side: bool = False


@dataclass
class FoldingConfig:
    """Configuration for folding documents.

    Attributes:
        tab_size: Columns a tab advances to in the indentation fallback.
        max_file_size: Maximum file size in bytes that will be processed.
        max_nesting_depth: Maximum number of nested scans per document.
        rules: Rule configurations, raw mappings or `RuleConfig` instances.

    Examples:
        FoldingConfig(tab_size=2, rules=[{"begin": "{", "end": "}"}])
    """

    tab_size: int = DEFAULT_TAB_SIZE
    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    max_nesting_depth: int = DEFAULT_MAX_NESTING_DEPTH
    rules: list[object] = field(default_factory=list)


_RULE_FIELDS = frozenset(item.name for item in fields(RuleConfig))

# Keys of the editor settings schema
_CAMEL_CASE_KEYS = {
    "beginRegex": "begin_regex",
    "middleRegex": "middle_regex",
    "endRegex": "end_regex",
    "continuationRegex": "continuation_regex",
    "whileRegex": "while_regex",
    "separatorRegex": "separator_regex",
    "foldBOF": "fold_bof",
    "foldEOF": "fold_eof",
    "foldLastLine": "fold_last_line",
    "consumeEnd": "consume_end",
    "autoFold": "auto_fold",
    "offSide": "off_side",
    "while": "while_",
}

_PATTERN_FIELDS = (
    "name",
    "begin",
    "begin_regex",
    "middle",
    "middle_regex",
    "end",
    "end_regex",
    "continuation",
    "continuation_regex",
    "while_",
    "while_regex",
    "separator",
    "separator_regex",
)


def rule_config_from_mapping(raw_rule: object) -> RuleConfig:
    """Build a `RuleConfig` from a settings mapping.

    Accepts both snake_case keys and the camelCase keys of the editor
    settings schema. Child rules under ``nested`` and ``descendants`` are
    converted recursively.

    Args:
        raw_rule: Mapping read from TOML/JSON settings, or a `RuleConfig`.

    Returns:
        RuleConfig: Immutable rule configuration.

    Raises:
        ConfigError: If the mapping has unsupported keys or option shapes.

    Examples:
        rule_config_from_mapping({"beginRegex": "\\\\{", "endRegex": "\\\\}"})
    """
    if isinstance(raw_rule, RuleConfig):
        return raw_rule
    if not isinstance(raw_rule, Mapping):
        raise ConfigError(f"Rule must be a table, got {type(raw_rule).__name__}")

    values: dict[str, object] = {}
    for key, value in raw_rule.items():
        name = _CAMEL_CASE_KEYS.get(key, key)
        if name not in _RULE_FIELDS:
            raise ConfigError(f"Unsupported rule key `{key}`")
        values[name] = value

    for name in _PATTERN_FIELDS:
        if values.get(name) is not None and not isinstance(values[name], str):
            raise ConfigError(f"`{name}` must be a string")

    nested = values.get("nested")
    if nested is not None and not isinstance(nested, bool):
        values["nested"] = _children(nested, "nested")
    if values.get("descendants") is not None:
        values["descendants"] = _children(values["descendants"], "descendants")

    strict = values.get("strict")
    if strict is not None and not isinstance(strict, bool) and strict != "never":
        raise ConfigError('`strict` must be a boolean or "never"')

    for name in ("fold_last_line", "consume_end"):
        value = values.get(name)
        if value is None or isinstance(value, bool):
            continue
        if isinstance(value, (list, tuple)) and value and all(isinstance(v, bool) for v in value):
            values[name] = tuple(value)
            continue
        raise ConfigError(f"`{name}` must be a boolean or a non-empty list of booleans")

    for name in ("fold_bof", "fold_eof"):
        if values.get(name) is not None and not isinstance(values[name], bool):
            raise ConfigError(f"`{name}` must be a boolean")
    for name in ("auto_fold", "indentation", "off_side"):
        if name in values and not isinstance(values[name], bool):
            raise ConfigError(f"`{name}` must be a boolean")

    if values.get("kind") not in (None, "comment", "region"):
        raise ConfigError('`kind` must be "comment" or "region"')

    return RuleConfig(**values)


def _children(value: object, key: str) -> tuple[RuleConfig, ...]:
    if not isinstance(value, (list, tuple)):
        raise ConfigError(f"`{key}` must be a list of rules")
    return tuple(rule_config_from_mapping(child) for child in value)


# Files searched in each directory, with the tables they may hold
_CONFIG_SOURCES = (
    ("pyproject.toml", (("tool", "explicit-folding"),)),
    (".explicit-folding.toml", (("explicit-folding",), ("tool", "explicit-folding"))),
)

_LIMIT_FIELDS = ("tab_size", "max_file_size", "max_nesting_depth")

_MISSING = object()


def load_config(search_path: Path) -> FoldingConfig:
    """Find the configuration that applies to files under `search_path`.

    Each directory from `search_path` up to the filesystem root is checked
    for a ``[tool.explicit-folding]`` table in `pyproject.toml`, then for an
    ``[explicit-folding]`` (or ``[tool.explicit-folding]``) table in
    `.explicit-folding.toml`. The first table found wins, even when empty.
    Files that are not valid TOML are ignored.

    Args:
        search_path: Directory of the document being folded.

    Returns:
        FoldingConfig: The nearest configuration, or the defaults.

    Raises:
        ConfigError: If the nearest table is not a table or has unknown keys.

    Examples:
        load_config(Path("src"))
    """
    start = search_path.resolve()
    for directory in (start, *start.parents):
        for filename, table_paths in _CONFIG_SOURCES:
            config_file = directory / filename
            raw_config = _read_table(config_file, table_paths)
            if raw_config is not _MISSING:
                return _config_from_table(raw_config, config_file)

    return FoldingConfig()


def load_rules_file(rules_file: Path) -> list[object]:
    """Read a standalone rule set.

    The file holds a top-level ``rules`` array, optionally nested under an
    ``[explicit-folding]`` table.

    Args:
        rules_file: TOML file holding the rules.

    Returns:
        list[object]: Raw rule mappings, compiled later one by one.

    Raises:
        ConfigError: If the file cannot be read or has no rules array.
    """
    try:
        data = _read_toml(rules_file)
    except (OSError, tomllib.TOMLDecodeError) as error:
        raise ConfigError(f"Cannot read rules from {rules_file}: {error}") from error

    table = _lookup(data, ("explicit-folding",))
    if table is _MISSING:
        table = data
    rules = table.get("rules") if isinstance(table, dict) else None
    if not isinstance(rules, list):
        raise ConfigError(f"{rules_file} does not define a `rules` array")
    return rules


def _read_toml(path: Path) -> dict[str, object]:
    with open(path, "rb") as stream:
        return tomllib.load(stream)


def _read_table(config_file: Path, table_paths: tuple[tuple[str, ...], ...]) -> object:
    if not config_file.is_file():
        return _MISSING
    try:
        data = _read_toml(config_file)
    except (OSError, tomllib.TOMLDecodeError):
        return _MISSING

    for table_path in table_paths:
        table = _lookup(data, table_path)
        if table is not _MISSING:
            return table
    return _MISSING


def _lookup(data: object, keys: tuple[str, ...]) -> object:
    for key in keys:
        if not isinstance(data, dict) or key not in data:
            return _MISSING
        data = data[key]
    return data


def _config_from_table(raw_config: object, config_file: Path) -> FoldingConfig:
    if raw_config is None or raw_config == {}:
        return FoldingConfig()
    if not isinstance(raw_config, dict):
        raise ConfigError(f"Folding settings in {config_file} must be a table")

    try:
        return FoldingConfig(**raw_config)
    except TypeError as error:
        unknown = sorted(set(raw_config) - {item.name for item in fields(FoldingConfig)})
        raise ConfigError(f"Unsupported folding settings {unknown} in {config_file}") from error


def validate_config(config: FoldingConfig) -> None:
    """Check the numeric limits and the shape of `rules`.

    Individual rules are not validated here; a malformed rule is dropped at
    compile time without affecting the others.

    Raises:
        ConfigError: If a limit is not a positive integer or `rules` is not
            a list.

    Examples:
        validate_config(FoldingConfig(tab_size=2))
    """
    for name in _LIMIT_FIELDS:
        value = getattr(config, name)
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ConfigError(f"`{name}` must be a positive integer")

    if not isinstance(config.rules, (list, tuple)):
        raise ConfigError("`rules` must be a list of rule tables")


def build_config(search_path: Path, **overrides: object) -> FoldingConfig:
    """Load the configuration for `search_path`, then apply and validate overrides.

    Args:
        search_path: Directory of the document being folded.
        overrides: Replacement values for `FoldingConfig` fields; None means
            "keep the loaded value".

    Returns:
        FoldingConfig: Validated configuration.

    Raises:
        ConfigError: If the configuration cannot be loaded or is invalid.

    Examples:
        config = build_config(Path.cwd(), tab_size=2)
    """
    config = load_config(search_path)
    changes = {name: value for name, value in overrides.items() if value is not None}
    if changes:
        config = replace(config, **changes)
    validate_config(config)
    return config
