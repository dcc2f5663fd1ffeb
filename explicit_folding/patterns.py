"""Pattern translation and composite pattern construction."""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

from .constants import (
    BACK_REFERENCE_PATTERN,
    LEADING_FLAGS_PATTERN,
    NAMED_GROUP_PATTERN,
    NEVER_MATCH,
    RESERVED_GROUP_NAME,
    TAG_GROUP_PATTERN,
)
from .models import Marker, Tag


def translate(source: str) -> str:
    """Rewrite an Oniguruma/JavaScript style pattern for the `re` module.

    Named groups ``(?<name>...)`` and named back references ``\\k<name>``
    are converted to Python syntax, and a leading global flag group such as
    ``(?i)`` is turned into a scoped group so the pattern can be embedded in
    a larger alternation.

    Args:
        source: Pattern text as written in the rule configuration.

    Returns:
        str: Equivalent pattern text accepted by `re.compile`.

    Raises:
        re.error: If the pattern uses a group name reserved for tags.

    Examples:
        translate("(?<tag>\\\\w+)")  # "(?P<tag>\\\\w+)"
        translate("(?i)begin")  # "(?i:begin)"
    """

    def _rewrite(match: re.Match[str]) -> str:
        reference, definition = match.group(1), match.group(2)
        if reference:
            return f"(?P={reference})"
        if definition:
            if RESERVED_GROUP_NAME.match(definition):
                raise re.error(f"group name {definition!r} is reserved", source)
            return f"(?P<{definition}>"
        return match.group(0)

    translated = NAMED_GROUP_PATTERN.sub(_rewrite, source)

    flags = LEADING_FLAGS_PATTERN.match(translated)
    if flags:
        translated = f"(?{flags.group(1)}:{translated[flags.end():]})"

    return translated


def pattern_source(regex: str | None, literal: str | None) -> str | None:
    """Pick the pattern form of an option, preferring the regex form."""
    if regex:
        return translate(regex)
    if literal:
        return re.escape(literal)
    return None


def compile_pattern(source: str) -> re.Pattern[str]:
    """Compile a rule pattern, rejecting group names reserved for tags.

    Raises:
        re.error: If the pattern is malformed or uses a reserved group name.
    """
    pattern = re.compile(source)
    for name in pattern.groupindex:
        if RESERVED_GROUP_NAME.match(name):
            raise re.error(f"group name {name!r} is reserved", source)
    return pattern


def matches_empty(pattern: re.Pattern[str]) -> bool:
    """Whether the pattern can match the empty string.

    Such patterns would let the scanner spin without advancing.
    """
    return pattern.search("") is not None


@dataclass(frozen=True)
class EndTemplate:
    """Closing pattern whose text depends on captures of the opening match.

    Segments are either pattern source (kept as is) or the number of a
    capture group of the begin pattern, substituted literally at render time.

    Examples:
        template = EndTemplate.parse("</\\\\1>")
        template.render(["div"])  # "</div>"
    """

    segments: tuple[str | int, ...]

    @classmethod
    def parse(cls, source: str) -> EndTemplate | None:
        """Split `source` on ``\\N`` back references.

        Returns:
            EndTemplate | None: The template, or None when the source has no
            back references.
        """
        segments: list[str | int] = []
        last = 0
        for match in BACK_REFERENCE_PATTERN.finditer(source):
            if match.group(1) is None:
                continue
            segments.append(source[last : match.start()])
            segments.append(int(match.group(1)))
            last = match.end()
        if not segments:
            return None
        segments.append(source[last:])
        return cls(tuple(segment for segment in segments if segment != ""))

    @property
    def references(self) -> tuple[int, ...]:
        return tuple(segment for segment in self.segments if isinstance(segment, int))

    def render(self, captures: Sequence[str | None]) -> str:
        """Substitute captured text into the template.

        Args:
            captures: Captured text of the begin pattern's groups; index 0 is
                group 1. Groups that did not participate render as empty.

        Returns:
            str: Pattern source of the resolved closing pattern.
        """
        parts = []
        for segment in self.segments:
            if isinstance(segment, int):
                text = captures[segment - 1] if segment <= len(captures) else None
                parts.append(re.escape(text or ""))
            else:
                parts.append(segment)
        return "".join(parts)


def tagged(tag: Tag, source: str) -> str:
    """Wrap a fragment in a group whose name encodes `tag`."""
    return f"(?P<{tag.group_name}>{source})"


@dataclass(frozen=True, eq=False)
class CompiledScope:
    """A compiled composite pattern plus its tag table.

    The tag table maps each tagged group's index to the marker, rule and
    variant it stands for, so a match can be traced back to one fragment and
    the fragment's own capture groups located as ``group + n``.

    Attributes:
        pattern: Compiled alternation of tagged fragments.
        tags: ``(group index, tag)`` pairs ordered by group index.
    """

    pattern: re.Pattern[str]
    tags: tuple[tuple[int, Tag], ...]

    @classmethod
    def compile(cls, source: str) -> CompiledScope:
        pattern = re.compile(source or NEVER_MATCH)
        tags = []
        for name, group in pattern.groupindex.items():
            parsed = TAG_GROUP_PATTERN.match(name)
            if parsed is None:
                continue
            marker, rule_index, variant = parsed.groups()
            tags.append(
                (
                    group,
                    Tag(
                        Marker(int(marker)),
                        int(rule_index),
                        int(variant) if variant is not None else None,
                    ),
                )
            )
        tags.sort(key=lambda item: item[0])
        return cls(pattern, tuple(tags))

    @property
    def source(self) -> str:
        return self.pattern.pattern

    def decode(self, match: re.Match[str]) -> tuple[Tag, int] | None:
        """Find which tagged fragment produced `match`.

        Returns:
            tuple[Tag, int] | None: The tag and its group index.
        """
        for group, tag in self.tags:
            if match.start(group) != -1:
                return tag, group
        return None

    def with_end_variant(self, tag: Tag, end_source: str) -> CompiledScope:
        """Build a scope matching a resolved closing pattern ahead of this one."""
        return CompiledScope.compile(f"{tagged(tag, end_source)}|{self.source}")


class ScopeBuilder:
    """Accumulate tagged fragments into one alternation.

    Each fragment is compiled on its own before it is accepted, so a bad
    fragment is rejected without invalidating the fragments before it.
    """

    def __init__(self):
        self.fragments: list[str] = []
        self._names: set[str] = set()

    def check(self, fragment: str) -> set[str]:
        """Validate `fragment` against the scope without adding it.

        Returns:
            set[str]: Group names the fragment defines.

        Raises:
            re.error: If the fragment is malformed or reuses a group name.
        """
        names = set(re.compile(fragment).groupindex)
        clashes = names & self._names
        if clashes:
            raise re.error(f"duplicate group names {sorted(clashes)}", fragment)
        return names

    def add(self, fragment: str) -> None:
        self._names |= self.check(fragment)
        self.fragments.append(fragment)

    def build(self) -> CompiledScope:
        return CompiledScope.compile("|".join(self.fragments))
