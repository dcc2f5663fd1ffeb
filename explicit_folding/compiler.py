"""Compile rule configurations into rules and composite patterns."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from .config import ConfigError, RuleConfig, rule_config_from_mapping
from .exceptions import CompileError
from .models import CapturePredicate, FoldingRangeKind, Marker, Rule, Tag
from .patterns import (
    CompiledScope,
    EndTemplate,
    ScopeBuilder,
    compile_pattern,
    matches_empty,
    pattern_source,
    tagged,
)
from .utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True, eq=False)
class CompiledRules:
    """Output of a compilation pass, shared read-only by every scan.

    Attributes:
        rules: Compiled rules keyed by their index.
        main: Composite pattern for the top-level scope.
        use_indentation: Whether the indentation fallback runs after scanning.
        off_side: Whether blank lines attach to the block below them.
    """

    rules: Mapping[int, Rule]
    main: CompiledScope
    use_indentation: bool = False
    off_side: bool = False


def compile_rules(configurations: Iterable[object]) -> CompiledRules:
    """Compile rule configurations, left to right.

    Rules that fail to translate or compile, match the empty string, or have
    invalid options are skipped; the remaining rules are still compiled.

    Args:
        configurations: Rule mappings (editor settings schema) or `RuleConfig`
            instances.

    Returns:
        CompiledRules: Rules plus the top-level composite pattern.

    Examples:
        compiled = compile_rules([{"begin": "{", "end": "}"}])
    """
    return RuleCompiler().compile(configurations)


def _kind(config: RuleConfig) -> FoldingRangeKind:
    return FoldingRangeKind.COMMENT if config.kind == "comment" else FoldingRangeKind.REGION


def _strict(config: RuleConfig, inherited: bool) -> bool:
    if isinstance(config.strict, bool):
        return config.strict
    if config.strict == "never":
        return False
    return inherited


def _flag(value: bool | tuple[bool, ...] | None, default: bool) -> CapturePredicate:
    return CapturePredicate(value if isinstance(value, bool) else default)


class RuleCompiler:
    """Turn ordered rule configurations into `Rule` records.

    Each rule contributes a fragment to the scope it is compiled into (the
    top-level scope, or the private scope of a non-nested parent). Every
    fragment is wrapped in groups named after its marker and rule index.
    """

    def __init__(self):
        self.rules: dict[int, Rule] = {}
        self.use_indentation = False
        self.off_side = False
        self._next_index = 0

    def compile(self, configurations: Iterable[object]) -> CompiledRules:
        builder = ScopeBuilder()
        for configuration in configurations:
            self.add_rule(configuration, builder, strict=True, parents=())

        main = builder.build()
        logger.debug("[main] regex: %s", main.source)

        return CompiledRules(
            rules=dict(self.rules),
            main=main,
            use_indentation=self.use_indentation,
            off_side=self.off_side,
        )

    def add_rule(
        self,
        configuration: object,
        builder: ScopeBuilder,
        strict: bool,
        parents: tuple[int, ...],
    ) -> None:
        """Compile one configuration into `builder`, dropping it on failure."""
        index = self._next_index
        self._next_index += 1

        try:
            config = rule_config_from_mapping(configuration)
            self._add_config(config, index, builder, strict, parents)
        except re.error as error:
            logger.warning("Skipping rule %d: invalid pattern (%s)", index, error)
        except (CompileError, ConfigError) as error:
            logger.warning("Skipping rule %d: %s", index, error)

    def _add_config(
        self,
        config: RuleConfig,
        index: int,
        builder: ScopeBuilder,
        strict: bool,
        parents: tuple[int, ...],
    ) -> None:
        begin_source = pattern_source(config.begin_regex, config.begin)

        if begin_source is not None:
            if config.begin_regex:
                is_docstring = config.begin_regex == config.end_regex
            else:
                is_docstring = config.begin == config.end
            if is_docstring:
                self._add_docstring(config, index, begin_source, builder)
                return

            end_source = pattern_source(config.end_regex, config.end)
            continuation_source = pattern_source(config.continuation_regex, config.continuation)
            while_source = pattern_source(config.while_regex, config.while_)

            if end_source is not None:
                middle_source = pattern_source(config.middle_regex, config.middle)
                self._add_begin_end(
                    config, index, begin_source, middle_source, end_source, builder, strict, parents
                )
            elif continuation_source is not None:
                self._add_begin_while(
                    config, index, begin_source, f"(?:{continuation_source})$", builder, True
                )
            elif while_source is not None:
                self._add_begin_while(config, index, begin_source, while_source, builder, False)
            return

        while_source = pattern_source(config.while_regex, config.while_)
        if while_source is not None:
            self._add_while(config, index, while_source, builder)
            return

        separator_source = pattern_source(config.separator_regex, config.separator)
        if separator_source is not None:
            self._add_separator(config, index, separator_source, builder, strict, parents)
            return

        if config.indentation:
            self.use_indentation = True
            self.off_side = config.off_side

    def _pattern(self, index: int, source: str, role: str) -> re.Pattern[str]:
        pattern = compile_pattern(source)
        if matches_empty(pattern):
            raise CompileError(index, f"{role} pattern {source!r} matches the empty string")
        return pattern

    def _register(self, rule: Rule, fragment: str, builder: ScopeBuilder) -> None:
        builder.add(fragment)
        self.rules[rule.index] = rule

    def _add_docstring(
        self, config: RuleConfig, index: int, begin_source: str, builder: ScopeBuilder
    ) -> None:
        begin = self._pattern(index, begin_source, "begin")
        rule = Rule(
            index=index,
            begin=begin,
            fold_last_line=_flag(config.fold_last_line, True),
            fold_eof=config.fold_eof or False,
            nested=config.nested if isinstance(config.nested, bool) else True,
            kind=_kind(config),
            auto_fold=config.auto_fold,
            name=config.name,
        )
        self._register(rule, tagged(Tag(Marker.DOCSTRING, index), begin.pattern), builder)

    def _add_begin_end(
        self,
        config: RuleConfig,
        index: int,
        begin_source: str,
        middle_source: str | None,
        end_source: str,
        builder: ScopeBuilder,
        strict: bool,
        parents: tuple[int, ...],
    ) -> None:
        begin = self._pattern(index, begin_source, "begin")
        middle = self._pattern(index, middle_source, "middle") if middle_source else None

        template = None
        if config.end_regex and begin.groups:
            template = EndTemplate.parse(end_source)

        if template is not None:
            for reference in template.references:
                if not 1 <= reference <= begin.groups:
                    raise ConfigError(
                        f"end references group {reference} but begin has {begin.groups} groups"
                    )
            # Placeholder rendering stands in for the per-occurrence end
            end_probe = self._pattern(index, template.render(()), "end")
            end = None
        else:
            end = end_probe = self._pattern(index, end_source, "end")

        nested = config.nested if isinstance(config.nested, bool) else config.nested is None
        rule_strict = _strict(config, strict)

        end_group_count = 1 + end_probe.groups
        consume_end = self._capture_predicate(config.consume_end, end_group_count, "consume_end")
        fold_last_line = self._capture_predicate(
            config.fold_last_line, end_group_count, "fold_last_line"
        )

        middle_fragment = tagged(Tag(Marker.MIDDLE, index), middle.pattern) if middle else None
        end_fragment = tagged(Tag(Marker.END, index), end.pattern) if end else None

        fragments = [tagged(Tag(Marker.BEGIN, index), begin.pattern)]
        if nested or template is not None:
            if middle_fragment:
                fragments.append(middle_fragment)
            if end_fragment:
                fragments.append(end_fragment)
        fragment = "|".join(fragments)
        builder.check(fragment)

        children = config.nested if isinstance(config.nested, tuple) else ()
        strict_parent = False if config.strict == "never" else strict

        scope = None
        if not nested and template is None:
            scope_builder = ScopeBuilder()
            own = [item for item in (middle_fragment, end_fragment) if item]
            scope_builder.add("|".join(own))
            for child in children:
                self.add_rule(child, scope_builder, strict_parent, (*parents, index))
            scope = scope_builder.build()

        rule = Rule(
            index=index,
            begin=begin,
            middle=middle,
            end=end,
            consume_end=consume_end,
            fold_last_line=fold_last_line,
            fold_eof=config.fold_eof or False,
            nested=nested,
            strict=rule_strict,
            kind=_kind(config),
            auto_fold=config.auto_fold,
            scope=scope,
            end_template=template,
            name=config.name or (f"loop={index}" if not nested else None),
        )
        self._register(rule, fragment, builder)

        # Children of a non-strict parent may also open at the parent's level
        if not strict_parent:
            for child in children:
                self.add_rule(child, builder, False, (*parents, index))

    def _capture_predicate(
        self, value: bool | tuple[bool, ...] | None, group_count: int, key: str
    ) -> CapturePredicate:
        if not isinstance(value, tuple):
            return _flag(value, True)
        if len(value) != group_count:
            raise ConfigError(
                f"`{key}` lists {len(value)} values but the end pattern has "
                f"{group_count} groups (including the whole match)"
            )
        return CapturePredicate(value[0], value)

    def _add_begin_while(
        self,
        config: RuleConfig,
        index: int,
        begin_source: str,
        while_source: str,
        builder: ScopeBuilder,
        continuation: bool,
    ) -> None:
        begin = self._pattern(index, begin_source, "begin")
        while_ = self._pattern(index, while_source, "continuation" if continuation else "while")
        rule = Rule(
            index=index,
            begin=begin,
            while_=while_,
            continuation=continuation,
            fold_last_line=_flag(config.fold_last_line, True),
            fold_eof=config.fold_eof or False,
            nested=False,
            kind=_kind(config),
            auto_fold=config.auto_fold,
            name=config.name,
        )
        self._register(rule, tagged(Tag(Marker.BEGIN, index), begin.pattern), builder)

    def _add_while(
        self, config: RuleConfig, index: int, while_source: str, builder: ScopeBuilder
    ) -> None:
        while_ = self._pattern(index, while_source, "while")
        rule = Rule(
            index=index,
            while_=while_,
            fold_last_line=_flag(config.fold_last_line, True),
            fold_eof=config.fold_eof or False,
            nested=False,
            kind=_kind(config),
            auto_fold=config.auto_fold,
            name=config.name,
        )
        self._register(rule, tagged(Tag(Marker.WHILE, index), while_.pattern), builder)

    def _add_separator(
        self,
        config: RuleConfig,
        index: int,
        separator_source: str,
        builder: ScopeBuilder,
        strict: bool,
        parents: tuple[int, ...],
    ) -> None:
        separator = self._pattern(index, separator_source, "separator")
        rule = Rule(
            index=index,
            begin=separator,
            fold_last_line=CapturePredicate(False),
            fold_bof=config.fold_bof if config.fold_bof is not None else True,
            fold_eof=config.fold_eof if config.fold_eof is not None else True,
            nested=config.nested if isinstance(config.nested, bool) else True,
            strict=_strict(config, strict),
            kind=_kind(config),
            auto_fold=config.auto_fold,
            parents=parents,
            name=config.name,
        )
        self._register(rule, tagged(Tag(Marker.SEPARATOR, index), separator.pattern), builder)

        descendants = config.descendants
        if descendants is None and isinstance(config.nested, tuple):
            descendants = config.nested
        child_strict = False if config.strict == "never" else strict
        for child in descendants or ():
            self.add_rule(child, builder, child_strict, (*parents, index))
