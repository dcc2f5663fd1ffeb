from __future__ import annotations

import re

import pytest

from explicit_folding.models import Marker, Tag
from explicit_folding.patterns import (
    CompiledScope,
    EndTemplate,
    ScopeBuilder,
    compile_pattern,
    pattern_source,
    tagged,
    translate,
)


@pytest.mark.parametrize(
    ("source", "expected"),
    [
        ("(?<tag>\\w+)", "(?P<tag>\\w+)"),
        ("(?<a>x)\\k<a>", "(?P<a>x)(?P=a)"),
        ("(?<=a)b(?<!c)", "(?<=a)b(?<!c)"),
        ("\\(?<a>", "\\(?<a>"),
        ("(?i)begin", "(?i:begin)"),
        ("^plain$", "^plain$"),
    ],
)
def test_translate(source: str, expected: str):
    assert translate(source) == expected


def test_translate_rejects_reserved_names():
    with pytest.raises(re.error):
        translate("(?<_3_1>x)")


def test_compile_pattern_rejects_reserved_python_names():
    with pytest.raises(re.error):
        compile_pattern("(?P<_1_0>x)")


def test_pattern_source_prefers_regex():
    assert pattern_source("a+", "b") == "a+"
    assert pattern_source(None, "a+") == re.escape("a+")
    assert pattern_source("", None) is None


def test_end_template_substitutes_escaped_captures():
    template = EndTemplate.parse("</\\1>")

    assert template.render(["div"]) == "</div>"
    assert template.render(["a.b"]) == "</a\\.b>"
    assert template.render([None]) == "</>"


def test_end_template_keeps_escaped_backslashes():
    assert EndTemplate.parse("\\\\1") is None
    assert EndTemplate.parse("\\d+") is None


def test_end_template_keeps_pattern_source():
    template = EndTemplate.parse("^\\s*end \\1\\b")

    assert template.segments == ("^\\s*end ", 1, "\\b")
    assert re.search(template.render(["loop"]), "  end loop") is not None


def test_scope_decodes_tags_and_capture_offsets():
    scope = CompiledScope.compile(
        "|".join(
            [
                tagged(Tag(Marker.BEGIN, 0), "<(\\w+)>"),
                tagged(Tag(Marker.END, 1), "end"),
            ]
        )
    )

    match = scope.pattern.search("x <div>")
    tag, group = scope.decode(match)

    assert tag == Tag(Marker.BEGIN, 0)
    assert match.group(group + 1) == "div"
    assert scope.decode(scope.pattern.search("the end")) == (Tag(Marker.END, 1), 3)


def test_empty_scope_never_matches():
    scope = ScopeBuilder().build()

    assert scope.tags == ()
    assert scope.pattern.search("anything") is None


def test_end_variant_is_tried_first():
    scope = CompiledScope.compile(tagged(Tag(Marker.BEGIN, 0), "<(\\w+)>"))

    variant = scope.with_end_variant(Tag(Marker.END, 0, 2), "</div>")

    assert variant.tags[0] == (1, Tag(Marker.END, 0, 2))
    assert variant.decode(variant.pattern.search("</div>"))[0].variant == 2


def test_scope_builder_rejects_duplicate_names():
    builder = ScopeBuilder()
    builder.add("(?P<name>a)")

    with pytest.raises(re.error):
        builder.add("(?P<name>b)")

    assert builder.fragments == ["(?P<name>a)"]
