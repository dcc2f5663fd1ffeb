from __future__ import annotations

import pytest

from explicit_folding.compiler import compile_rules
from explicit_folding.document import TextDocument
from explicit_folding.exceptions import NestingTooDeepError, ScanError
from explicit_folding.models import FoldingRangeKind
from explicit_folding.scanner import ScanEngine, ScanSession


def _scan(lines: list[str], rules: list[dict], **engine_options) -> ScanSession:
    session = ScanSession(TextDocument.from_lines(lines))
    ScanEngine(compile_rules(rules), **engine_options).scan(session)
    return session


def _spans(lines: list[str], rules: list[dict]) -> list[tuple[int, int]]:
    return sorted((item.start, item.end) for item in _scan(lines, rules).ranges)


BRACES = {"begin": "{", "end": "}"}
BLOCK_COMMENT = {"begin": "/*", "end": "*/", "nested": False}
TAGS = {"beginRegex": r"<(\w+)>", "endRegex": r"</\1>"}


def test_begin_end_folds_through_closing_line():
    assert _spans(["{", "  x", "}"], [BRACES]) == [(0, 2)]


def test_nested_regions_close_innermost_first():
    session = _scan(["{", "{", "x", "}", "}"], [BRACES])

    assert [(item.start, item.end) for item in session.ranges] == [(1, 3), (0, 4)]


def test_single_line_region_is_not_emitted():
    assert _spans(["{ x }", "y"], [BRACES]) == []


def test_unmatched_end_is_ignored():
    assert _spans(["}", "{", "a", "}"], [BRACES]) == [(1, 3)]


def test_unclosed_region_is_dropped_without_fold_eof():
    assert _spans(["{", "a", "b"], [BRACES]) == []


def test_unclosed_region_folds_to_last_line_with_fold_eof():
    rules = [{**BRACES, "foldEOF": True}]

    assert _spans(["{", "a", "b"], rules) == [(0, 2)]


def test_middle_splits_region_into_sections():
    rules = [{"begin": "if", "middle": "else", "end": "end"}]

    assert _spans(["if", "a", "else", "b", "end"], rules) == [(0, 1), (2, 4)]


def test_consume_end_false_stops_before_closing_line():
    rules = [{**BRACES, "consumeEnd": False}]

    assert _spans(["{", "a", "}"], rules) == [(0, 1)]


def test_fold_last_line_false_leaves_closing_line_visible():
    rules = [{**BRACES, "foldLastLine": False}]

    assert _spans(["{", "a", "b", "}"], rules) == [(0, 2)]
    assert _spans(["{", "}"], rules) == []


@pytest.mark.parametrize(
    ("closing", "expected"),
    [
        ("end", [(0, 1)]),
        ("stop", [(0, 2)]),
    ],
)
def test_fold_last_line_per_end_group(closing: str, expected: list[tuple[int, int]]):
    rules = [
        {
            "beginRegex": "^begin",
            "endRegex": "^(end)|^(stop)",
            "foldLastLine": [True, False, True],
        }
    ]

    assert _spans(["begin", "a", closing], rules) == expected


def test_kind_is_reported_on_ranges():
    rules = [{"begin": "/*", "end": "*/", "kind": "comment"}]

    session = _scan(["/*", " * a", " */"], rules)

    assert session.ranges[0].kind is FoldingRangeKind.COMMENT


def test_docstring_toggles_open_and_closed():
    rules = [{"begin": '"""', "end": '"""'}]

    assert _spans(['"""', "doc", '"""', "x"], rules) == [(0, 2)]
    assert _spans(['"""doc"""', "x"], rules) == []


def test_begin_while_folds_matching_lines():
    rules = [{"beginRegex": "^def", "whileRegex": r"^\s"}]

    assert _spans(["def", " body", " body", "tail"], rules) == [(0, 2)]


def test_begin_while_runs_to_end_of_document():
    rules = [{"beginRegex": "^def", "whileRegex": r"^\s"}]

    assert _spans(["def", " body", " body"], rules) == [(0, 2)]


def test_continuation_includes_first_non_continued_line():
    rules = [{"beginRegex": "^#define", "continuationRegex": "\\\\"}]

    assert _spans(["#define X \\", "  1 \\", "  2", "y"], rules) == [(0, 2)]


def test_continuation_needs_trigger_line_to_continue():
    rules = [{"beginRegex": "^#define", "continuationRegex": "\\\\"}]

    assert _spans(["#define X 1", "y", "z"], rules) == []


def test_bare_while_folds_run_of_lines():
    rules = [{"whileRegex": "^//"}]

    assert _spans(["x", "// a", "// b", "// c", "y"], rules) == [(1, 3)]


def test_bare_while_without_last_line_always_advances():
    rules = [{"whileRegex": "^//", "foldLastLine": False}]

    assert _spans(["x", "// a", "// b", "// c", "y"], rules) == [(1, 2)]


def test_separator_folds_between_triggers():
    rules = [{"separatorRegex": "^---"}]
    lines = ["---", "a", "b", "c", "d", "---", "e"]

    assert _spans(lines, rules) == [(0, 4), (5, 6)]


def test_separator_folds_text_before_first_trigger():
    rules = [{"separatorRegex": "^---"}]

    assert _spans(["a", "b", "c", "---", "d", "e"], rules) == [(0, 2), (3, 5)]


def test_separator_respects_fold_bof_and_fold_eof():
    rules = [{"separatorRegex": "^---", "foldBOF": False, "foldEOF": False}]

    assert _spans(["a", "b", "---", "c", "d", "---", "e", "f"], rules) == [(2, 4)]


def test_separator_hierarchy_closes_descendants():
    rules = [{"separatorRegex": "^# ", "descendants": [{"separatorRegex": "^## "}]}]
    lines = ["# A", "## a1", "x", "## a2", "y", "# B", "z"]

    session = _scan(lines, rules)

    assert [(item.start, item.end) for item in session.ranges] == [
        (1, 2),
        (3, 4),
        (0, 4),
        (5, 6),
    ]


HEADINGS_LINES = ["# A", "### x", "y", "## b", "### c", "z", "# B", "w"]


def _headings(root: dict | None = None, section: dict | None = None) -> list[dict]:
    subsection = {"separatorRegex": "^### "}
    section = {"separatorRegex": "^## ", **(section or {}), "descendants": [subsection]}
    return [{"separatorRegex": "^# ", **(root or {}), "descendants": [section]}]


def test_strict_separator_needs_its_direct_parent():
    assert _spans(HEADINGS_LINES, _headings()) == [(0, 5), (3, 5), (4, 5), (6, 7)]


def test_non_strict_separator_opens_under_any_ancestor():
    rules = _headings(section={"strict": False})

    assert _spans(HEADINGS_LINES, rules) == [(0, 5), (1, 2), (3, 5), (4, 5), (6, 7)]


def test_strict_never_disables_the_check_for_descendants():
    rules = _headings(root={"strict": "never"})

    assert _spans(HEADINGS_LINES, rules) == [(0, 5), (1, 2), (3, 5), (4, 5), (6, 7)]
    assert _spans(HEADINGS_LINES, _headings(root={"strict": False})) == [
        (0, 5),
        (3, 5),
        (4, 5),
        (6, 7),
    ]


def test_non_nested_region_hides_other_rules():
    lines = ["/*", "{", "}", "*/"]

    assert _spans(lines, [BLOCK_COMMENT, BRACES]) == [(0, 3)]
    assert _spans(lines, [{**BLOCK_COMMENT, "nested": True}, BRACES]) == [(0, 3), (1, 2)]


def test_non_nested_region_folds_at_end_of_document():
    lines = ["/*", "a", "b"]

    assert _spans(lines, [BLOCK_COMMENT]) == []
    assert _spans(lines, [{**BLOCK_COMMENT, "foldEOF": True}]) == [(0, 2)]


def test_whitelisted_children_open_inside_region():
    rules = [{"begin": "<<", "end": ">>", "nested": [{"begin": "(", "end": ")"}]}]
    lines = ["<<", "(", "x", ")", ">>", "(", "y", ")"]

    assert _spans(lines, rules) == [(0, 4), (1, 3)]


def test_children_of_non_strict_region_also_open_outside():
    rules = [
        {"begin": "<<", "end": ">>", "strict": "never", "nested": [{"begin": "(", "end": ")"}]}
    ]
    lines = ["<<", "(", "x", ")", ">>", "(", "y", ")"]

    assert _spans(lines, rules) == [(0, 4), (1, 3), (5, 7)]


def test_closing_region_force_closes_open_children():
    rules = [{"begin": "<<", "end": ">>", "nested": [{"begin": "(", "end": ")"}]}]

    session = _scan(["<<", "(", "x", ">>"], rules)

    assert [(item.start, item.end) for item in session.ranges] == [(1, 2), (0, 3)]


def test_dynamic_end_closes_matching_tag():
    session = _scan(["<div>", "<span>", "x", "</span>", "</div>"], [TAGS])

    assert [(item.start, item.end) for item in session.ranges] == [(1, 3), (0, 4)]
    assert len(session.end_patterns) == 0


def test_dynamic_end_reuses_variant_for_same_capture():
    session = _scan(["<div>", "<div>", "</div>", "</div>"], [TAGS])

    assert [(item.start, item.end) for item in session.ranges] == [(1, 2), (0, 3)]


def test_unclosed_dynamic_region_folds_with_fold_eof():
    assert _spans(["<div>", "a", "b"], [TAGS]) == []
    assert _spans(["<div>", "a", "b"], [{**TAGS, "foldEOF": True}]) == [(0, 2)]


def test_regions_inside_unclosed_dynamic_region_fold_at_eof():
    lines = ["<div>", "{", "a", "b"]

    assert _spans(lines, [TAGS, {**BRACES, "foldEOF": True}]) == [(1, 3)]

    session = _scan(lines, [{**TAGS, "foldEOF": True}, {**BRACES, "foldEOF": True}])
    assert [(item.start, item.end) for item in session.ranges] == [(0, 3), (1, 3)]
    assert len(session.end_patterns) == 0


def test_dynamic_end_of_outer_region_abandons_inner_one():
    assert _spans(["<div>", "<span>", "</div>"], [TAGS]) == [(0, 2)]


def test_nesting_limit_raises_and_keeps_earlier_ranges():
    session = ScanSession(TextDocument.from_lines(["{", "}", "<a>", "<b>", "<c>"]))
    engine = ScanEngine(compile_rules([BRACES, TAGS]), max_nesting_depth=2)

    with pytest.raises(NestingTooDeepError) as error:
        engine.scan(session)

    assert error.value.line_number == 3
    assert [(item.start, item.end) for item in session.ranges] == [(0, 1)]


def test_document_failure_is_wrapped_in_scan_error():
    class BrokenDocument:
        line_count = 4

        def line_text(self, line: int) -> str:
            if line >= 2:
                raise RuntimeError("gone")
            return ["{", "}"][line]

    session = ScanSession(BrokenDocument())

    with pytest.raises(ScanError, match="line 3"):
        ScanEngine(compile_rules([BRACES])).scan(session)

    assert [(item.start, item.end) for item in session.ranges] == [(0, 1)]


def test_auto_fold_lines_follow_emitted_ranges():
    rules = [{**BRACES, "autoFold": True}, {"begin": "[", "end": "]"}]

    session = _scan(["{", "a", "}", "[", "b", "]"], rules)

    assert session.auto_fold_lines == [0]
