import operator

import pytest

from pegmatch.captures import Capture, get_captures, runtime_capture
from pegmatch.tree import CapKind, PatternError


def test_no_captures_returns_end_position():
    assert get_captures([], "abc", 3) == (4,)


def test_sentinel_close_only_returns_end_position():
    caps = [Capture(CapKind.CLOSE, None, 1)]
    assert get_captures(caps, "abcd", 2) == (3,)


def test_full_simple_capture():
    caps = [Capture(CapKind.SIMPLE, 0, 3)]
    assert get_captures(caps, "abcdef", 2) == ("ab",)


def test_simple_capture_on_bytes():
    caps = [Capture(CapKind.SIMPLE, 1, 3)]
    assert get_captures(caps, b"abc", 3) == (b"bc",)


def test_nested_simple_puts_whole_match_first():
    caps = [
        Capture(CapKind.SIMPLE, 0, 0),
        Capture(CapKind.SIMPLE, 1, 2),
        Capture(CapKind.CLOSE, 3, 1),
    ]
    assert get_captures(caps, "abcd", 3) == ("abc", "b")


def test_position_capture_is_one_based():
    caps = [Capture(CapKind.POSITION, 2, 1)]
    assert get_captures(caps, "abcd", 2) == (3,)


def test_const_and_runtime_values():
    caps = [
        Capture(CapKind.CONST, 0, 1, key=42),
        Capture(CapKind.RUNTIME, 0, 1, key="v"),
    ]
    assert get_captures(caps, "a", 0) == (42, "v")


def test_argument_capture():
    caps = [Capture(CapKind.ARG, 0, 1, key=2)]
    assert get_captures(caps, "a", 0, ("x", "y")) == ("y",)


def test_absent_argument_raises():
    caps = [Capture(CapKind.ARG, 0, 1, key=3)]
    with pytest.raises(PatternError, match="absent extra argument"):
        get_captures(caps, "a", 0, ("x", "y"))


def test_table_capture_positional_and_named():
    caps = [
        Capture(CapKind.TABLE, 0, 0),
        Capture(CapKind.SIMPLE, 0, 2),
        Capture(CapKind.GROUP, 1, 2, key="k"),
        Capture(CapKind.CLOSE, 2, 1),
    ]
    assert get_captures(caps, "ab", 2) == ({1: "a", "k": "b"},)


def test_empty_full_table_capture():
    caps = [Capture(CapKind.TABLE, 0, 1)]
    assert get_captures(caps, "ab", 0) == ({},)


def test_function_capture_results():
    caps = [Capture(CapKind.FUNCTION, 0, 4, key=str.upper)]
    assert get_captures(caps, "abc", 3) == ("ABC",)


def test_function_capture_tuple_gives_several_values():
    caps = [Capture(CapKind.FUNCTION, 0, 3, key=lambda s: (s, len(s)))]
    assert get_captures(caps, "abc", 2) == ("ab", 2)


def test_function_returning_none_gives_no_values():
    caps = [Capture(CapKind.FUNCTION, 0, 3, key=lambda s: None)]
    assert get_captures(caps, "abc", 2) == (3,)


def test_query_capture_hit_and_miss():
    table = {"ab": 1}
    hit = [Capture(CapKind.QUERY, 0, 3, key=table)]
    miss = [Capture(CapKind.QUERY, 1, 3, key=table)]
    assert get_captures(hit, "abc", 2) == (1,)
    assert get_captures(miss, "abc", 3) == (4,)


def test_string_capture_whole_match():
    caps = [Capture(CapKind.STRING, 0, 4, key="<%0>")]
    assert get_captures(caps, "abc", 3) == ("<abc>",)


def test_string_capture_escapes():
    caps = [Capture(CapKind.STRING, 0, 2, key="%%%x")]
    assert get_captures(caps, "a", 1) == ("%x",)


def test_string_capture_with_nested_values():
    caps = [
        Capture(CapKind.STRING, 0, 0, key="%2-%1-%0"),
        Capture(CapKind.SIMPLE, 0, 2),
        Capture(CapKind.CONST, 1, 1, key="z"),
        Capture(CapKind.CLOSE, 2, 1),
    ]
    assert get_captures(caps, "ab", 2) == ("z-a-ab",)


def test_string_capture_invalid_index():
    caps = [Capture(CapKind.STRING, 0, 2, key="%5")]
    with pytest.raises(PatternError, match="invalid capture index"):
        get_captures(caps, "a", 1)


def test_substitution_replaces_nested_capture():
    caps = [
        Capture(CapKind.SUBST, 0, 0),
        Capture(CapKind.STRING, 1, 2, key="X"),
        Capture(CapKind.CLOSE, 3, 1),
    ]
    assert get_captures(caps, "abc", 3) == ("aXc",)


def test_substitution_keeps_text_without_value():
    caps = [
        Capture(CapKind.SUBST, 0, 0),
        Capture(CapKind.FUNCTION, 1, 2, key=lambda s: None),
        Capture(CapKind.CLOSE, 3, 1),
    ]
    assert get_captures(caps, "abc", 3) == ("abc",)


def test_substitution_rejects_non_string_value():
    caps = [
        Capture(CapKind.SUBST, 0, 0),
        Capture(CapKind.CONST, 0, 1, key=[1]),
        Capture(CapKind.CLOSE, 1, 1),
    ]
    with pytest.raises(PatternError, match="invalid replacement value"):
        get_captures(caps, "a", 1)


def test_number_capture_selects_value():
    caps = [
        Capture(CapKind.NUM, 0, 0, key=2),
        Capture(CapKind.SIMPLE, 0, 2),
        Capture(CapKind.SIMPLE, 1, 2),
        Capture(CapKind.CLOSE, 2, 1),
    ]
    assert get_captures(caps, "ab", 2) == ("b",)


def test_number_capture_zero_gives_nothing():
    caps = [
        Capture(CapKind.NUM, 0, 0, key=0),
        Capture(CapKind.SIMPLE, 0, 2),
        Capture(CapKind.CLOSE, 2, 1),
    ]
    assert get_captures(caps, "ab", 2) == (3,)


def test_number_capture_out_of_range():
    caps = [
        Capture(CapKind.NUM, 0, 0, key=3),
        Capture(CapKind.SIMPLE, 0, 2),
        Capture(CapKind.CLOSE, 2, 1),
    ]
    with pytest.raises(PatternError, match="no capture"):
        get_captures(caps, "ab", 2)


def test_fold_capture_accumulates():
    caps = [
        Capture(CapKind.FOLD, 0, 0, key=operator.add),
        Capture(CapKind.CONST, 0, 1, key=1),
        Capture(CapKind.CONST, 0, 1, key=2),
        Capture(CapKind.CONST, 0, 1, key=3),
        Capture(CapKind.CLOSE, 0, 1),
    ]
    assert get_captures(caps, "", 0) == (6,)


def test_fold_without_initial_value():
    caps = [Capture(CapKind.FOLD, 0, 2, key=operator.add)]
    with pytest.raises(PatternError, match="no initial value"):
        get_captures(caps, "a", 1)


def test_named_group_gives_no_values_but_backref_does():
    caps = [
        Capture(CapKind.GROUP, 0, 3, key="g"),
        Capture(CapKind.BACKREF, 2, 1, key="g"),
    ]
    assert get_captures(caps, "abc", 2) == ("ab",)


def test_missing_backref_raises():
    caps = [
        Capture(CapKind.GROUP, 0, 3, key="g"),
        Capture(CapKind.BACKREF, 2, 1, key="h"),
    ]
    with pytest.raises(PatternError, match="back reference"):
        get_captures(caps, "abc", 2)


def test_anonymous_group_passes_nested_values():
    caps = [
        Capture(CapKind.GROUP, 0, 0),
        Capture(CapKind.CONST, 0, 1, key="p"),
        Capture(CapKind.CONST, 0, 1, key="q"),
        Capture(CapKind.CLOSE, 1, 1),
    ]
    assert get_captures(caps, "a", 1) == ("p", "q")


def test_runtime_capture_without_nested_values():
    def func(subject, position, *values):
        return (position, *values)

    caps = [Capture(CapKind.GROUP, 0, 0, key=func)]
    removed, results = runtime_capture(caps, 1, "abc", 2)
    assert removed == 1
    assert results == (3, "ab")
    assert caps[1].kind == CapKind.CLOSE and caps[1].s == 2


def test_runtime_capture_with_nested_values():
    def func(subject, position, *values):
        return (subject, *values)

    caps = [
        Capture(CapKind.GROUP, 0, 0, key=func),
        Capture(CapKind.SIMPLE, 0, 2),
    ]
    removed, results = runtime_capture(caps, 2, "abc", 3)
    assert removed == 2
    assert results == ("abc", "a")


def test_runtime_capture_none_result_is_empty():
    caps = [Capture(CapKind.GROUP, 0, 0, key=lambda s, p, *v: None)]
    removed, results = runtime_capture(caps, 1, "abc", 1)
    assert (removed, results) == (1, ())