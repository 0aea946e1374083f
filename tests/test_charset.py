import pytest

from pegmatch.charset import Charset, SetKind


def test_from_chars_membership():
    cs = Charset.from_chars("abc")
    assert "a" in cs
    assert "c" in cs
    assert "d" not in cs
    assert ord("b") in cs
    assert b"a" in cs


def test_from_chars_accepts_bytes_and_ints():
    assert Charset.from_chars(b"xy") == Charset.from_chars("xy")
    assert Charset.from_chars([ord("x"), ord("y")]) == Charset.from_chars("yx")


def test_contains_rejects_non_characters():
    cs = Charset.full()
    assert "ab" not in cs
    assert "\u0101" not in cs
    assert 300 not in cs
    assert None not in cs


def test_from_chars_rejects_wide_character():
    with pytest.raises(ValueError):
        Charset.from_chars("\u0101")


def test_from_range_matches_chars():
    letters = "abcdefghijklmnopqrstuvwxyz"
    assert Charset.from_range("a", "z") == Charset.from_chars(letters)
    assert len(Charset.from_range("a", "z")) == len(letters)


def test_from_range_reversed_is_empty():
    assert Charset.from_range("z", "a") == Charset.empty()


def test_iteration_is_sorted():
    cs = Charset.from_chars("zam")
    assert list(cs) == sorted(ord(c) for c in "zam")


def test_set_operations():
    ab = Charset.from_chars("ab")
    bc = Charset.from_chars("bc")
    assert ab | bc == Charset.from_chars("abc")
    assert ab & bc == Charset.from_chars("b")
    assert ab - bc == Charset.from_chars("a")
    assert ab - ab == Charset.empty()


def test_invert_round_trip():
    cs = Charset.from_chars("hello")
    assert ~~cs == cs
    assert ~Charset.empty() == Charset.full()
    assert (cs | ~cs) == Charset.full()
    assert "h" not in ~cs


def test_isdisjoint():
    assert Charset.from_chars("ab").isdisjoint(Charset.from_chars("cd"))
    assert not Charset.from_chars("ab").isdisjoint(Charset.from_chars("bd"))
    assert Charset.empty().isdisjoint(Charset.full())


def test_classify_kinds():
    assert Charset.empty().classify() == (SetKind.EMPTY, None)
    assert Charset.full().classify() == (SetKind.FULL, None)
    assert Charset.from_chars("x").classify() == (SetKind.SINGLE, ord("x"))
    assert Charset.from_chars("xy").classify() == (SetKind.GENERIC, None)


def test_classify_single_extremes():
    assert Charset.from_chars([0]).classify() == (SetKind.SINGLE, 0)
    assert Charset.from_chars([255]).classify() == (SetKind.SINGLE, 255)


def test_classify_one_full_byte_is_generic():
    assert Charset.from_range(0, 7).classify() == (SetKind.GENERIC, None)


def test_operator_with_non_charset():
    with pytest.raises(TypeError):
        Charset.empty() | 3