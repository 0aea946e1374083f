import re

import pytest

from pegmatch.charset import Charset
from pegmatch.compiler import Opcode, compile_tree
from pegmatch.printing import (
    format_captures,
    format_charset,
    format_instruction,
    format_program,
    format_tree,
)
from pegmatch.tree import CapKind, Node, Tag
from pegmatch.vm import execute


def ch(c):
    return Node(Tag.CHAR, n=ord(c))


def seq(*nodes):
    tree = nodes[-1]
    for node in reversed(nodes[:-1]):
        tree = Node(Tag.SEQ, sib1=node, sib2=tree)
    return tree


def balanced():
    rule = Node(Tag.RULE, cap=0, key="S")
    call = Node(Tag.CALL, sib2=rule, key="S")
    body = seq(ch("a"), call, ch("b"))
    rule.sib1 = Node(Tag.CHOICE, sib1=body, sib2=Node(Tag.TRUE))
    rule.sib2 = Node(Tag.TRUE)
    return Node(Tag.GRAMMAR, sib1=rule, n=1)


def _parse_charset(text):
    bits = Charset.empty()
    for first, last in re.findall(r"\(([0-9a-f]{2})(?:-([0-9a-f]{2}))?\)", text):
        bits = bits | Charset.from_range(int(first, 16), int(last or first, 16))
    return bits


def test_charset_range():
    assert format_charset(Charset.from_chars("abc")) == "[(61-63)]"


def test_charset_empty():
    assert format_charset(Charset.empty()) == "[]"


@pytest.mark.parametrize(
    "cs",
    [
        Charset.from_chars("a"),
        Charset.from_chars("acegz09"),
        Charset.from_range("0", "9") | Charset.from_range("A", "F"),
        Charset.full(),
        ~Charset.from_chars("x"),
    ],
)
def test_charset_round_trip(cs):
    assert _parse_charset(format_charset(cs)) == cs


def test_program_lines():
    code = compile_tree(seq(ch("a"), ch("b")))
    lines = format_program(code).splitlines()
    assert len(lines) == len(code)
    for index, line in enumerate(lines):
        assert line.startswith(f"{index:02d}: ")
    assert "end" in lines[-1]
    assert "char 'a'" in lines[0]


def test_jump_targets_shown():
    code = compile_tree(balanced())
    labelled = [i for i, inst in enumerate(code) if inst.target is not None]
    assert labelled
    for index in labelled:
        assert format_instruction(code, index).endswith(f"-> {code[index].target}")


def test_set_instruction_shows_charset():
    cs = Charset.from_chars("xyz")
    code = compile_tree(Node(Tag.SET, cs=cs))
    assert code[0].code == Opcode.SET
    assert format_instruction(code, 0) == "00: set " + format_charset(cs)


def test_capture_instruction():
    code = compile_tree(Node(Tag.CAPTURE, sib1=ch("a"), cap=CapKind.SIMPLE))
    line = format_instruction(code, 1)
    assert "fullcapture" in line
    assert "simple" in line


def test_tree_seq():
    lines = format_tree(seq(ch("a"), ch("b"))).splitlines()
    assert lines == ["seq", "  char 'a'", "  char 'b'"]


def test_tree_indent_argument():
    assert format_tree(ch("a"), 4).startswith("    char")


def test_tree_nonprintable_char_has_no_quote():
    text = format_tree(Node(Tag.CHAR, n=1))
    assert text.startswith("char")
    assert "'" not in text


def test_tree_grammar():
    text = format_tree(balanced())
    lines = text.splitlines()
    assert lines[0].startswith("grammar")
    assert lines[1].lstrip().startswith("rule")
    assert lines[1].startswith("  ")


def test_capture_list():
    tree = Node(Tag.CAPTURE, sib1=ch("a"), cap=CapKind.SIMPLE)
    _, caps = execute(compile_tree(tree), "a")
    lines = format_captures(caps).splitlines()
    assert lines[0] == ">======"
    assert lines[-1] == "======="
    assert len(lines) == len(caps) + 2
    assert "simple" in lines[1]