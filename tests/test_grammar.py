import pytest

from pegmatch.compiler import compile_tree
from pegmatch.grammar import build_grammar, final_fix
from pegmatch.tree import MAXRULES, Node, PatternError, Tag
from pegmatch.vm import execute


def char(c):
    return Node(Tag.CHAR, n=ord(c))


def seq(a, b):
    return Node(Tag.SEQ, sib1=a, sib2=b)


def choice(a, b):
    return Node(Tag.CHOICE, sib1=a, sib2=b)


def rep(a):
    return Node(Tag.REP, sib1=a)


def var(name):
    return Node(Tag.OPENCALL, key=name)


def run(tree, subject):
    result = execute(compile_tree(final_fix(tree)), subject, 0, (), 400)
    return None if result is None else result[0]


def test_single_rule_grammar_shape():
    g = build_grammar({1: char("a")})
    assert g.tag == Tag.GRAMMAR
    assert g.n == 1
    assert g.sib1.tag == Tag.RULE
    assert g.sib1.key == 1
    assert g.sib1.sib2.tag == Tag.TRUE


def test_list_input_is_keyed_from_one():
    g = build_grammar([char("x")])
    assert g.n == 1
    assert g.sib1.sib1.tag == Tag.CHAR
    assert g.sib1.key == 1


def test_named_initial_rule_and_call_resolution():
    g = build_grammar({1: "S", "S": seq(char("a"), var("B")), "B": char("b")})
    assert g.n == 2
    first = g.sib1
    second = first.sib2
    assert first.key == "S"
    assert second.key == "B"
    call = first.sib1.sib2
    assert call.tag == Tag.CALL
    assert call.sib2 is second


def test_unused_rule_keeps_no_key():
    g = build_grammar({1: "S", "S": char("a"), "U": char("u")})
    second = g.sib1.sib2
    assert second.tag == Tag.RULE
    assert second.key is None


def test_original_trees_untouched():
    body = seq(char("a"), var("B"))
    build_grammar({1: "S", "S": body, "B": char("b")})
    assert body.sib2.tag == Tag.OPENCALL


def test_grammar_matches():
    g = build_grammar({1: "S", "S": seq(char("a"), var("B")), "B": char("b")})
    assert run(g, "abc") == 2
    assert run(g, "ac") is None


def test_balanced_parentheses():
    body = seq(char("("), seq(rep(var("S")), char(")")))
    g = build_grammar({1: "S", "S": body})
    assert run(g, "(())") == 4
    assert run(g, "(()") is None


def test_undefined_rule():
    with pytest.raises(PatternError, match="rule 'X' undefined in given grammar"):
        build_grammar({1: seq(char("a"), var("X"))})


def test_initial_named_by_string_not_reachable_as_one():
    with pytest.raises(PatternError, match="undefined in given grammar"):
        build_grammar({1: "S", "S": var(1)})


def test_left_recursion_detected():
    with pytest.raises(PatternError, match="rule 'A' may be left recursive"):
        build_grammar({1: "A", "A": seq(var("A"), char("a"))})


def test_empty_loop_detected():
    with pytest.raises(PatternError, match="empty loop in rule '1'"):
        build_grammar({1: rep(Node(Tag.TRUE))})


def test_no_initial_rule():
    with pytest.raises(PatternError, match="grammar has no initial rule"):
        build_grammar({})
    with pytest.raises(PatternError, match="grammar has no initial rule"):
        build_grammar({1: "S"})


def test_rule_not_a_pattern():
    with pytest.raises(PatternError, match="rule 'x' is not a pattern"):
        build_grammar({1: char("a"), "x": 5})


def test_initial_rule_not_a_pattern():
    with pytest.raises(PatternError, match="initial rule 'S' is not a pattern"):
        build_grammar({1: "S", "S": 5})


def test_too_many_rules():
    rules = {1: char("a")}
    for index in range(MAXRULES):
        rules[f"r{index}"] = char("b")
    with pytest.raises(PatternError, match="grammar has too many rules"):
        build_grammar(rules)


def test_final_fix_outside_grammar():
    with pytest.raises(PatternError, match="rule 'X' used outside a grammar"):
        final_fix(seq(char("a"), var("X")))


def test_final_fix_right_associates_sequences():
    a, b, c = char("a"), char("b"), char("c")
    tree = final_fix(seq(seq(a, b), c))
    assert tree.sib1 is a
    assert tree.sib2.tag == Tag.SEQ
    assert tree.sib2.sib1 is b
    assert tree.sib2.sib2 is c


def test_final_fix_right_associates_choices():
    a, b, c = char("a"), char("b"), char("c")
    tree = final_fix(choice(choice(a, b), c))
    assert tree.sib1 is a
    assert tree.sib2.sib1 is b
    assert tree.sib2.sib2 is c
    assert run(tree, "c") == 1


def test_final_fix_stops_at_grammar():
    g = build_grammar({1: char("a")})
    assert final_fix(g) is g
    assert run(g, "a") == 1