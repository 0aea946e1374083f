"""Building grammars out of rule trees and fixing open calls in trees."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from .analysis import nullable
from .tree import MAXRULES, Node, PatternError, Tag

Rules = Union[Mapping[Any, Any], Sequence[Any]]


def _name(value: Any) -> str:
    """Give a readable name for a rule key in error messages."""
    if isinstance(value, str):
        return value
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    if value is None:
        return "(a nil)"
    return f"(a {type(value).__name__})"


def _is_one(key: Any) -> bool:
    return (
        isinstance(key, (int, float))
        and not isinstance(key, bool)
        and key == 1
    )


def _as_mapping(rules: Rules) -> Mapping[Any, Any]:
    if isinstance(rules, Mapping):
        return rules
    if isinstance(rules, (list, tuple)):
        return {index: value for index, value in enumerate(rules, start=1)}
    raise TypeError(f"a grammar must be a mapping, not {type(rules).__name__}")


def _first_rule(rules: Mapping[Any, Any]) -> Tuple[Any, Node]:
    """Return the key and the tree of the grammar's initial rule."""
    first = rules.get(1)
    if isinstance(first, str):
        key = first
        tree = rules.get(first)
    else:
        key = 1
        tree = first
    if not isinstance(tree, Node):
        if tree is None:
            raise PatternError("grammar has no initial rule")
        raise PatternError(f"initial rule '{_name(key)}' is not a pattern")
    return key, tree


def _collect_rules(rules: Mapping[Any, Any]) -> List[Tuple[Any, Node]]:
    """List the (key, tree) pairs of a grammar, the initial rule first."""
    first_key, first_tree = _first_rule(rules)
    collected = [(first_key, first_tree)]
    for key, value in rules.items():
        if _is_one(key) or key == first_key:
            continue
        if not isinstance(value, Node):
            raise PatternError(f"rule '{_name(key)}' is not a pattern")
        collected.append((key, value))
    return collected


def _correct_associativity(tree: Node) -> None:
    """Turn ``(t11 op t12) op t2`` into ``t11 op (t12 op t2)``."""
    while tree.sib1.tag == tree.tag:  # type: ignore[union-attr]
        inner: Node = tree.sib1  # type: ignore[assignment]
        t11, t12, t2 = inner.sib1, inner.sib2, tree.sib2
        inner.sib1, inner.sib2 = t12, t2
        tree.sib1, tree.sib2 = t11, inner


def _fix_one_call(positions: Dict[Any, Node], tree: Node) -> None:
    try:
        rule = positions.get(tree.key)
    except TypeError:
        rule = None
    if rule is None:
        raise PatternError(
            f"rule '{_name(tree.key)}' undefined in given grammar"
        )
    tree.tag = Tag.CALL
    tree.sib2 = rule
    rule.key = tree.key


def _final_fix(tree: Node, positions: Optional[Dict[Any, Node]]) -> None:
    while True:
        tag = tree.tag
        if tag == Tag.GRAMMAR:
            return  # sub-grammars were already fixed
        if tag == Tag.OPENCALL:
            if positions is None:
                raise PatternError(
                    f"rule '{_name(tree.key)}' used outside a grammar"
                )
            _fix_one_call(positions, tree)
        elif tag in (Tag.SEQ, Tag.CHOICE):
            _correct_associativity(tree)
        kids = tree.children()
        if not kids:
            return
        if len(kids) == 2:
            _final_fix(kids[0], positions)
        tree = kids[-1]


def final_fix(tree: Node) -> Node:
    """Fix a tree in place before compiling it and return it.

    Sequences and choices become right associative; an open call outside
    a grammar raises :class:`PatternError`.
    """
    _final_fix(tree, None)
    return tree


def _verify_error(passed: Tuple[Any, ...]) -> PatternError:
    for i in range(len(passed) - 1, -1, -1):
        for j in range(i - 1, -1, -1):
            if passed[i] == passed[j]:
                return PatternError(
                    f"rule '{_name(passed[i])}' may be left recursive"
                )
    return PatternError("too many left calls in grammar")


def _verify_rule(tree: Node, passed: Tuple[Any, ...], nb: bool) -> bool:
    """Raise on left recursion; otherwise tell whether the tree is nullable.

    ``nb`` true makes the result true; ``passed`` holds the keys of the
    rules visited without consuming input.
    """
    while True:
        tag = tree.tag
        if tag in (Tag.CHAR, Tag.SET, Tag.ANY, Tag.FALSE):
            return nb
        if tag in (Tag.TRUE, Tag.BEHIND):
            return True
        if tag in (Tag.NOT, Tag.AND, Tag.REP):
            tree, nb = tree.sib1, True  # type: ignore[assignment]
        elif tag in (Tag.CAPTURE, Tag.RUNTIME):
            tree = tree.sib1  # type: ignore[assignment]
        elif tag == Tag.CALL:
            tree = tree.sib2  # type: ignore[assignment]
        elif tag == Tag.SEQ:
            if not _verify_rule(tree.sib1, passed, False):  # type: ignore[arg-type]
                return nb
            tree = tree.sib2  # type: ignore[assignment]
        elif tag == Tag.CHOICE:
            nb = _verify_rule(tree.sib1, passed, nb)  # type: ignore[arg-type]
            tree = tree.sib2  # type: ignore[assignment]
        elif tag == Tag.RULE:
            if len(passed) >= MAXRULES:
                raise _verify_error(passed)
            passed = passed + (tree.key,)
            tree = tree.sib1  # type: ignore[assignment]
        elif tag == Tag.GRAMMAR:
            return nullable(tree)
        else:
            raise ValueError(f"unexpected node {tag.name} in grammar")


def _check_loops(tree: Node) -> bool:
    """Tell whether the tree holds a repetition of a nullable pattern."""
    while True:
        if tree.tag == Tag.REP and nullable(tree.sib1):  # type: ignore[arg-type]
            return True
        if tree.tag == Tag.GRAMMAR:
            return False
        kids = tree.children()
        if not kids:
            return False
        if len(kids) == 2 and _check_loops(kids[0]):
            return True
        tree = kids[-1]


def _rules_of(grammar: Node):
    rule = grammar.sib1
    while rule is not None and rule.tag == Tag.RULE:
        yield rule
        rule = rule.sib2


def _verify_grammar(grammar: Node) -> None:
    used = [rule for rule in _rules_of(grammar) if rule.key is not None]
    for rule in used:
        _verify_rule(rule.sib1, (), False)  # type: ignore[arg-type]
    for rule in used:
        if _check_loops(rule.sib1):  # type: ignore[arg-type]
            raise PatternError(f"empty loop in rule '{_name(rule.key)}'")


def build_grammar(rules: Rules) -> Node:
    """Build a grammar tree from a mapping of rule keys to rule trees.

    The entry at key 1 is either the initial rule or the key of the
    initial rule. A list stands for a mapping keyed from 1. The given
    trees are copied, not modified.
    """
    collected = _collect_rules(_as_mapping(rules))
    if len(collected) > MAXRULES:
        raise PatternError("grammar has too many rules")
    positions: Dict[Any, Node] = {}
    rule_nodes: List[Node] = []
    for number, (key, tree) in enumerate(collected):
        node = Node(Tag.RULE, sib1=tree.copy(), cap=number, key=None)
        rule_nodes.append(node)
        positions[key] = node
    tail = Node(Tag.TRUE)
    for node in reversed(rule_nodes):
        node.sib2 = tail
        tail = node
    grammar = Node(Tag.GRAMMAR, sib1=rule_nodes[0], n=len(rule_nodes))
    _final_fix(grammar.sib1, positions)  # type: ignore[arg-type]
    first = rule_nodes[0]
    if first.key is None:  # initial rule not referenced
        first.key = collected[0][0]
    _verify_grammar(grammar)
    return grammar