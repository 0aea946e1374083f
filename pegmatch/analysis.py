"""Static analyses of pattern trees used by the constructors and compiler."""

from __future__ import annotations

from typing import Optional, Set, Tuple

from .charset import Charset
from .tree import Node, Tag

FIRST_NULLABLE = 1
"""Flag from :func:`get_first`: the pattern may match the empty string."""

FIRST_MATCHTIME = 2
"""Flag from :func:`get_first`: a match-time capture is not protected."""

_NULLABLE = 0
_NOFAIL = 1


def _unexpected(tree: Node) -> ValueError:
    return ValueError(f"unexpected node {tree.tag.name} in pattern tree")


def to_charset(tree: Node) -> Optional[Charset]:
    """Return the charset of a SET, CHAR or ANY node, else ``None``."""
    if tree.tag == Tag.SET:
        return tree.cs
    if tree.tag == Tag.CHAR:
        return Charset.from_chars([tree.n])
    if tree.tag == Tag.ANY:
        return Charset.full()
    return None


def has_captures(tree: Node) -> bool:
    """Tell whether a tree holds captures, following calls once."""
    return _has_captures(tree, set())


def _has_captures(tree: Node, active: Set[int]) -> bool:
    while True:
        tag = tree.tag
        if tag in (Tag.CAPTURE, Tag.RUNTIME):
            return True
        if tag == Tag.CALL:
            if id(tree) in active:
                return False
            active.add(id(tree))
            try:
                return _has_captures(tree.sib2, active)  # type: ignore[arg-type]
            finally:
                active.discard(id(tree))
        if tag == Tag.RULE:
            tree = tree.sib1  # type: ignore[assignment]
            continue
        kids = tree.children()
        if not kids:
            return False
        if len(kids) == 2 and _has_captures(kids[0], active):
            return True
        tree = kids[-1]


def _check(tree: Node, pred: int) -> bool:
    while True:
        tag = tree.tag
        if tag in (Tag.CHAR, Tag.SET, Tag.ANY, Tag.FALSE, Tag.OPENCALL):
            return False
        if tag in (Tag.REP, Tag.TRUE):
            return True
        if tag in (Tag.NOT, Tag.BEHIND):
            return pred != _NOFAIL
        if tag == Tag.AND:
            if pred == _NULLABLE:
                return True
            tree = tree.sib1  # type: ignore[assignment]
        elif tag == Tag.RUNTIME:
            if pred == _NOFAIL:
                return False
            tree = tree.sib1  # type: ignore[assignment]
        elif tag == Tag.SEQ:
            if not _check(tree.sib1, pred):  # type: ignore[arg-type]
                return False
            tree = tree.sib2  # type: ignore[assignment]
        elif tag == Tag.CHOICE:
            if _check(tree.sib2, pred):  # type: ignore[arg-type]
                return True
            tree = tree.sib1  # type: ignore[assignment]
        elif tag in (Tag.CAPTURE, Tag.GRAMMAR, Tag.RULE):
            tree = tree.sib1  # type: ignore[assignment]
        elif tag == Tag.CALL:
            tree = tree.sib2  # type: ignore[assignment]
        else:
            raise _unexpected(tree)


def nullable(tree: Node) -> bool:
    """Conservatively tell whether the pattern can match without consuming."""
    return _check(tree, _NULLABLE)


def nofail(tree: Node) -> bool:
    """Tell whether the pattern surely never fails, on any input."""
    return _check(tree, _NOFAIL)


def fixed_len(tree: Node) -> Optional[int]:
    """Return the number of characters the pattern always matches, or None."""
    return _fixed_len(tree, set())


def _fixed_len(tree: Node, active: Set[int]) -> Optional[int]:
    length = 0
    while True:
        tag = tree.tag
        if tag in (Tag.CHAR, Tag.SET, Tag.ANY):
            return length + 1
        if tag in (Tag.FALSE, Tag.TRUE, Tag.NOT, Tag.AND, Tag.BEHIND):
            return length
        if tag in (Tag.REP, Tag.RUNTIME, Tag.OPENCALL):
            return None
        if tag in (Tag.CAPTURE, Tag.RULE, Tag.GRAMMAR):
            tree = tree.sib1  # type: ignore[assignment]
        elif tag == Tag.CALL:
            if id(tree) in active:
                return None
            active.add(id(tree))
            try:
                inner = _fixed_len(tree.sib2, active)  # type: ignore[arg-type]
            finally:
                active.discard(id(tree))
            return None if inner is None else length + inner
        elif tag == Tag.SEQ:
            first = _fixed_len(tree.sib1, active)  # type: ignore[arg-type]
            if first is None:
                return None
            length += first
            tree = tree.sib2  # type: ignore[assignment]
        elif tag == Tag.CHOICE:
            left = _fixed_len(tree.sib1, active)  # type: ignore[arg-type]
            right = _fixed_len(tree.sib2, active)  # type: ignore[arg-type]
            if left is None or left != right:
                return None
            return length + left
        else:
            raise _unexpected(tree)


def get_first(tree: Node, follow: Optional[Charset] = None) -> Tuple[Charset, int]:
    """Compute a conservative first set of the pattern.

    ``follow`` is the first set of what comes after the pattern (the full
    set when omitted). Returns the set and a combination of
    :data:`FIRST_NULLABLE` and :data:`FIRST_MATCHTIME`; a zero flag means the
    set may be used by test instructions to skip the pattern.
    """
    full = Charset.full()
    if follow is None:
        follow = full
    while True:
        tag = tree.tag
        if tag in (Tag.CHAR, Tag.SET, Tag.ANY):
            return to_charset(tree), 0  # type: ignore[return-value]
        if tag == Tag.TRUE:
            return follow, FIRST_NULLABLE
        if tag == Tag.FALSE:
            return Charset.empty(), 0
        if tag == Tag.CHOICE:
            first1, e1 = get_first(tree.sib1, follow)  # type: ignore[arg-type]
            first2, e2 = get_first(tree.sib2, follow)  # type: ignore[arg-type]
            return first1 | first2, e1 | e2
        if tag == Tag.SEQ:
            if not nullable(tree.sib1):  # type: ignore[arg-type]
                tree, follow = tree.sib1, full  # type: ignore[assignment]
                continue
            aux, e2 = get_first(tree.sib2, follow)  # type: ignore[arg-type]
            first, e1 = get_first(tree.sib1, aux)  # type: ignore[arg-type]
            if e1 == 0:
                return first, 0
            if (e1 | e2) & FIRST_MATCHTIME:
                return first, FIRST_MATCHTIME
            return first, e2
        if tag == Tag.REP:
            first, _ = get_first(tree.sib1, follow)  # type: ignore[arg-type]
            return first | follow, FIRST_NULLABLE
        if tag in (Tag.CAPTURE, Tag.GRAMMAR, Tag.RULE):
            tree = tree.sib1  # type: ignore[assignment]
            continue
        if tag == Tag.RUNTIME:
            first, e = get_first(tree.sib1, full)  # type: ignore[arg-type]
            return first, (FIRST_MATCHTIME if e else 0)
        if tag == Tag.CALL:
            tree = tree.sib2  # type: ignore[assignment]
            continue
        if tag == Tag.AND:
            first, e = get_first(tree.sib1, follow)  # type: ignore[arg-type]
            return first & follow, e
        if tag == Tag.NOT:
            cs = to_charset(tree.sib1)  # type: ignore[arg-type]
            if cs is not None:
                return ~cs, FIRST_NULLABLE
        if tag in (Tag.NOT, Tag.BEHIND):
            # Only the match-time information of the body matters here.
            _, e = get_first(tree.sib1, follow)  # type: ignore[arg-type]
            return follow, e | FIRST_NULLABLE
        raise _unexpected(tree)


def head_fail(tree: Node) -> bool:
    """Tell whether the pattern can fail only on the next subject character."""
    while True:
        tag = tree.tag
        if tag in (Tag.CHAR, Tag.SET, Tag.ANY, Tag.FALSE):
            return True
        if tag in (Tag.TRUE, Tag.REP, Tag.RUNTIME, Tag.NOT, Tag.BEHIND):
            return False
        if tag in (Tag.CAPTURE, Tag.GRAMMAR, Tag.RULE, Tag.AND):
            tree = tree.sib1  # type: ignore[assignment]
        elif tag == Tag.CALL:
            tree = tree.sib2  # type: ignore[assignment]
        elif tag == Tag.SEQ:
            if not nofail(tree.sib2):  # type: ignore[arg-type]
                return False
            tree = tree.sib1  # type: ignore[assignment]
        elif tag == Tag.CHOICE:
            if not head_fail(tree.sib1):  # type: ignore[arg-type]
                return False
            tree = tree.sib2  # type: ignore[assignment]
        else:
            raise _unexpected(tree)


def need_follow(tree: Node) -> bool:
    """Tell whether code generation for the tree benefits from a follow set."""
    while True:
        tag = tree.tag
        if tag in (
            Tag.CHAR, Tag.SET, Tag.ANY, Tag.FALSE, Tag.TRUE, Tag.AND,
            Tag.NOT, Tag.RUNTIME, Tag.GRAMMAR, Tag.CALL, Tag.BEHIND,
        ):
            return False
        if tag in (Tag.CHOICE, Tag.REP):
            return True
        if tag == Tag.CAPTURE:
            tree = tree.sib1  # type: ignore[assignment]
        elif tag == Tag.SEQ:
            tree = tree.sib2  # type: ignore[assignment]
        else:
            raise _unexpected(tree)