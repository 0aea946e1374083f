"""Patterns: construction from Python values, combinators and matching.

A :class:`Pattern` wraps a pattern tree. Patterns are combined with
operators: ``p1 * p2`` is a sequence, ``p1 + p2`` an ordered choice,
``p1 - p2`` matches ``p1`` where ``p2`` does not, ``p ** n`` repeats,
``-p`` is a negative and ``+p`` a positive look-ahead, and ``p / v``
attaches a function, table, format string or capture number to ``p``.

A match returns None on failure. Otherwise it returns the values of the
captures: a single value as itself, several as a tuple. With no capture
values it returns the 1-based position just after the match.
"""

from __future__ import annotations

from collections.abc import Mapping, MutableMapping
from typing import Any, Callable, Iterable, List, Optional, Union

from .analysis import fixed_len, has_captures, nofail, nullable, to_charset
from .captures import get_captures
from .charset import Charset
from .compiler import Instruction, compile_tree
from .grammar import build_grammar, final_fix
from .printing import format_program, format_tree
from .tree import MAXBACK, MAXBEHIND, VERSION, CapKind, Node, PatternError, Tag
from .vm import execute

_SHRT_MAX = 32767
_MAXLIM = 2147483647 // 100

_max_stack = MAXBACK


# -- tree helpers -----------------------------------------------------------

def _leaf(tag: Tag) -> Node:
    return Node(tag)


def _seq_of(nodes: List[Node]) -> Node:
    """Chain nodes into a right-nested sequence."""
    result = nodes[-1]
    for node in reversed(nodes[:-1]):
        result = Node(Tag.SEQ, sib1=node, sib2=result)
    return result


def _string_tree(text: Union[str, bytes, bytearray]) -> Node:
    if isinstance(text, str):
        codes = [ord(ch) for ch in text]
        if any(code > 0xFF for code in codes):
            raise ValueError(f"character outside the byte range in {text!r}")
    else:
        codes = list(bytes(text))
    if not codes:
        return _leaf(Tag.TRUE)
    return _seq_of([Node(Tag.CHAR, n=code) for code in codes])


def _num_tree(n: int) -> Node:
    if n == 0:
        return _leaf(Tag.TRUE)
    anys = _seq_of([_leaf(Tag.ANY) for _ in range(abs(n))])
    if n > 0:
        return anys
    return Node(Tag.NOT, sib1=anys)


def _grammar_tree(rules: Any) -> Node:
    if isinstance(rules, Mapping):
        items: Iterable = rules.items()
    else:
        items = enumerate(rules, start=1)
    converted = {
        key: (value.tree if isinstance(value, Pattern) else value)
        for key, value in items
    }
    return build_grammar(converted)


def _to_tree(value: Any) -> Node:
    """Build a fresh tree for a value that is not a pattern."""
    if isinstance(value, bool):
        return _leaf(Tag.TRUE if value else Tag.FALSE)
    if isinstance(value, int):
        return _num_tree(value)
    if isinstance(value, (str, bytes, bytearray)):
        return _string_tree(value)
    if isinstance(value, (Mapping, list, tuple)):
        return _grammar_tree(value)
    if callable(value):
        return Node(Tag.RUNTIME, sib1=_leaf(Tag.TRUE), key=value)
    raise TypeError(f"cannot make a pattern from {type(value).__name__}")


def _tree_of(value: Any) -> Node:
    """Return the tree of ``value`` (not a copy, for a pattern)."""
    if isinstance(value, Pattern):
        return value.tree
    return _to_tree(value)


def _copy_of(value: Any) -> Node:
    """Return a tree for ``value`` that the caller may own."""
    if isinstance(value, Pattern):
        return value.tree.copy()
    return _to_tree(value)


def _capture(patt: Any, kind: CapKind, key: Any = None) -> Pattern:
    return Pattern(Node(Tag.CAPTURE, sib1=_copy_of(patt), cap=kind, key=key))


def _empty_capture(kind: CapKind, key: Any = None) -> Node:
    return Node(Tag.CAPTURE, sib1=_leaf(Tag.TRUE), cap=kind, key=key)


def _check_int(value: Any, what: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{what} must be an integer, not {type(value).__name__}")
    return value


# -- patterns ---------------------------------------------------------------

class Pattern:
    """A parsing expression, ready to be combined or matched."""

    __slots__ = ("tree", "_code")

    def __init__(self, tree: Node) -> None:
        self.tree = tree
        self._code: Optional[List[Instruction]] = None

    def _compiled(self) -> List[Instruction]:
        if self._code is None:
            final_fix(self.tree)
            self._code = compile_tree(self.tree)
        return self._code

    def match(self, subject: Union[str, bytes], init: int = 1, *args: Any) -> Any:
        """Match against ``subject`` from the 1-based position ``init``.

        A negative ``init`` counts from the end of the subject.
        """
        if isinstance(subject, bytearray):
            subject = bytes(subject)
        if not isinstance(subject, (str, bytes)):
            raise TypeError(f"subject must be a string, not {type(subject).__name__}")
        init = _check_int(init, "initial position")
        length = len(subject)
        if init > 0:
            start = init - 1 if init <= length else length
        else:
            start = length + init if -init <= length else 0
        code = self._compiled()
        result = execute(code, subject, start, args, _max_stack)
        if result is None:
            return None
        end, caps = result
        values = get_captures(caps, subject, end, args)
        return values[0] if len(values) == 1 else values

    def __mul__(self, other: Any) -> Pattern:
        t1 = self.tree
        t2 = _tree_of(other)
        if t1.tag == Tag.FALSE or t2.tag == Tag.TRUE:
            return self
        if t1.tag == Tag.TRUE:
            return other if isinstance(other, Pattern) else Pattern(t2)
        return Pattern(Node(Tag.SEQ, sib1=t1.copy(), sib2=_copy_of(other)))

    def __rmul__(self, other: Any) -> Pattern:
        return P(other) * self

    def __add__(self, other: Any) -> Pattern:
        t1 = self.tree
        t2 = _tree_of(other)
        st1 = to_charset(t1)
        st2 = to_charset(t2)
        if st1 is not None and st2 is not None:
            return Pattern(Node(Tag.SET, cs=st1 | st2))
        if nofail(t1) or t2.tag == Tag.FALSE:
            return self
        if t1.tag == Tag.FALSE:
            return other if isinstance(other, Pattern) else Pattern(t2)
        return Pattern(Node(Tag.CHOICE, sib1=t1.copy(), sib2=_copy_of(other)))

    def __radd__(self, other: Any) -> Pattern:
        return P(other) + self

    def __sub__(self, other: Any) -> Pattern:
        t1 = self.tree
        t2 = _tree_of(other)
        st1 = to_charset(t1)
        st2 = to_charset(t2)
        if st1 is not None and st2 is not None:
            return Pattern(Node(Tag.SET, cs=st1 - st2))
        negated = Node(Tag.NOT, sib1=_copy_of(other))
        return Pattern(Node(Tag.SEQ, sib1=negated, sib2=t1.copy()))

    def __rsub__(self, other: Any) -> Pattern:
        return P(other) - self

    def __pow__(self, n: Any) -> Pattern:
        n = _check_int(n, "repetition count")
        t1 = self.tree
        if n >= 0:
            if nullable(t1):
                raise PatternError("loop body may accept empty string")
            node = Node(Tag.REP, sib1=t1.copy())
            for _ in range(n):
                node = Node(Tag.SEQ, sib1=t1.copy(), sib2=node)
        else:
            node = Node(Tag.CHOICE, sib1=t1.copy(), sib2=_leaf(Tag.TRUE))
            for _ in range(-n - 1):
                inner = Node(Tag.SEQ, sib1=t1.copy(), sib2=node)
                node = Node(Tag.CHOICE, sib1=inner, sib2=_leaf(Tag.TRUE))
        return Pattern(node)

    def __neg__(self) -> Pattern:
        return Pattern(Node(Tag.NOT, sib1=self.tree.copy()))

    def __pos__(self) -> Pattern:
        return Pattern(Node(Tag.AND, sib1=self.tree.copy()))

    def __truediv__(self, value: Any) -> Pattern:
        if isinstance(value, bool):
            raise TypeError("invalid replacement value")
        if isinstance(value, (str, bytes, bytearray)):
            return _capture(self, CapKind.STRING, value)
        if isinstance(value, int):
            if not 0 <= value <= _SHRT_MAX:
                raise PatternError("invalid number")
            return _capture(self, CapKind.NUM, value)
        if isinstance(value, Mapping):
            return _capture(self, CapKind.QUERY, value)
        if callable(value):
            return _capture(self, CapKind.FUNCTION, value)
        raise TypeError("invalid replacement value")

    def tree_text(self, fix: bool = False) -> str:
        """Show the pattern's tree, after fixing it when ``fix`` is set."""
        if fix:
            final_fix(self.tree)
        return format_tree(self.tree)

    def code_text(self) -> str:
        """Show the pattern's compiled code."""
        return format_program(self._compiled())

    def __repr__(self) -> str:
        return f"Pattern({self.tree!r})"


# -- constructors -----------------------------------------------------------

def P(value: Any) -> Pattern:
    """Turn a string, number, boolean, grammar or function into a pattern."""
    if isinstance(value, Pattern):
        return value
    return Pattern(_to_tree(value))


def S(chars: Union[str, bytes]) -> Pattern:
    """Match any one character of ``chars``."""
    if not isinstance(chars, (str, bytes, bytearray)):
        raise TypeError("set needs a string")
    return Pattern(Node(Tag.SET, cs=Charset.from_chars(chars)))


def R(*args: Union[str, bytes]) -> Pattern:
    """Match any character in one of the given two-character ranges."""
    cs = Charset.empty()
    for arg in args:
        if not isinstance(arg, (str, bytes, bytearray)):
            raise TypeError("range needs a string")
        if len(arg) != 2:
            raise ValueError("range must have two characters")
        cs = cs | Charset.from_range(arg[0:1], arg[1:2])
    return Pattern(Node(Tag.SET, cs=cs))


def B(patt: Any) -> Pattern:
    """Look behind: match if ``patt`` matches just before the position."""
    tree = _tree_of(patt)
    n = fixed_len(tree)
    if n is None:
        raise PatternError("pattern may not have fixed length")
    if has_captures(tree):
        raise PatternError("pattern have captures")
    if n > MAXBEHIND:
        raise PatternError("pattern too long to look behind")
    return Pattern(Node(Tag.BEHIND, sib1=_copy_of(patt), n=n))


def V(name: Any) -> Pattern:
    """Refer to the grammar rule called ``name``."""
    if name is None:
        raise ValueError("non-nil value expected")
    return Pattern(Node(Tag.OPENCALL, key=name))


def C(patt: Any) -> Pattern:
    """Capture the text matched by ``patt``."""
    return _capture(patt, CapKind.SIMPLE)


def Cc(*args: Any) -> Pattern:
    """Match the empty string and produce the given values."""
    if not args:
        return Pattern(_leaf(Tag.TRUE))
    if len(args) == 1:
        return Pattern(_empty_capture(CapKind.CONST, args[0]))
    body = _seq_of([_empty_capture(CapKind.CONST, value) for value in args])
    return Pattern(Node(Tag.CAPTURE, sib1=body, cap=CapKind.GROUP, key=None))


def Cmt(patt: Any, func: Callable[..., Any]) -> Pattern:
    """Call ``func`` at match time to decide whether and where to go on."""
    if not callable(func):
        raise TypeError("match-time capture needs a function")
    return Pattern(Node(Tag.RUNTIME, sib1=_copy_of(patt), key=func))


def Cb(name: Any) -> Pattern:
    """Produce the values of the latest group named ``name``."""
    return Pattern(_empty_capture(CapKind.BACKREF, name))


def Carg(n: int) -> Pattern:
    """Produce the ``n``-th extra argument given to the match."""
    n = _check_int(n, "argument index")
    if not 0 < n <= _SHRT_MAX:
        raise PatternError("invalid argument index")
    return Pattern(_empty_capture(CapKind.ARG, n))


def Cp() -> Pattern:
    """Produce the current 1-based position."""
    return Pattern(_empty_capture(CapKind.POSITION))


def Cs(patt: Any) -> Pattern:
    """Substitute the values of nested captures into the matched text."""
    return _capture(patt, CapKind.SUBST)


def Ct(patt: Any) -> Pattern:
    """Collect the values of nested captures into a dict."""
    return _capture(patt, CapKind.TABLE)


def Cf(patt: Any, func: Callable[..., Any]) -> Pattern:
    """Fold the values of nested captures with ``func``."""
    if not callable(func):
        raise TypeError("fold capture needs a function")
    return _capture(patt, CapKind.FOLD, func)


def Cg(patt: Any, name: Any = None) -> Pattern:
    """Group the values of ``patt``, optionally under ``name``."""
    return _capture(patt, CapKind.GROUP, name)


def _range_set(first: int, last: int) -> Charset:
    return Charset.from_range(first, last)


def locale(table: Optional[MutableMapping] = None) -> MutableMapping:
    """Fill ``table`` (or a new dict) with character-class patterns."""
    if table is None:
        table = {}
    elif not isinstance(table, MutableMapping):
        raise TypeError("locale needs a table")
    digit = _range_set(0x30, 0x39)
    upper = _range_set(0x41, 0x5A)
    lower = _range_set(0x61, 0x7A)
    alpha = upper | lower
    alnum = alpha | digit
    graph = _range_set(0x21, 0x7E)
    classes = {
        "alnum": alnum,
        "alpha": alpha,
        "cntrl": _range_set(0x00, 0x1F) | Charset.from_chars([0x7F]),
        "digit": digit,
        "graph": graph,
        "lower": lower,
        "print": _range_set(0x20, 0x7E),
        "punct": graph - alnum,
        "space": _range_set(0x09, 0x0D) | Charset.from_chars([0x20]),
        "upper": upper,
        "xdigit": digit | _range_set(0x41, 0x46) | _range_set(0x61, 0x66),
    }
    for name, cs in classes.items():
        table[name] = Pattern(Node(Tag.SET, cs=cs))
    return table


def version() -> str:
    """Return the library version."""
    return VERSION


def set_max_stack(limit: int) -> None:
    """Set the maximum size of the backtrack stack."""
    global _max_stack
    limit = _check_int(limit, "stack limit")
    if not 0 < limit <= _MAXLIM:
        raise ValueError("out of range")
    _max_stack = limit


def ptype(value: Any) -> Optional[str]:
    """Return "pattern" for a pattern, None for anything else."""
    return "pattern" if isinstance(value, Pattern) else None


def match(patt: Any, subject: Union[str, bytes], init: int = 1, *args: Any) -> Any:
    """Turn ``patt`` into a pattern and match it against ``subject``."""
    return P(patt).match(subject, init, *args)